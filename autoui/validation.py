"""
Rule evaluation for field definitions.

Rules are evaluated independently, in array order, and stop at the first
failure for a field. Messages are plain strings, optionally localized.
"""

from datetime import date, datetime
from typing import Any, List, Optional, Tuple
import logging

from dateutil import parser as date_parser

from .definitions import (
    FieldDefinition,
    FormErrors,
    FormValues,
    ValidationRule,
    compile_pattern,
    find_field,
)
from .filter_config import values_comparable
from .i18n import Translator

logger = logging.getLogger(__name__)

_default_translator = Translator()


def is_empty(value: Any) -> bool:
    """Values that fail a required check: None and the empty string."""
    return value is None or value == ''


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _bound_operands(value: Any, bound: Any) -> Optional[Tuple[Any, Any]]:
    """
    Pair a value with a min/max bound, or None when they cannot be compared.

    Numbers compare with numbers and dates with dates. ISO strings are parsed
    against a date bound, since date widgets keep string values as strings.
    """
    if isinstance(bound, date) and isinstance(value, str):
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
        value = parsed if isinstance(bound, datetime) else parsed.date()
    if values_comparable(value, bound):
        return value, bound
    return None


def validate_rule(rule: ValidationRule, value: Any, all_values: FormValues,
                  translator: Optional[Translator] = None) -> Optional[str]:
    """
    Evaluate one rule against a value.

    Rules that do not apply to the value's type pass (e.g. `min` on a string).

    Args:
        rule: Rule to evaluate
        value: Field value
        all_values: Whole form value, passed to custom validators
        translator: Message lookup; English defaults when omitted

    Returns:
        Error message, or None when the rule passes
    """
    t = translator or _default_translator
    rule_type = rule.type

    if rule_type == 'required':
        if is_empty(value):
            return rule.message or t.t('form.validation.required')
        return None

    if rule_type == 'min':
        operands = _bound_operands(value, rule.value)
        if operands is not None:
            current, bound = operands
            failed = current <= bound if rule.exclusive else current < bound
            if failed:
                key = 'form.validation.minExclusive' if rule.exclusive else 'form.validation.min'
                return rule.message or t.t(key, min=rule.value)
        return None

    if rule_type == 'max':
        operands = _bound_operands(value, rule.value)
        if operands is not None:
            current, bound = operands
            failed = current >= bound if rule.exclusive else current > bound
            if failed:
                key = 'form.validation.maxExclusive' if rule.exclusive else 'form.validation.max'
                return rule.message or t.t(key, max=rule.value)
        return None

    if rule_type == 'minLength':
        if isinstance(value, str) and _is_number(rule.value) and len(value) < rule.value:
            return rule.message or t.t('form.validation.minLength', min=rule.value)
        return None

    if rule_type == 'maxLength':
        if isinstance(value, str) and _is_number(rule.value) and len(value) > rule.value:
            return rule.message or t.t('form.validation.maxLength', max=rule.value)
        return None

    if rule_type == 'pattern':
        if isinstance(value, str):
            pattern = compile_pattern(rule.value)
            if pattern is not None and not pattern.search(value):
                return rule.message or t.t('form.validation.pattern')
        return None

    if rule_type == 'custom':
        if rule.validator is not None and not rule.validator(value, all_values):
            return rule.message or t.t('form.validation.invalid')
        return None

    logger.debug(f"Ignoring unknown rule type '{rule_type}'")
    return None


def validate_field_value(field_def: FieldDefinition, value: Any, all_values: FormValues,
                         translator: Optional[Translator] = None) -> Optional[str]:
    """
    Validate a value against a field definition.

    The `required` flag is checked first, then each rule in order; the first
    error wins.
    """
    t = translator or _default_translator

    if field_def.required and is_empty(value):
        return t.t('form.validation.required')

    for rule in field_def.validation:
        error = validate_rule(rule, value, all_values, t)
        if error:
            return error

    return None


def validate_values(fields: List[FieldDefinition], values: FormValues,
                    translator: Optional[Translator] = None) -> FormErrors:
    """
    Validate every non-hidden field and return an error map.

    Args:
        fields: Field definitions
        values: Form values
        translator: Message lookup

    Returns:
        Mapping of field name to message for failing fields
    """
    errors: FormErrors = {}
    for field_def in fields:
        if field_def.is_hidden(values):
            continue
        error = validate_field_value(field_def, values.get(field_def.name), values, translator)
        if error:
            errors[field_def.name] = error
    return errors


def validate_named_field(fields: List[FieldDefinition], name: str, value: Any,
                         all_values: FormValues,
                         translator: Optional[Translator] = None) -> Optional[str]:
    """Validate by field name; unknown names have no error."""
    field_def = find_field(fields, name)
    if field_def is None:
        return None
    return validate_field_value(field_def, value, all_values, translator)
