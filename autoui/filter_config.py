"""
Centralized filter operator configuration for auto tables.
Provides operator metadata, per-field-type operator sets and filter value
coercion for the filter panel.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from dateutil import parser as date_parser

from .definitions import FieldType

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _both_str(a: Any, b: Any) -> bool:
    return isinstance(a, str) and isinstance(b, str)


def values_comparable(a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return True
    # Dates compare with dates; datetime is a date subclass so require matching kinds
    if isinstance(a, datetime) and isinstance(b, datetime):
        return True
    return (isinstance(a, date) and not isinstance(a, datetime)
            and isinstance(b, date) and not isinstance(b, datetime))


@dataclass
class FilterOperatorConfig:
    """Centralized configuration for table filter operators."""

    # Operator metadata: translation key and the predicate applied to (row_value, filter_value)
    OPERATORS = {
        'eq': {
            'label_key': 'table.filters.operators.eq',
            'predicate': lambda value, target: value == target,
        },
        'neq': {
            'label_key': 'table.filters.operators.neq',
            'predicate': lambda value, target: value != target,
        },
        'gt': {
            'label_key': 'table.filters.operators.gt',
            'predicate': lambda value, target: values_comparable(value, target) and value > target,
        },
        'gte': {
            'label_key': 'table.filters.operators.gte',
            'predicate': lambda value, target: values_comparable(value, target) and value >= target,
        },
        'lt': {
            'label_key': 'table.filters.operators.lt',
            'predicate': lambda value, target: values_comparable(value, target) and value < target,
        },
        'lte': {
            'label_key': 'table.filters.operators.lte',
            'predicate': lambda value, target: values_comparable(value, target) and value <= target,
        },
        'contains': {
            'label_key': 'table.filters.operators.contains',
            'predicate': lambda value, target: _both_str(value, target) and target.lower() in value.lower(),
        },
        'startsWith': {
            'label_key': 'table.filters.operators.startsWith',
            'predicate': lambda value, target: _both_str(value, target) and value.lower().startswith(target.lower()),
        },
        'endsWith': {
            'label_key': 'table.filters.operators.endsWith',
            'predicate': lambda value, target: _both_str(value, target) and value.lower().endswith(target.lower()),
        },
    }

    # Operators offered in the filter panel per column type
    OPERATORS_BY_TYPE = {
        'number': ['eq', 'neq', 'gt', 'gte', 'lt', 'lte'],
        'date': ['eq', 'neq', 'gt', 'gte', 'lt', 'lte'],
        'string': ['eq', 'neq', 'contains', 'startsWith', 'endsWith'],
        'text': ['eq', 'neq', 'contains', 'startsWith', 'endsWith'],
        'email': ['eq', 'neq', 'contains', 'startsWith', 'endsWith'],
        'url': ['eq', 'neq', 'contains', 'startsWith', 'endsWith'],
        'phone': ['eq', 'neq', 'contains', 'startsWith', 'endsWith'],
        'boolean': ['eq'],
    }

    DEFAULT_OPERATORS = ['eq', 'neq']

    @classmethod
    def validate_operator(cls, operator: str) -> bool:
        """Validate if an operator is supported."""
        return operator in cls.OPERATORS

    @classmethod
    def get_predicate(cls, operator: str) -> Optional[Callable[[Any, Any], bool]]:
        config = cls.OPERATORS.get(operator)
        return config['predicate'] if config else None

    @classmethod
    def get_label_key(cls, operator: str) -> str:
        config = cls.OPERATORS.get(operator)
        return config['label_key'] if config else operator

    @classmethod
    def get_operators_for_type(cls, field_type: str,
                               overrides: Optional[Dict[str, List[str]]] = None) -> List[str]:
        """Get the operator keys offered for a column/field type."""
        if overrides and field_type in overrides:
            return list(overrides[field_type])
        return list(cls.OPERATORS_BY_TYPE.get(field_type, cls.DEFAULT_OPERATORS))

    @classmethod
    def get_default_operator(cls, field_type: str,
                             defaults: Optional[Dict[str, str]] = None) -> str:
        if defaults and field_type in defaults:
            return defaults[field_type]
        if field_type in ('string', 'text', 'email', 'url', 'phone'):
            return 'contains'
        return 'eq'

    @classmethod
    def get_available_operators(cls) -> List[str]:
        return list(cls.OPERATORS.keys())


def coerce_filter_value(raw: Any, field_type: str) -> Any:
    """
    Convert a filter panel input into a value comparable with row values.

    Text inputs always produce strings; number, boolean and date columns need
    typed values for the comparison operators. Unparseable input is returned
    unchanged so the filter simply matches nothing.

    Args:
        raw: Value entered in the filter panel
        field_type: Column type

    Returns:
        Coerced filter value
    """
    if not isinstance(raw, str):
        return raw

    text = raw.strip()
    if text == '':
        return None

    if field_type == FieldType.NUMBER.value:
        try:
            number = float(text)
        except ValueError:
            logger.debug(f"Filter value '{raw}' is not a number")
            return raw
        return int(number) if number.is_integer() and '.' not in text else number

    if field_type == FieldType.BOOLEAN.value:
        lowered = text.lower()
        if lowered in ('true', 'yes', '1'):
            return True
        if lowered in ('false', 'no', '0'):
            return False
        return raw

    if field_type == FieldType.DATE.value:
        try:
            return date_parser.parse(text).date()
        except (ValueError, OverflowError) as e:
            logger.debug(f"Filter value '{raw}' is not a date: {e}")
            return raw

    return raw
