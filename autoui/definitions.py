"""
Core data model for the auto-UI layer.
Field definitions, validation rules, layouts and table view-state types shared
by the renderers, the state objects and the schema adapters.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from .exceptions import InvalidFieldDefinitionError

logger = logging.getLogger(__name__)

FieldValue = Union[str, int, float, bool, date, datetime, list, dict, None]
FormValues = Dict[str, FieldValue]
FormErrors = Dict[str, str]


class FieldType(str, Enum):
    """Known field kinds. Callers may still use other type strings for custom controls."""
    STRING = 'string'
    NUMBER = 'number'
    BOOLEAN = 'boolean'
    DATE = 'date'
    ENUM = 'enum'
    RELATION = 'relation'
    TEXT = 'text'
    FILE = 'file'
    RICHTEXT = 'richtext'
    MULTISELECT = 'multiselect'
    JSON = 'json'
    COLOR = 'color'
    PASSWORD = 'password'
    EMAIL = 'email'
    URL = 'url'
    PHONE = 'phone'
    CHECKBOX = 'checkbox'


class RuleType(str, Enum):
    """Validation rule kinds."""
    REQUIRED = 'required'
    MIN = 'min'
    MAX = 'max'
    MIN_LENGTH = 'minLength'
    MAX_LENGTH = 'maxLength'
    PATTERN = 'pattern'
    CUSTOM = 'custom'


class LayoutType(str, Enum):
    BASIC = 'basic'
    SECTIONS = 'sections'
    TABS = 'tabs'
    WIZARD = 'wizard'
    ACCORDION = 'accordion'


class FilterOperator(str, Enum):
    EQ = 'eq'
    NEQ = 'neq'
    GT = 'gt'
    GTE = 'gte'
    LT = 'lt'
    LTE = 'lte'
    CONTAINS = 'contains'
    STARTS_WITH = 'startsWith'
    ENDS_WITH = 'endsWith'


class SortDirection(str, Enum):
    ASC = 'asc'
    DESC = 'desc'


def normalize_field_type(value: Union[str, FieldType, None]) -> str:
    """Return the plain type string, defaulting to 'string'."""
    if value is None or value == '':
        return FieldType.STRING.value
    if isinstance(value, FieldType):
        return value.value
    return str(value)


# Hidden / read-only conditions

@dataclass(frozen=True)
class Always:
    """A condition with a fixed outcome."""
    value: bool = False

    def evaluate(self, values: FormValues) -> bool:
        return self.value


@dataclass(frozen=True)
class Predicate:
    """A condition computed from the current form values."""
    func: Callable[[FormValues], bool]

    def evaluate(self, values: FormValues) -> bool:
        return bool(self.func(values))


Condition = Union[Always, Predicate]


def as_condition(value: Any) -> Condition:
    """
    Normalize a bool, None, callable or existing condition into a Condition.

    Args:
        value: Raw hidden/read_only setting

    Returns:
        Always(...) or Predicate(...)
    """
    if isinstance(value, (Always, Predicate)):
        return value
    if value is None:
        return Always(False)
    if isinstance(value, bool):
        return Always(value)
    if callable(value):
        return Predicate(value)
    if isinstance(value, dict) and 'field' in value:
        return _condition_from_dict(value)
    raise TypeError(f"Cannot build a condition from {type(value).__name__}")


def _condition_from_dict(spec: Dict[str, Any]) -> Predicate:
    """Build a predicate from a schema-file condition such as {field: status, equals: draft}."""
    target = spec['field']

    if 'equals' in spec:
        expected = spec['equals']
        return Predicate(lambda values: values.get(target) == expected)
    if 'not_equals' in spec:
        expected = spec['not_equals']
        return Predicate(lambda values: values.get(target) != expected)
    if 'in' in spec:
        allowed = list(spec['in'])
        return Predicate(lambda values: values.get(target) in allowed)
    if spec.get('empty'):
        return Predicate(lambda values: values.get(target) in (None, '', [], {}))

    # Bare {field: x} means "when x is truthy"
    return Predicate(lambda values: bool(values.get(target)))


@dataclass
class FieldOption:
    value: Any
    label: str
    disabled: bool = False
    description: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> 'FieldOption':
        """Accept a FieldOption, a dict with value/label, or a bare value."""
        if isinstance(raw, FieldOption):
            return raw
        if isinstance(raw, dict):
            value = raw.get('value')
            return cls(
                value=value,
                label=str(raw.get('label', value)),
                disabled=bool(raw.get('disabled', False)),
                description=raw.get('description')
            )
        return cls(value=raw, label=str(raw))


@dataclass
class ValidationRule:
    """
    One constraint attached to a field.

    `value` holds the bound for min/max/minLength/maxLength and the regex for
    pattern. `validator` is only used by custom rules and receives the field
    value plus all form values. `exclusive` turns min/max into strict bounds.
    """
    type: str
    value: Any = None
    message: Optional[str] = None
    validator: Optional[Callable[[FieldValue, FormValues], bool]] = None
    exclusive: bool = False

    def __post_init__(self):
        if isinstance(self.type, RuleType):
            self.type = self.type.value
        if self.type not in {r.value for r in RuleType}:
            raise ValueError(f"Unknown validation rule type '{self.type}'")
        if self.type == RuleType.CUSTOM.value and self.validator is None:
            raise ValueError("Custom validation rules need a validator")

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ValidationRule':
        return cls(
            type=raw.get('type', ''),
            value=raw.get('value'),
            message=raw.get('message'),
            validator=raw.get('validator'),
            exclusive=bool(raw.get('exclusive', False))
        )


# Keys of the shorthand validation object {required, min, max, ...}
_SHORTHAND_RULES = ['required', 'min', 'max', 'minLength', 'maxLength', 'pattern']


def rules_from_shorthand(spec: Dict[str, Any]) -> List[ValidationRule]:
    """Convert {'min': 1, 'pattern': '^a'} style validation into rules."""
    rules = []
    for key in _SHORTHAND_RULES:
        if key not in spec or spec[key] is None:
            continue
        if key == 'required':
            if spec[key]:
                rules.append(ValidationRule(type='required'))
            continue
        rules.append(ValidationRule(type=key, value=spec[key]))

    validate = spec.get('validate')
    if callable(validate):
        rules.append(ValidationRule(
            type='custom',
            validator=lambda value, values: validate(value) is True,
            message=spec.get('message')
        ))
    return rules


@dataclass
class FieldDefinition:
    """Declarative metadata for one entity attribute."""
    name: str
    type: str = FieldType.STRING.value
    label: Optional[str] = None
    required: bool = False
    placeholder: Optional[str] = None
    description: Optional[str] = None
    default_value: Any = None
    validation: List[ValidationRule] = field(default_factory=list)
    options: List[FieldOption] = field(default_factory=list)
    hidden: Any = field(default_factory=lambda: Always(False))
    read_only: Any = field(default_factory=lambda: Always(False))
    disabled: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    props: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise InvalidFieldDefinitionError(str(self.name), "name must be a non-empty string")

        self.type = normalize_field_type(self.type)
        self.hidden = as_condition(self.hidden)
        self.read_only = as_condition(self.read_only)
        self.options = [FieldOption.from_raw(o) for o in (self.options or [])]

        if isinstance(self.validation, dict):
            self.validation = rules_from_shorthand(self.validation)
        self.validation = [
            r if isinstance(r, ValidationRule) else ValidationRule.from_dict(r)
            for r in (self.validation or [])
        ]

    @property
    def display_label(self) -> str:
        return self.label or self.name

    def is_hidden(self, values: FormValues) -> bool:
        return self.hidden.evaluate(values)

    def is_read_only(self, values: FormValues) -> bool:
        return self.read_only.evaluate(values)

    def option_label(self, value: Any) -> Optional[str]:
        for option in self.options:
            if option.value == value:
                return option.label
        return None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], name: Optional[str] = None) -> 'FieldDefinition':
        """
        Build a field definition from a plain dict.

        Supports both the native keys (validation list or shorthand object,
        options, hidden, read_only) and the schema-file keys min_length,
        max_length, min_value, max_value, pattern and choices.

        Args:
            raw: Field configuration
            name: Field name when the dict is keyed by name in a mapping

        Returns:
            FieldDefinition
        """
        field_name = name or raw.get('name')
        if not field_name:
            raise InvalidFieldDefinitionError(str(field_name), "missing name")

        try:
            validation = raw.get('validation', [])
            if isinstance(validation, dict):
                rules = rules_from_shorthand(validation)
            else:
                rules = [ValidationRule.from_dict(r) if isinstance(r, dict) else r for r in validation]
        except ValueError as e:
            raise InvalidFieldDefinitionError(field_name, str(e))

        # Schema-file constraint keys
        if raw.get('min_length') is not None:
            rules.append(ValidationRule(type='minLength', value=raw['min_length']))
        if raw.get('max_length') is not None:
            rules.append(ValidationRule(type='maxLength', value=raw['max_length']))
        if raw.get('min_value') is not None:
            rules.append(ValidationRule(type='min', value=raw['min_value']))
        if raw.get('max_value') is not None:
            rules.append(ValidationRule(type='max', value=raw['max_value']))
        if raw.get('pattern'):
            rules.append(ValidationRule(type='pattern', value=raw['pattern']))

        options = raw.get('options')
        if options is None and 'choices' in raw:
            options = raw['choices']

        try:
            return cls(
                name=field_name,
                type=raw.get('type', FieldType.STRING.value),
                label=raw.get('label'),
                required=bool(raw.get('required', False)),
                placeholder=raw.get('placeholder'),
                description=raw.get('description', raw.get('help')),
                default_value=raw.get('default_value', raw.get('default')),
                validation=rules,
                options=options or [],
                hidden=raw.get('hidden'),
                read_only=raw.get('read_only', raw.get('readonly')),
                disabled=bool(raw.get('disabled', False)),
                min=raw.get('min'),
                max=raw.get('max'),
                step=raw.get('step'),
                props=dict(raw.get('props') or {})
            )
        except (TypeError, ValueError) as e:
            raise InvalidFieldDefinitionError(field_name, str(e))


def find_field(fields: List[FieldDefinition], name: str) -> Optional[FieldDefinition]:
    for f in fields:
        if f.name == name:
            return f
    return None


def compile_pattern(pattern: Any) -> Optional[re.Pattern]:
    """Compile a string pattern, passing compiled patterns through."""
    if isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, str):
        try:
            return re.compile(pattern)
        except re.error as e:
            logger.error(f"Invalid regex pattern '{pattern}': {e}")
            return None
    return None


# Layouts

@dataclass
class FormSection:
    fields: List[str]
    title: Optional[str] = None
    description: Optional[str] = None
    columns: int = 1

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'FormSection':
        raw_columns = raw.get('columns', 1)
        try:
            columns = int(raw_columns)
        except (TypeError, ValueError):
            raise ValueError(f"Section columns must be an integer, got {raw_columns!r}")
        return cls(
            fields=list(raw.get('fields', [])),
            title=raw.get('title'),
            description=raw.get('description'),
            columns=columns
        )


@dataclass
class FormTab:
    title: str
    sections: List[FormSection] = field(default_factory=list)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'FormTab':
        return cls(
            title=raw.get('title', ''),
            sections=[FormSection.from_dict(s) for s in raw.get('sections', [])],
            description=raw.get('description')
        )


@dataclass
class FormLayout:
    """
    Layout configuration for forms and detail views.

    `tabs` is used by tabs and wizard layouts (one tab per step), `sections`
    by sections and accordion layouts.
    """
    type: str = LayoutType.BASIC.value
    sections: List[FormSection] = field(default_factory=list)
    tabs: List[FormTab] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.type, LayoutType):
            self.type = self.type.value
        if self.type not in {t.value for t in LayoutType}:
            logger.warning(f"Unknown layout type '{self.type}', falling back to basic")
            self.type = LayoutType.BASIC.value

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'FormLayout':
        tabs = raw.get('tabs') or raw.get('steps') or []
        sections = raw.get('sections') or []
        layout_type = raw.get('type')
        if layout_type is None:
            layout_type = 'tabs' if tabs else ('sections' if sections else 'basic')
        return cls(
            type=layout_type,
            sections=[FormSection.from_dict(s) for s in sections],
            tabs=[FormTab.from_dict(t) for t in tabs]
        )


# Tables

@dataclass
class TableColumn:
    key: str
    title: str
    sortable: bool = False
    filterable: bool = False
    hidden: bool = False
    width: Optional[Union[int, str]] = None
    type: str = FieldType.STRING.value
    render: Optional[Callable[[FieldValue, Dict[str, Any]], Any]] = None

    @classmethod
    def from_field(cls, field_def: FieldDefinition, sortable: bool = True,
                   filterable: bool = True) -> 'TableColumn':
        return cls(
            key=field_def.name,
            title=field_def.display_label,
            sortable=sortable,
            filterable=filterable,
            type=field_def.type
        )


@dataclass
class TableFilter:
    column: str
    operator: str = FilterOperator.EQ.value
    value: Any = None

    def __post_init__(self):
        if isinstance(self.operator, FilterOperator):
            self.operator = self.operator.value


@dataclass
class TableSorting:
    column: str
    direction: str = SortDirection.ASC.value

    def __post_init__(self):
        if isinstance(self.direction, SortDirection):
            self.direction = self.direction.value
        if self.direction not in ('asc', 'desc'):
            logger.warning(f"Invalid sort direction '{self.direction}', using 'asc'")
            self.direction = 'asc'


@dataclass
class TablePagination:
    page: int = 1
    page_size: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass
class FetchParams:
    page: int
    page_size: int
    sort: Optional[TableSorting] = None
    filters: List[TableFilter] = field(default_factory=list)


@dataclass
class FetchResult:
    data: List[Dict[str, Any]]
    total: int

    @classmethod
    def coerce(cls, result: Any) -> 'FetchResult':
        """Accept a FetchResult or a {'data': [...], 'total': n} mapping."""
        if isinstance(result, FetchResult):
            return result
        if isinstance(result, dict):
            data = list(result.get('data') or [])
            return cls(data=data, total=int(result.get('total', len(data))))
        raise TypeError(f"fetch_data returned {type(result).__name__}, expected FetchResult or dict")
