"""
Pydantic adapter: derive field definitions from a pydantic model, map
validation failures back into flat error maps, and build a model from field
definitions for server-side checks of submitted data.
"""

import inspect
import types
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Type, Union, get_args, get_origin
import logging

from pydantic import AnyUrl, BaseModel, ConfigDict, EmailStr, Field, ValidationError, create_model, model_validator
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from .definitions import FieldDefinition, FieldOption, FieldType, ValidationRule
from .i18n import Translator

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"^[\w.-]+@([\w-]+\.)+[\w-]{2,4}$"
URL_PATTERN = (r"^https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
               r"(?:[-a-zA-Z0-9()@:%_+.~#?&/=]*)$")

_NONE_TYPE = type(None)
_URL_TYPE_NAMES = {'Url', 'AnyUrl', 'HttpUrl', 'AnyHttpUrl', 'FileUrl', 'MultiHostUrl'}


def _is_union(origin: Any) -> bool:
    return origin is Union or origin is getattr(types, 'UnionType', None)


def unwrap_annotation(annotation: Any) -> Tuple[Any, bool, List[Any]]:
    """
    Strip Optional and Annotated wrappers.

    Returns:
        (inner type, nullable flag, collected constraint metadata)
    """
    nullable = False
    metadata: List[Any] = []
    current = annotation

    while True:
        origin = get_origin(current)
        if origin is Annotated:
            args = get_args(current)
            for extra in args[1:]:
                if isinstance(extra, FieldInfo):
                    metadata.extend(extra.metadata)
                else:
                    metadata.append(extra)
            current = args[0]
            continue
        if _is_union(origin):
            members = [a for a in get_args(current) if a is not _NONE_TYPE]
            if len(members) < len(get_args(current)):
                nullable = True
            if len(members) == 1:
                current = members[0]
                continue
            # Mixed unions are treated as their first member
            current = members[0] if members else str
            continue
        return current, nullable, metadata


def _constraint(metadata: List[Any], attr: str) -> Any:
    for item in metadata:
        value = getattr(item, attr, None)
        if value is not None:
            return value
    return None


def _is_email_type(tp: Any) -> bool:
    return tp is EmailStr or getattr(tp, '__name__', '') in ('EmailStr', 'NameEmail')


def _is_url_type(tp: Any, metadata: List[Any]) -> bool:
    if inspect.isclass(tp):
        try:
            if issubclass(tp, AnyUrl):
                return True
        except TypeError:
            pass
    if getattr(tp, '__name__', '') in _URL_TYPE_NAMES:
        return True
    return any(type(m).__name__ == 'UrlConstraints' for m in metadata)


def _enum_options(tp: Any) -> List[FieldOption]:
    if inspect.isclass(tp) and issubclass(tp, Enum):
        return [FieldOption(value=member.value, label=member.name) for member in tp]
    if get_origin(tp) is Literal:
        return [FieldOption(value=v, label=str(v)) for v in get_args(tp)]
    return []


def field_type_for_annotation(tp: Any, metadata: Optional[List[Any]] = None,
                              name: str = '') -> str:
    """
    Map an (unwrapped) annotation to a field type string. Unknown types map to string.
    """
    metadata = metadata or []

    if _is_email_type(tp):
        return FieldType.EMAIL.value
    if _is_url_type(tp, metadata):
        return FieldType.URL.value
    if get_origin(tp) is Literal or (inspect.isclass(tp) and issubclass(tp, Enum)):
        return FieldType.ENUM.value

    origin = get_origin(tp)
    if origin in (list, set, frozenset, tuple) or tp in (list, set, frozenset, tuple):
        return FieldType.MULTISELECT.value
    if origin is dict or tp is dict:
        return FieldType.JSON.value

    if inspect.isclass(tp):
        if issubclass(tp, BaseModel):
            return FieldType.JSON.value
        if issubclass(tp, bool):
            return FieldType.BOOLEAN.value
        if issubclass(tp, (int, float, Decimal)):
            return FieldType.NUMBER.value
        if issubclass(tp, (date, datetime)):
            return FieldType.DATE.value
        if issubclass(tp, str):
            # Plain str fields named like an email still get the email control
            if name.lower() in ('email', 'email_address'):
                return FieldType.EMAIL.value
            return FieldType.STRING.value

    logger.debug(f"Unmapped annotation {tp!r} for field '{name}', using string")
    return FieldType.STRING.value


def _membership_rule(options: List[FieldOption], many: bool, t: Translator) -> ValidationRule:
    allowed = [o.value for o in options]

    def _is_allowed(value: Any, _values: Dict[str, Any]) -> bool:
        if value is None or value == '':
            return True
        if many:
            return isinstance(value, (list, tuple, set)) and all(v in allowed for v in value)
        return value in allowed

    return ValidationRule(
        type='custom',
        validator=_is_allowed,
        message=t.t('form.validation.oneOf', options=", ".join(str(v) for v in allowed))
    )


def _bound(value: Any) -> Any:
    return float(value) if isinstance(value, Decimal) else value


def _multiple_of_rule(multiple_of: Any, t: Translator) -> ValidationRule:
    step = float(multiple_of) if isinstance(multiple_of, Decimal) else multiple_of

    def _is_multiple(value: Any, _values: Dict[str, Any]) -> bool:
        if isinstance(value, Decimal):
            value = float(value)
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return True
        # Same relative tolerance pydantic applies to floats
        remainder = value % step
        tolerance = abs(value) / 1e9
        return abs(remainder) <= tolerance or abs(remainder - step) <= tolerance

    return ValidationRule(
        type='custom',
        validator=_is_multiple,
        message=t.t('form.validation.multipleOf', multiple=multiple_of)
    )


def extract_validation_rules(tp: Any, nullable: bool, metadata: List[Any], field_type: str,
                             options: List[FieldOption], translator: Optional[Translator] = None
                             ) -> List[ValidationRule]:
    """
    Translate nullability and pydantic constraints into rules.

    Non-nullable fields get a required rule; gt/lt become exclusive min/max.
    """
    t = translator or Translator()
    rules: List[ValidationRule] = []

    if not nullable:
        rules.append(ValidationRule(type='required'))

    min_length = _constraint(metadata, 'min_length')
    max_length = _constraint(metadata, 'max_length')
    if min_length is not None and field_type != FieldType.MULTISELECT.value:
        rules.append(ValidationRule(type='minLength', value=min_length))
    if max_length is not None and field_type != FieldType.MULTISELECT.value:
        rules.append(ValidationRule(type='maxLength', value=max_length))

    ge = _bound(_constraint(metadata, 'ge'))
    gt = _bound(_constraint(metadata, 'gt'))
    le = _bound(_constraint(metadata, 'le'))
    lt = _bound(_constraint(metadata, 'lt'))
    if ge is not None:
        rules.append(ValidationRule(type='min', value=ge))
    elif gt is not None:
        rules.append(ValidationRule(type='min', value=gt, exclusive=True))
    if le is not None:
        rules.append(ValidationRule(type='max', value=le))
    elif lt is not None:
        rules.append(ValidationRule(type='max', value=lt, exclusive=True))

    multiple_of = _constraint(metadata, 'multiple_of')
    if multiple_of is not None:
        rules.append(_multiple_of_rule(multiple_of, t))

    pattern = _constraint(metadata, 'pattern')
    if pattern is not None:
        rules.append(ValidationRule(type='pattern', value=getattr(pattern, 'pattern', pattern),
                                    message=t.t('form.validation.pattern')))

    if field_type == FieldType.EMAIL.value:
        rules.append(ValidationRule(type='pattern', value=EMAIL_PATTERN,
                                    message=t.t('form.validation.email')))
    elif field_type == FieldType.URL.value:
        rules.append(ValidationRule(type='pattern', value=URL_PATTERN,
                                    message=t.t('form.validation.url')))

    if options:
        rules.append(_membership_rule(options, field_type == FieldType.MULTISELECT.value, t))

    return rules


def _default_value(field_info: FieldInfo) -> Any:
    default = field_info.default
    if default is PydanticUndefined or default is None:
        return None
    if isinstance(default, Enum):
        return default.value
    return default


def model_to_field_definitions(model: Type[BaseModel],
                               labels: Optional[Dict[str, str]] = None,
                               descriptions: Optional[Dict[str, str]] = None,
                               placeholders: Optional[Dict[str, str]] = None,
                               field_order: Optional[List[str]] = None,
                               hidden_fields: Optional[List[str]] = None,
                               read_only_fields: Optional[List[str]] = None,
                               translator: Optional[Translator] = None) -> List[FieldDefinition]:
    """
    Walk a pydantic model's fields and build field definitions.

    Args:
        model: Pydantic model class
        labels: Label per field name (defaults to the field title, then the name)
        descriptions: Description per field name (defaults to the field description)
        placeholders: Placeholder per field name
        field_order: Field names to emit, in order; defaults to declaration order
        hidden_fields: Field names left out of the result
        read_only_fields: Field names marked read-only
        translator: Message lookup for generated rule messages

    Returns:
        List of FieldDefinition
    """
    labels = labels or {}
    descriptions = descriptions or {}
    placeholders = placeholders or {}
    hidden = set(hidden_fields or [])
    read_only = set(read_only_fields or [])

    model_fields = model.model_fields
    names = field_order or list(model_fields.keys())

    definitions = []
    for name in names:
        if name in hidden:
            continue
        field_info = model_fields.get(name)
        if field_info is None:
            logger.warning(f"Field '{name}' in field_order is not defined on {model.__name__}")
            continue

        tp, nullable, metadata = unwrap_annotation(field_info.annotation)
        metadata = list(field_info.metadata) + metadata
        field_type = field_type_for_annotation(tp, metadata, name)

        options = _enum_options(tp)
        if field_type == FieldType.MULTISELECT.value:
            item_args = get_args(tp)
            if item_args:
                item_type, _, _ = unwrap_annotation(item_args[0])
                options = _enum_options(item_type)

        rules = extract_validation_rules(tp, nullable, metadata, field_type, options, translator)

        definitions.append(FieldDefinition(
            name=name,
            type=field_type,
            label=labels.get(name) or field_info.title or name,
            description=descriptions.get(name) or field_info.description,
            placeholder=placeholders.get(name),
            default_value=_default_value(field_info),
            validation=rules,
            required=any(r.type == 'required' for r in rules),
            options=options,
            read_only=name in read_only,
        ))

    logger.debug(f"Derived {len(definitions)} field definitions from {model.__name__}")
    return definitions


def validate_with_pydantic(model: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, str]:
    """
    Validate data against a model and flatten failures.

    Returns:
        {dotted.path: message}; empty when valid. Unexpected exceptions give
        {'_form': 'Invalid form data'}.
    """
    try:
        model.model_validate(data)
        return {}
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for error in e.errors():
            path = ".".join(str(part) for part in error.get('loc', ())) or '_form'
            errors.setdefault(path, error.get('msg', 'Invalid value'))
        return errors
    except Exception as e:
        logger.error(f"Unexpected error validating with {getattr(model, '__name__', model)}: {e}", exc_info=True)
        return {'_form': 'Invalid form data'}


# Reverse direction: field definitions -> pydantic model

_PYTHON_TYPES = {
    FieldType.STRING.value: str,
    FieldType.TEXT.value: str,
    FieldType.RICHTEXT.value: str,
    FieldType.PASSWORD.value: str,
    FieldType.EMAIL.value: str,
    FieldType.URL.value: str,
    FieldType.PHONE.value: str,
    FieldType.COLOR.value: str,
    FieldType.NUMBER.value: float,
    FieldType.BOOLEAN.value: bool,
    FieldType.DATE.value: date,
}


def python_type_for_field(field_def: FieldDefinition) -> Any:
    option_values = tuple(o.value for o in field_def.options)
    if field_def.type in (FieldType.ENUM.value, FieldType.RELATION.value):
        return Literal[option_values] if option_values else Any
    if field_def.type in (FieldType.MULTISELECT.value, FieldType.CHECKBOX.value):
        if field_def.type == FieldType.CHECKBOX.value and not option_values:
            return bool
        return List[Literal[option_values]] if option_values else List[Any]
    if field_def.type in (FieldType.JSON.value, FieldType.FILE.value):
        return Any
    return _PYTHON_TYPES.get(field_def.type, str)


def _bound_fits(python_type: Any, value: Any) -> bool:
    """Whether a min/max rule value can become a pydantic ge/le/gt/lt bound."""
    if python_type is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if python_type is date:
        return isinstance(value, date) and not isinstance(value, datetime)
    return False


def _field_kwargs(field_def: FieldDefinition, python_type: Any) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if field_def.label:
        kwargs['title'] = field_def.label
    if field_def.description:
        kwargs['description'] = field_def.description

    is_text = python_type is str
    for rule in field_def.validation:
        if rule.type == 'minLength' and is_text:
            kwargs['min_length'] = rule.value
        elif rule.type == 'maxLength' and is_text:
            kwargs['max_length'] = rule.value
        elif rule.type == 'min' and _bound_fits(python_type, rule.value):
            kwargs['gt' if rule.exclusive else 'ge'] = rule.value
        elif rule.type == 'max' and _bound_fits(python_type, rule.value):
            kwargs['lt' if rule.exclusive else 'le'] = rule.value
        elif rule.type == 'pattern' and is_text and isinstance(rule.value, str):
            kwargs['pattern'] = rule.value
    return kwargs


def _is_required(field_def: FieldDefinition) -> bool:
    return field_def.required or any(r.type == 'required' for r in field_def.validation)


def field_definitions_to_model(fields: List[FieldDefinition],
                               model_name: str = "FormModel") -> Type[BaseModel]:
    """
    Build a pydantic model enforcing the definitions' types and rules.

    Required fields have no default; optional ones accept None. Custom rules
    run in an after-validator over all values.

    Args:
        fields: Field definitions
        model_name: Name for the generated model class

    Returns:
        Pydantic model class
    """
    model_fields: Dict[str, Any] = {}
    custom_rules: List[Tuple[str, ValidationRule]] = []

    for field_def in fields:
        python_type = python_type_for_field(field_def)
        kwargs = _field_kwargs(field_def, python_type)

        if _is_required(field_def):
            model_fields[field_def.name] = (python_type, Field(**kwargs))
        else:
            kwargs['default'] = None
            model_fields[field_def.name] = (Optional[python_type], Field(**kwargs))

        custom_rules.extend((field_def.name, r) for r in field_def.validation if r.type == 'custom')

    validators = {}
    if custom_rules:
        def _run_custom_rules(instance):
            values = instance.model_dump()
            for name, rule in custom_rules:
                if not rule.validator(values.get(name), values):
                    raise ValueError(f"{name}: {rule.message or 'Invalid value'}")
            return instance

        validators['check_custom_rules'] = model_validator(mode='after')(_run_custom_rules)

    try:
        dynamic_model = create_model(
            model_name,
            __config__=ConfigDict(extra='ignore'),
            __validators__=validators,
            **model_fields
        )
        logger.info(f"Created dynamic model '{model_name}' with {len(model_fields)} fields")
        return dynamic_model
    except Exception as e:
        logger.error(f"Failed to create model '{model_name}': {e}")
        raise
