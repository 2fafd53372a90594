"""
Field component map: field type -> Streamlit widget.

A component receives a FieldRenderContext and returns the field's new value
for this rerun. Widget values are kept in st.session_state under the context
key, seeded from the form value the first time the key is seen.
"""

import inspect
import json
import streamlit as st
import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from dateutil import parser as date_parser

from .definitions import FieldDefinition, FieldOption, FieldType, RuleType
from .i18n import Translator
from .session_store import run_async

logger = logging.getLogger(__name__)


@dataclass
class FieldRenderContext:
    """Everything a component needs to draw one field."""
    key: str
    label: str
    value: Any = None
    disabled: bool = False
    required: bool = False
    placeholder: Optional[str] = None
    help: Optional[str] = None
    options: List[FieldOption] = dataclasses.field(default_factory=list)
    error: Optional[str] = None
    field: Optional[FieldDefinition] = None
    props: Dict[str, Any] = dataclasses.field(default_factory=dict)
    translator: Optional[Translator] = None

    def t(self, key: str, default: Optional[str] = None, **params) -> str:
        translator = self.translator or Translator()
        return translator.t(key, default, **params)


FieldComponent = Callable[[FieldRenderContext], Any]


def _seed(key: str, value: Any):
    """Put the initial widget value into session state once per key."""
    if key not in st.session_state:
        if isinstance(value, (list, dict)):
            value = value.copy()
        st.session_state[key] = value


def parse_date_value(value: Any) -> Optional[date]:
    """Coerce strings and datetimes to a date; unparseable input gives None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.parse(value).date()
        except (ValueError, OverflowError) as e:
            logger.warning(f"Failed to parse date string '{value}': {e}")
            return None
    logger.warning(f"Unexpected date value type: {type(value)}")
    return None


def _option_values(ctx: FieldRenderContext) -> List[Any]:
    return [o.value for o in ctx.options]


def _option_formatter(ctx: FieldRenderContext) -> Callable[[Any], str]:
    labels = {repr(o.value): o.label for o in ctx.options}

    def _format(value: Any) -> str:
        if value is None:
            return ctx.t('fields.generic.select', "Select...")
        return labels.get(repr(value), str(value))

    return _format


def _base_kwargs(ctx: FieldRenderContext) -> Dict[str, Any]:
    return {
        'key': ctx.key,
        'label': ctx.label,
        'help': ctx.help,
        'disabled': ctx.disabled,
    }


def _rule_bound(field_def: Optional[FieldDefinition], rule_type: str) -> Optional[float]:
    if field_def is None:
        return None
    for rule in field_def.validation:
        if rule.type == rule_type and not rule.exclusive and isinstance(rule.value, (int, float)):
            return rule.value
    return None


def render_string(ctx: FieldRenderContext) -> str:
    _seed(ctx.key, '' if ctx.value is None else str(ctx.value))
    value = st.text_input(placeholder=ctx.placeholder, **_base_kwargs(ctx))
    return value if value is not None else ""


def render_number(ctx: FieldRenderContext) -> Optional[float]:
    """Number input; min/max/step come from the definition, then from min/max rules."""
    field_def = ctx.field
    min_value = field_def.min if field_def and field_def.min is not None else _rule_bound(field_def, RuleType.MIN.value)
    max_value = field_def.max if field_def and field_def.max is not None else _rule_bound(field_def, RuleType.MAX.value)
    step = field_def.step if field_def else None

    # Streamlit requires value, bounds and step to share one numeric type
    use_float = any(isinstance(v, float) for v in (ctx.value, min_value, max_value, step))
    cast = float if use_float else int

    value = ctx.value if isinstance(ctx.value, (int, float)) and not isinstance(ctx.value, bool) else None
    _seed(ctx.key, cast(value) if value is not None else None)

    kwargs = _base_kwargs(ctx)
    if min_value is not None:
        kwargs['min_value'] = cast(min_value)
    if max_value is not None:
        kwargs['max_value'] = cast(max_value)
    kwargs['step'] = cast(step) if step is not None else cast(1)
    if ctx.placeholder:
        kwargs['placeholder'] = ctx.placeholder

    return st.number_input(**kwargs)


def render_boolean(ctx: FieldRenderContext) -> bool:
    _seed(ctx.key, bool(ctx.value))
    return bool(st.toggle(**_base_kwargs(ctx)))


def render_date(ctx: FieldRenderContext) -> Any:
    """Date input. String values stay strings (ISO date) so dirty tracking is stable."""
    _seed(ctx.key, parse_date_value(ctx.value))

    session_value = st.session_state.get(ctx.key)
    if session_value is not None and not isinstance(session_value, date):
        st.session_state[ctx.key] = parse_date_value(session_value)

    result = st.date_input(**_base_kwargs(ctx))
    if result is None:
        return None
    if isinstance(ctx.value, str):
        return result.strftime("%Y-%m-%d")
    return result


def render_enum(ctx: FieldRenderContext) -> Any:
    options = _option_values(ctx)
    _seed(ctx.key, ctx.value if ctx.value in options else None)
    return st.radio(options=options, format_func=_option_formatter(ctx), **_base_kwargs(ctx))


def _relation_option(raw: Any) -> FieldOption:
    # Remote records often carry 'id' rather than 'value'
    if isinstance(raw, dict) and 'value' not in raw and 'id' in raw:
        raw = dict(raw, value=raw['id'])
    return FieldOption.from_raw(raw)


async def _resolve(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def fetch_relation_options(fetch_options: Callable[[str], Any], query: str) -> List[FieldOption]:
    """Call a sync or async option source with the search text."""
    result = fetch_options(query)
    if inspect.isawaitable(result):
        result = run_async(_resolve(result))
    return [_relation_option(raw) for raw in (result or [])]


def _searched_options(ctx: FieldRenderContext, fetch_options: Callable[[str], Any]) -> List[FieldOption]:
    """Options for the current search text, fetched once per distinct query."""
    query = st.text_input(
        ctx.t('fields.generic.search', "Search..."),
        key=f"{ctx.key}_search",
        placeholder=ctx.t('fields.generic.search', "Search..."),
        disabled=ctx.disabled,
        label_visibility="collapsed",
    ) or ""

    cache_key = f"{ctx.key}_options"
    cached = st.session_state.get(cache_key)
    if cached is not None and cached['query'] == query:
        return cached['options']

    try:
        options = fetch_relation_options(fetch_options, query)
    except Exception as e:
        logger.error(f"Error fetching relation options for {ctx.key}: {e}", exc_info=True)
        st.error(ctx.t('fields.relation.loadError', message=str(e)))
        return list(ctx.options)

    logger.debug(f"Fetched {len(options)} relation option(s) for {ctx.key} with query '{query}'")
    st.session_state[cache_key] = {'query': query, 'options': options}
    return options


def render_relation(ctx: FieldRenderContext) -> Any:
    """
    Select over related records.

    With `props['fetch_options']` (a callable taking the search text, sync or
    async) a search box drives the option list. The current value stays
    selectable even when the search no longer returns it.
    """
    fetch_options = ctx.props.get('fetch_options')
    if fetch_options is not None:
        options = _searched_options(ctx, fetch_options)
        if ctx.value is not None and all(o.value != ctx.value for o in options):
            known = [o for o in ctx.options if o.value == ctx.value]
            options = (known or [FieldOption.from_raw(ctx.value)]) + options
        ctx = dataclasses.replace(ctx, options=options)

    values = _option_values(ctx)
    # Optional selects get a leading empty entry
    if not ctx.required:
        values = [None] + values
    _seed(ctx.key, ctx.value if ctx.value in values else None)
    return st.selectbox(options=values, format_func=_option_formatter(ctx), **_base_kwargs(ctx))


def render_text(ctx: FieldRenderContext) -> str:
    _seed(ctx.key, '' if ctx.value is None else str(ctx.value))
    value = st.text_area(placeholder=ctx.placeholder, height=ctx.props.get('height', 100),
                         **_base_kwargs(ctx))
    return value if value is not None else ""


def render_file(ctx: FieldRenderContext) -> Any:
    """File uploader; keeps the previous value until a new file is chosen."""
    kwargs = _base_kwargs(ctx)
    if ctx.props.get('accept'):
        kwargs['type'] = ctx.props['accept']
    uploaded = st.file_uploader(**kwargs)
    if uploaded is not None:
        return uploaded
    if isinstance(ctx.value, str) and ctx.value:
        st.caption(ctx.value)
    return ctx.value


def render_richtext(ctx: FieldRenderContext) -> str:
    value = render_text(ctx)
    if value:
        with st.expander(ctx.t('fields.richtext.preview', "Preview")):
            st.markdown(value)
    return value


def render_multiselect(ctx: FieldRenderContext) -> List[Any]:
    options = _option_values(ctx)
    current = ctx.value if isinstance(ctx.value, list) else []
    _seed(ctx.key, [v for v in current if v in options])
    kwargs = _base_kwargs(ctx)
    if ctx.placeholder:
        kwargs['placeholder'] = ctx.placeholder
    return list(st.multiselect(options=options, format_func=_option_formatter(ctx), **kwargs))


def render_json(ctx: FieldRenderContext) -> Any:
    """JSON text area. Invalid JSON keeps the previous value and shows an error."""
    initial_text = '' if ctx.value is None else json.dumps(ctx.value, indent=2, default=str)
    _seed(ctx.key, initial_text)

    text = st.text_area(height=ctx.props.get('height', 150), **_base_kwargs(ctx))
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        st.error(f"Invalid JSON format: {e.msg}")
        return ctx.value


DEFAULT_COLOR = "#000000"


def render_color(ctx: FieldRenderContext) -> Optional[str]:
    """
    Color picker. An unset value stays unset (None) while the picker still
    shows its placeholder black, so a fresh form is not dirty.
    """
    unset = not (isinstance(ctx.value, str) and ctx.value)
    _seed(ctx.key, DEFAULT_COLOR if unset else ctx.value)
    picked = st.color_picker(**_base_kwargs(ctx))
    if unset and picked == DEFAULT_COLOR:
        return None
    return picked


def render_password(ctx: FieldRenderContext) -> str:
    _seed(ctx.key, '' if ctx.value is None else str(ctx.value))
    value = st.text_input(type="password", placeholder=ctx.placeholder, **_base_kwargs(ctx))
    return value if value is not None else ""


_TYPE_PLACEHOLDERS = {
    FieldType.EMAIL.value: "name@example.com",
    FieldType.URL.value: "https://",
    FieldType.PHONE.value: "+1 555 000 0000",
}


def _typed_text_input(field_type: str) -> FieldComponent:
    def _render(ctx: FieldRenderContext) -> str:
        _seed(ctx.key, '' if ctx.value is None else str(ctx.value))
        value = st.text_input(placeholder=ctx.placeholder or _TYPE_PLACEHOLDERS[field_type],
                              **_base_kwargs(ctx))
        return value if value is not None else ""
    _render.__name__ = f"render_{field_type}"
    return _render


def render_checkbox(ctx: FieldRenderContext) -> Any:
    """One checkbox per option, returning the checked values. Without options, a single bool."""
    if not ctx.options:
        _seed(ctx.key, bool(ctx.value))
        return bool(st.checkbox(**_base_kwargs(ctx)))

    current = ctx.value if isinstance(ctx.value, list) else []
    st.markdown(f"**{ctx.label}**")
    if ctx.help:
        st.caption(ctx.help)

    checked = []
    for index, option in enumerate(ctx.options):
        option_key = f"{ctx.key}_{index}"
        _seed(option_key, option.value in current)
        if st.checkbox(option.label, key=option_key, disabled=ctx.disabled or option.disabled):
            checked.append(option.value)
    return checked


DEFAULT_COMPONENTS: Dict[str, FieldComponent] = {
    FieldType.STRING.value: render_string,
    FieldType.NUMBER.value: render_number,
    FieldType.BOOLEAN.value: render_boolean,
    FieldType.DATE.value: render_date,
    FieldType.ENUM.value: render_enum,
    FieldType.RELATION.value: render_relation,
    FieldType.TEXT.value: render_text,
    FieldType.FILE.value: render_file,
    FieldType.RICHTEXT.value: render_richtext,
    FieldType.MULTISELECT.value: render_multiselect,
    FieldType.JSON.value: render_json,
    FieldType.COLOR.value: render_color,
    FieldType.PASSWORD.value: render_password,
    FieldType.EMAIL.value: _typed_text_input(FieldType.EMAIL.value),
    FieldType.URL.value: _typed_text_input(FieldType.URL.value),
    FieldType.PHONE.value: _typed_text_input(FieldType.PHONE.value),
    FieldType.CHECKBOX.value: render_checkbox,
}


class FieldComponentMap:
    """
    Lookup from field type to component.

    Unknown types render with the string component. Overrides replace or add
    entries for this map only; DEFAULT_COMPONENTS is never mutated.
    """

    def __init__(self, overrides: Optional[Dict[str, FieldComponent]] = None):
        self._components: Dict[str, FieldComponent] = dict(DEFAULT_COMPONENTS)
        if overrides:
            self._components.update(overrides)

    def get(self, field_type: str) -> FieldComponent:
        component = self._components.get(field_type)
        if component is None:
            logger.debug(f"No component for field type '{field_type}', using string")
            return self._components[FieldType.STRING.value]
        return component

    __getitem__ = get

    def __contains__(self, field_type: str) -> bool:
        return field_type in self._components

    def register(self, field_type: str, component: FieldComponent):
        self._components[field_type] = component

    def with_overrides(self, overrides: Dict[str, FieldComponent]) -> 'FieldComponentMap':
        """Return a new map with `overrides` applied on top of this one."""
        merged = FieldComponentMap()
        merged._components = dict(self._components)
        merged._components.update(overrides)
        return merged

    def types(self) -> List[str]:
        return sorted(self._components.keys())

    def render(self, field_type: str, ctx: FieldRenderContext) -> Any:
        """
        Render one field, returning its new value.

        A failing component is logged and reported in the UI; the previous
        value is returned so the form value is left unchanged.
        """
        try:
            return self.get(field_type)(ctx)
        except Exception as e:
            st.error(f"Error rendering field {ctx.field.name if ctx.field else ctx.key}: {str(e)}")
            logger.error(f"Error rendering field {ctx.key}: {e}", exc_info=True)
            return ctx.value
