"""
Form renderer: draws one widget per visible field from field definitions.

The renderer holds no form state of its own beyond the active tab / wizard
step. Values come in, changes go out through on_change; validation belongs to
the caller (see CrudForm).
"""

import streamlit as st
from typing import Any, Callable, Dict, List, Optional
import logging

from .definitions import (
    FieldDefinition,
    FormErrors,
    FormLayout,
    FormSection,
    FormTab,
    FormValues,
    LayoutType,
)
from .field_components import FieldComponentMap, FieldRenderContext
from .form_state import CrudForm, values_differ
from .i18n import Translator, get_translator
from .session_store import run_async
from .validation import is_empty

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[FormValues], None]


def visible_fields(fields: List[FieldDefinition], values: FormValues) -> List[FieldDefinition]:
    """Fields whose hidden condition is false for the current values."""
    return [f for f in fields if not f.is_hidden(values)]


def fields_for_section(fields: List[FieldDefinition], section: FormSection) -> List[FieldDefinition]:
    """Fields named by the section, in definition order. Unknown names are ignored."""
    names = set(section.fields)
    return [f for f in fields if f.name in names]


def grid_columns(columns: Any) -> int:
    """Clamp a section's column count to 1..4."""
    try:
        count = int(columns)
    except (TypeError, ValueError):
        return 1
    return max(1, min(4, count))


def _is_unset(value: Any) -> bool:
    return is_empty(value) or value == [] or value is False


def merge_field_value(values: FormValues, name: str, new_value: Any) -> Optional[FormValues]:
    """
    Return `values` with one field replaced, or None when nothing changed.

    An unset field (None) and a widget's blank value ('' / [] / False) count
    as the same value, so first render does not dirty the form.
    """
    old_value = values.get(name)
    if old_value is None and _is_unset(new_value):
        return None
    if not values_differ(old_value, new_value):
        return None
    merged = dict(values)
    merged[name] = new_value
    return merged


class AutoForm:
    """
    Streamlit form renderer over a list of field definitions.

    Layouts: basic (every visible field in order), sections (titled blocks in
    1-4 columns), tabs (one active tab), wizard (one active step with
    previous/next) and accordion (one expander per section).
    """

    def __init__(self, fields: List[FieldDefinition], key: str = "autoui_form",
                 layout: Optional[FormLayout] = None,
                 component_map: Optional[FieldComponentMap] = None,
                 translator: Optional[Translator] = None,
                 submit_label: Optional[str] = None, reset_label: Optional[str] = None,
                 show_reset: bool = True):
        self.fields = list(fields)
        self.key = key
        self.layout = layout or FormLayout()
        self.component_map = component_map or FieldComponentMap()
        self.translator = translator or get_translator()
        self.submit_label = submit_label
        self.reset_label = reset_label
        self.show_reset = show_reset

    @staticmethod
    def no_validate(on_submit: Optional[Callable]) -> bool:
        """Native browser-style validation is off whenever a submit handler is supplied."""
        return on_submit is not None

    def field_label(self, field_def: FieldDefinition) -> str:
        label = self.translator.t(f"fields.{field_def.name}.label", default=field_def.display_label)
        return f"{label} *" if field_def.required else label

    def widget_key(self, name: str, version: int = 0) -> str:
        return f"{self.key}_field_{name}_v{version}"

    def _state_key(self, suffix: str) -> str:
        return f"{self.key}_{suffix}"

    def render(self, value: FormValues, on_change: ChangeHandler,
               errors: Optional[FormErrors] = None,
               on_submit: Optional[Callable[[FormValues], Any]] = None,
               is_submitting: bool = False, version: int = 0,
               on_blur: Optional[Callable[[str], None]] = None,
               on_reset: Optional[Callable[[], None]] = None) -> FormValues:
        """
        Render the form for this rerun.

        Args:
            value: Current form values
            on_change: Called with the full value each time one field changes
            errors: Field errors to display under each control
            on_submit: Called with the value when the submit button is pressed
            is_submitting: Disables every control and the buttons
            version: Widget key suffix; bump it to re-seed all widgets
            on_blur: Called with the field name after that field changed
            on_reset: Replaces the default reset behaviour of on_change({})

        Returns:
            The form value after this rerun's changes
        """
        self._value = dict(value or {})
        self._errors = errors or {}
        self._on_change = on_change
        self._on_blur = on_blur
        self._is_submitting = is_submitting
        self._version = version

        layout_type = self.layout.type
        if layout_type == LayoutType.SECTIONS.value and self.layout.sections:
            self._render_sections(self.layout.sections)
        elif layout_type == LayoutType.TABS.value and self.layout.tabs:
            self._render_tabs(self.layout.tabs)
        elif layout_type == LayoutType.WIZARD.value and self.layout.tabs:
            # The wizard draws its own navigation and submit button
            self._render_wizard(self.layout.tabs, on_submit, on_reset)
            return self._value
        elif layout_type == LayoutType.ACCORDION.value and self.layout.sections:
            self._render_accordion(self.layout.sections)
        else:
            self._render_fields(visible_fields(self.fields, self._value))

        if on_submit is not None:
            self._render_buttons(on_submit, on_reset)

        return self._value

    # Fields

    def _render_field(self, field_def: FieldDefinition):
        t = self.translator
        name = field_def.name

        placeholder = field_def.placeholder
        if placeholder:
            placeholder = t.t(f"fields.{name}.placeholder", default=placeholder)
        description = field_def.description
        if description:
            description = t.t(f"fields.{name}.description", default=description)

        error = self._errors.get(name)
        ctx = FieldRenderContext(
            key=self.widget_key(name, self._version),
            label=self.field_label(field_def),
            value=self._value.get(name),
            disabled=field_def.disabled or field_def.is_read_only(self._value) or self._is_submitting,
            required=field_def.required,
            placeholder=placeholder,
            help=description,
            options=field_def.options,
            error=error,
            field=field_def,
            props=field_def.props,
            translator=t,
        )

        new_value = self.component_map.render(field_def.type, ctx)

        if error:
            st.error(t.t(f"fields.{name}.errors.{error}", default=error))

        merged = merge_field_value(self._value, name, new_value)
        if merged is not None:
            logger.debug(f"Field '{name}' changed")
            self._value = merged
            self._on_change(merged)
            if self._on_blur is not None:
                self._on_blur(name)

    def _render_fields(self, fields: List[FieldDefinition], columns: int = 1):
        if not fields:
            return
        count = grid_columns(columns)
        if count == 1:
            for field_def in fields:
                self._render_field(field_def)
            return

        cols = st.columns(count)
        for index, field_def in enumerate(fields):
            with cols[index % count]:
                self._render_field(field_def)

    def _render_section(self, section: FormSection, show_title: bool = True):
        t = self.translator
        if show_title and section.title:
            st.subheader(t.t(f"form.sections.{section.title}", default=section.title))
        if section.description:
            st.caption(t.t(f"form.sections.{section.title}.description", default=section.description))

        fields = visible_fields(fields_for_section(self.fields, section), self._value)
        self._render_fields(fields, section.columns)

    def _render_sections(self, sections: List[FormSection]):
        for section in sections:
            with st.container(border=True):
                self._render_section(section)

    def _render_tab_body(self, tab: FormTab, title_prefix: str):
        t = self.translator
        if tab.description:
            st.caption(t.t(f"form.{title_prefix}.{tab.title}.description", default=tab.description))
        for section in tab.sections:
            self._render_section(section)

    def _render_tabs(self, tabs: List[FormTab]):
        t = self.translator
        state_key = self._state_key("active_tab")
        if state_key not in st.session_state:
            st.session_state[state_key] = 0
        if st.session_state[state_key] >= len(tabs):
            st.session_state[state_key] = 0

        active = st.radio(
            "Tabs",
            options=list(range(len(tabs))),
            format_func=lambda i: t.t(f"form.tabs.{tabs[i].title}", default=tabs[i].title),
            horizontal=True,
            key=state_key,
            label_visibility="collapsed",
        )
        self._render_tab_body(tabs[active or 0], "tabs")

    def _render_accordion(self, sections: List[FormSection]):
        t = self.translator
        for index, section in enumerate(sections):
            title = t.t(f"form.sections.{section.title}", default=section.title or f"Section {index + 1}")
            with st.expander(title, expanded=index == 0):
                self._render_section(section, show_title=False)

    def _render_wizard(self, steps: List[FormTab], on_submit: Optional[Callable[[FormValues], Any]],
                       on_reset: Optional[Callable[[], None]]):
        t = self.translator
        state_key = self._state_key("active_step")
        if state_key not in st.session_state:
            st.session_state[state_key] = 0
        active = min(max(int(st.session_state[state_key]), 0), len(steps) - 1)
        step = steps[active]
        total = len(steps)

        st.subheader(t.t(f"form.steps.{step.title}", default=step.title))
        st.caption(t.t('form.step', current=active + 1, total=total))
        st.progress((active + 1) / total)

        self._render_tab_body(step, "steps")

        is_first = active == 0
        is_last = active == total - 1

        col_prev, col_next = st.columns(2)
        with col_prev:
            if st.button(t.t('form.previous', default="Previous"), key=self._state_key("prev"),
                         disabled=is_first or self._is_submitting):
                st.session_state[state_key] = active - 1
                st.rerun()
        with col_next:
            if is_last:
                if on_submit is not None:
                    self._render_buttons(on_submit, on_reset)
            elif st.button(t.t('form.next', default="Next"), key=self._state_key("next"),
                           type="primary", disabled=self._is_submitting):
                st.session_state[state_key] = active + 1
                st.rerun()

    # Buttons

    def _render_buttons(self, on_submit: Callable[[FormValues], Any],
                        on_reset: Optional[Callable[[], None]]):
        t = self.translator
        col_reset, col_submit = st.columns(2)

        if self.show_reset:
            with col_reset:
                if st.button(self.reset_label or t.t('form.reset', default="Reset"),
                             key=self._state_key("reset"), disabled=self._is_submitting):
                    logger.info(f"Form '{self.key}' reset requested")
                    if on_reset is not None:
                        on_reset()
                    else:
                        self._value = {}
                        self._on_change({})

        with col_submit:
            if self._is_submitting:
                label = t.t('form.submitting', default="Submitting...")
            else:
                label = self.submit_label or t.t('form.submit', default="Submit")
            if st.button(label, key=self._state_key("submit"), type="primary",
                         disabled=self._is_submitting):
                on_submit(dict(self._value))


def render_crud_form(auto_form: AutoForm, form: CrudForm) -> Optional[bool]:
    """
    Render `auto_form` bound to a CrudForm.

    Changes go to handle_change and handle_blur, reset restores the initial
    snapshot, and submit runs handle_submit to completion.

    Returns:
        The handle_submit result when the form was submitted this rerun, else None
    """
    submitted: Dict[str, bool] = {}

    def _submit(_values: FormValues):
        submitted['result'] = run_async(form.handle_submit())

    def _reset():
        form.reset()
        st.rerun()

    auto_form.render(
        value=form.value,
        on_change=form.handle_change,
        errors=form.errors,
        on_submit=_submit if form.on_submit is not None else None,
        is_submitting=form.is_submitting,
        version=form.version,
        on_blur=form.handle_blur,
        on_reset=_reset,
    )
    return submitted.get('result')
