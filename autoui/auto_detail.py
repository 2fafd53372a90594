"""
Read-only detail view for one record, driven by the same field definitions
as the form renderer.
"""

import json
import streamlit as st
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from dateutil import parser as date_parser

from .auto_form import fields_for_section, grid_columns
from .definitions import (
    FieldDefinition,
    FieldType,
    FormLayout,
    FormSection,
    FormValues,
    LayoutType,
)
from .i18n import Translator, get_translator

logger = logging.getLogger(__name__)

DetailRenderer = Callable[[Any, FieldDefinition], Any]


def _is_blank(value: Any) -> bool:
    return value is None or value == ''


def _format_date(value: Any, with_time: bool) -> str:
    if isinstance(value, str):
        try:
            value = date_parser.parse(value)
        except (ValueError, OverflowError):
            return value
    if isinstance(value, datetime):
        if with_time or value.time() != datetime.min.time():
            return value.strftime("%Y-%m-%d %H:%M")
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)


def format_detail_value(field_def: FieldDefinition, value: Any,
                        translator: Optional[Translator] = None) -> Optional[str]:
    """
    Format a value for display according to its field type.

    Returns:
        Display text, or None for an empty value
    """
    t = translator or Translator()
    field_type = field_def.type

    if field_type in (FieldType.BOOLEAN.value,):
        if value is None:
            return None
        key = 'fields.boolean.true' if value else 'fields.boolean.false'
        return t.t(key, default="Yes" if value else "No")

    if _is_blank(value):
        return None

    if field_type in (FieldType.DATE.value, 'datetime'):
        return _format_date(value, with_time=field_type == 'datetime')

    if field_type in (FieldType.ENUM.value, FieldType.RELATION.value):
        return field_def.option_label(value) or str(value)

    if field_type in (FieldType.MULTISELECT.value, FieldType.CHECKBOX.value):
        if not isinstance(value, list) or not value:
            return None
        return ", ".join(field_def.option_label(v) or str(v) for v in value)

    if field_type == FieldType.JSON.value:
        try:
            return json.dumps(value, indent=2, default=str)
        except (TypeError, ValueError):
            return str(value)

    if field_type == FieldType.PASSWORD.value:
        return "••••••••"

    if field_type == FieldType.FILE.value:
        name = getattr(value, 'name', None)
        if name:
            return name
        return f"[{t.t('fields.file.download', default='Download file')}]({value})"

    return str(value)


class AutoDetail:
    """
    Detail renderer.

    Custom renderers are looked up by field type first, then by field name.
    Hidden fields are never shown; empty values are skipped unless
    show_empty_fields is set, in which case a placeholder text is shown.
    """

    def __init__(self, fields: List[FieldDefinition], layout: Optional[FormLayout] = None,
                 show_labels: bool = True, show_empty_fields: bool = False,
                 field_renderers: Optional[Dict[str, DetailRenderer]] = None,
                 title: Optional[str] = None, description: Optional[str] = None,
                 translator: Optional[Translator] = None):
        self.fields = list(fields)
        self.layout = layout or FormLayout()
        self.show_labels = show_labels
        self.show_empty_fields = show_empty_fields
        self.field_renderers = field_renderers or {}
        self.title = title
        self.description = description
        self.translator = translator or get_translator()

    def displayed_fields(self, fields: List[FieldDefinition], data: FormValues) -> List[FieldDefinition]:
        """Fields that produce output for this record."""
        shown = []
        for field_def in fields:
            if field_def.is_hidden(data):
                continue
            if not self.show_empty_fields and self._custom_renderer(field_def) is None \
                    and format_detail_value(field_def, data.get(field_def.name), self.translator) is None:
                continue
            shown.append(field_def)
        return shown

    def _custom_renderer(self, field_def: FieldDefinition) -> Optional[DetailRenderer]:
        return self.field_renderers.get(field_def.type) or self.field_renderers.get(field_def.name)

    def render(self, data: FormValues):
        t = self.translator
        if self.title:
            st.subheader(self.title)
        if self.description:
            st.caption(self.description)

        layout_type = self.layout.type
        if layout_type in (LayoutType.TABS.value, LayoutType.WIZARD.value) and self.layout.tabs:
            titles = [t.t(f"form.tabs.{tab.title}", default=tab.title) for tab in self.layout.tabs]
            for tab, container in zip(self.layout.tabs, st.tabs(titles)):
                with container:
                    for section in tab.sections:
                        self._render_section(section, data)
        elif self.layout.sections:
            for section in self.layout.sections:
                self._render_section(section, data)
        else:
            self._render_fields(self.fields, data, 1)

    def _render_section(self, section: FormSection, data: FormValues):
        if section.title:
            st.markdown(f"#### {self.translator.t(f'form.sections.{section.title}', default=section.title)}")
        if section.description:
            st.caption(section.description)
        self._render_fields(fields_for_section(self.fields, section), data, section.columns)

    def _render_fields(self, fields: List[FieldDefinition], data: FormValues, columns: int):
        shown = self.displayed_fields(fields, data)
        count = grid_columns(columns)
        if count == 1:
            for field_def in shown:
                self._render_field(field_def, data)
            return
        cols = st.columns(count)
        for index, field_def in enumerate(shown):
            with cols[index % count]:
                self._render_field(field_def, data)

    def _render_field(self, field_def: FieldDefinition, data: FormValues):
        t = self.translator
        value = data.get(field_def.name)

        if self.show_labels:
            st.caption(t.t(f"fields.{field_def.name}.label", default=field_def.display_label))

        renderer = self._custom_renderer(field_def)
        if renderer is not None:
            try:
                output = renderer(value, field_def)
            except Exception as e:
                logger.error(f"Error in custom renderer for field {field_def.name}: {e}", exc_info=True)
                st.error(f"Error rendering field {field_def.name}: {str(e)}")
                return
            if output is not None:
                st.markdown(str(output))
            return

        text = format_detail_value(field_def, value, t)
        if text is None:
            st.markdown(f"*{t.t('detail.emptyValue', default='Not provided')}*")
        elif field_def.type == FieldType.JSON.value:
            st.code(text, language="json")
        elif field_def.type == FieldType.COLOR.value:
            st.color_picker(t.t(f"fields.{field_def.name}.label", default=field_def.display_label),
                            value=text, disabled=True, key=f"detail_{field_def.name}",
                            label_visibility="collapsed")
        else:
            st.markdown(text)
