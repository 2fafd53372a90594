"""
Table renderer for CrudTable state.

Renders the filter panel, sortable headers, an optional selection column,
row and bulk actions and pagination controls. All view changes go through
the CrudTable so remote tables refetch and local tables re-run the pipeline.
"""

import json
import streamlit as st
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import logging

from .config_loader import get_config_value
from .definitions import FieldDefinition, TableColumn, TableFilter, TablePagination
from .filter_config import FilterOperatorConfig, coerce_filter_value
from .i18n import Translator, get_translator
from .session_store import run_async
from .table_state import CrudTable, next_sort_direction

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
RowAction = Callable[[Row], None]
BulkAction = Callable[[List[Row]], None]
ConfirmActions = Union[bool, Iterable[str], Dict[str, str]]

SORT_INDICATORS = {'asc': "▲", 'desc': "▼"}


def columns_from_fields(fields: List[FieldDefinition], sortable: bool = True,
                        filterable: bool = True) -> List[TableColumn]:
    """Build one column per non-hidden field definition."""
    return [
        TableColumn.from_field(f, sortable=sortable, filterable=filterable)
        for f in fields if not f.is_hidden({})
    ]


def column_type_map(columns: List[TableColumn]) -> Dict[str, str]:
    """Column key -> type, for restoring typed filters from query parameters."""
    return {c.key: c.type for c in columns}


def visible_columns(columns: List[TableColumn]) -> List[TableColumn]:
    return [c for c in columns if not c.hidden]


def next_sort(table: CrudTable, column: str) -> Optional[str]:
    """Direction a header click on `column` would switch to."""
    return next_sort_direction(table.sorting, column)


def sort_indicator(table: CrudTable, column: str) -> str:
    if table.sorting and table.sorting.column == column:
        return SORT_INDICATORS.get(table.sorting.direction, "")
    return ""


def pagination_bounds(pagination: TablePagination) -> Dict[str, int]:
    """1-based first/last row numbers shown on the current page."""
    if pagination.total <= 0 or pagination.page_size <= 0:
        return {'start': 0, 'end': 0, 'total': 0}
    start = (pagination.page - 1) * pagination.page_size + 1
    end = min(pagination.page * pagination.page_size, pagination.total)
    return {'start': min(start, pagination.total), 'end': end, 'total': pagination.total}


def pagination_summary(pagination: TablePagination, translator: Optional[Translator] = None) -> str:
    t = translator or Translator()
    return t.t('table.pagination.showing', **pagination_bounds(pagination))


def format_cell(value: Any, translator: Optional[Translator] = None) -> str:
    """Plain-text rendering of a cell value."""
    t = translator or Translator()
    if value is None:
        return ""
    if isinstance(value, bool):
        return t.t('fields.boolean.true' if value else 'fields.boolean.false')
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


class AutoTable:
    """Streamlit renderer over a CrudTable."""

    def __init__(self, columns: List[TableColumn], key: str = "autoui_table",
                 selectable: bool = False,
                 row_actions: Optional[Dict[str, RowAction]] = None,
                 bulk_actions: Optional[Dict[str, BulkAction]] = None,
                 page_size_options: Optional[List[int]] = None,
                 translator: Optional[Translator] = None,
                 confirm_actions: Optional[ConfirmActions] = None):
        """
        Args:
            columns: Column definitions
            key: Prefix for every widget key
            selectable: Show a selection checkbox column
            row_actions: Button label -> callback taking the row
            bulk_actions: Button label -> callback taking the selected rows
            page_size_options: Choices for the rows-per-page select
            translator: Message lookup
            confirm_actions: Actions that ask before running: True for all,
                a collection of labels, or a label -> message mapping
        """
        self.columns = list(columns)
        self.key = key
        self.selectable = selectable
        self.row_actions = row_actions or {}
        self.bulk_actions = bulk_actions or {}
        self.page_size_options = page_size_options or get_config_value(
            'table', 'page_size_options', [10, 25, 50, 100])
        self.translator = translator or get_translator()
        self.confirm_actions = confirm_actions or {}

    def _key(self, suffix: str) -> str:
        return f"{self.key}_{suffix}"

    def filter_keys(self, column: str) -> Dict[str, str]:
        return {'operator': self._key(f"filter_{column}_op"), 'value': self._key(f"filter_{column}_value")}

    # Callbacks; Streamlit runs these before the next script run

    def handle_sort_click(self, table: CrudTable, column: str):
        logger.debug(f"Sort toggled on column '{column}'")
        run_async(table.toggle_sort(column))

    def handle_page_change(self, table: CrudTable, page: int):
        total_pages = max(table.pagination.total_pages, 1)
        run_async(table.set_page(min(max(page, 1), total_pages)))

    def handle_page_size_change(self, table: CrudTable):
        page_size = st.session_state.get(self._key("page_size"), table.page_size)
        run_async(table.set_page_size(int(page_size)))

    def collect_filters(self) -> List[TableFilter]:
        """Build filters from the filter panel inputs; empty values are skipped."""
        filters = []
        for column in self.columns:
            if not column.filterable:
                continue
            keys = self.filter_keys(column.key)
            operator = st.session_state.get(keys['operator']) or FilterOperatorConfig.get_default_operator(column.type)
            raw_value = st.session_state.get(keys['value'])
            value = coerce_filter_value(raw_value, column.type)
            if value is None:
                continue
            filters.append(TableFilter(column=column.key, operator=operator, value=value))
        return filters

    def handle_apply_filters(self, table: CrudTable):
        filters = self.collect_filters()
        logger.info(f"Applying {len(filters)} table filter(s)")
        run_async(table.set_filters(filters))

    def handle_clear_filters(self, table: CrudTable):
        for column in self.columns:
            keys = self.filter_keys(column.key)
            if keys['value'] in st.session_state:
                st.session_state[keys['value']] = ""
        run_async(table.set_filters([]))

    def handle_row_selection(self, table: CrudTable, row: Row, key: str):
        table.select_row(row, bool(st.session_state.get(key)))

    def handle_select_all(self, table: CrudTable):
        table.select_all(bool(st.session_state.get(self._key("select_all"))))

    # Actions

    def confirmation_message(self, label: str) -> Optional[str]:
        """Prompt shown before `label` runs, or None when it runs straight away."""
        confirm = self.confirm_actions
        if isinstance(confirm, dict):
            if label not in confirm:
                return None
            if confirm[label]:
                return confirm[label]
        elif confirm is not True and label not in confirm:
            return None
        t = self.translator
        return t.t('table.actions.confirm', action=t.t(f"table.actions.{label}", default=label))

    def run_action(self, kind: str, label: str, table: CrudTable, row: Optional[Row] = None):
        if kind == 'bulk':
            rows = list(table.selected)
            logger.info(f"Bulk action '{label}' on {len(rows)} row(s)")
            self.bulk_actions[label](rows)
        else:
            logger.info(f"Row action '{label}' on row {row.get(table.row_key) if row else None}")
            self.row_actions[label](row)

    def _trigger_action(self, kind: str, label: str, table: CrudTable, row: Optional[Row] = None):
        if self.confirmation_message(label) is None:
            self.run_action(kind, label, table, row)
            return
        logger.debug(f"Action '{label}' waiting for confirmation")
        st.session_state[self._key("pending_action")] = {
            'kind': kind, 'label': label, 'row': row,
        }
        st.rerun()

    def _render_pending_action(self, table: CrudTable):
        pending_key = self._key("pending_action")
        pending = st.session_state.get(pending_key)
        if not pending:
            return

        t = self.translator
        st.warning(self.confirmation_message(pending['label']) or pending['label'])
        col_yes, col_no = st.columns(2)
        with col_yes:
            confirmed = st.button(t.t('table.actions.confirmYes'), key=self._key("confirm_yes"),
                                  type="primary")
        with col_no:
            cancelled = st.button(t.t('table.actions.cancel'), key=self._key("confirm_cancel"))

        if confirmed:
            del st.session_state[pending_key]
            self.run_action(pending['kind'], pending['label'], table, pending.get('row'))
        elif cancelled:
            del st.session_state[pending_key]
            logger.info(f"Action '{pending['label']}' cancelled")

    # Rendering

    def render(self, table: CrudTable):
        t = self.translator

        self._render_filter_panel(table)
        self._render_pending_action(table)

        if table.error is not None:
            st.error(t.t('table.error', message=str(table.error)))
        if table.is_loading:
            st.info(t.t('table.loading'))

        if self.bulk_actions and table.selected:
            self._render_bulk_actions(table)

        columns = visible_columns(self.columns)
        widths = ([0.5] if self.selectable else []) + [1] * len(columns)
        if self.row_actions:
            widths.append(len(self.row_actions))

        self._render_header(table, columns, widths)

        if not table.rows:
            st.info(t.t('table.noData'))
        else:
            for index, row in enumerate(table.rows):
                self._render_row(table, row, index, columns, widths)

        self._render_pagination(table)

    def _render_filter_panel(self, table: CrudTable):
        filterable = [c for c in self.columns if c.filterable]
        if not filterable:
            return

        t = self.translator
        with st.expander(t.t('table.filters.title'), expanded=bool(table.filters)):
            for column in filterable:
                keys = self.filter_keys(column.key)
                operators = FilterOperatorConfig.get_operators_for_type(column.type)
                if keys['operator'] not in st.session_state:
                    st.session_state[keys['operator']] = FilterOperatorConfig.get_default_operator(column.type)

                col_label, col_op, col_value = st.columns([1, 1, 2])
                with col_label:
                    st.markdown(f"**{column.title}**")
                with col_op:
                    st.selectbox(
                        column.title,
                        options=operators,
                        format_func=lambda op: t.t(FilterOperatorConfig.get_label_key(op)),
                        key=keys['operator'],
                        label_visibility="collapsed",
                    )
                with col_value:
                    st.text_input(t.t('table.filters.value', default="Value"), key=keys['value'],
                                  label_visibility="collapsed",
                                  placeholder=t.t('table.filters.value', default="Value"))

            col_apply, col_clear = st.columns(2)
            with col_apply:
                st.button(t.t('table.filters.apply'), key=self._key("filters_apply"), type="primary",
                          on_click=self.handle_apply_filters, args=(table,))
            with col_clear:
                st.button(t.t('table.filters.clear'), key=self._key("filters_clear"),
                          on_click=self.handle_clear_filters, args=(table,))

    def _render_bulk_actions(self, table: CrudTable):
        t = self.translator
        st.caption(t.t('table.selected', count=len(table.selected)))
        cols = st.columns(len(self.bulk_actions))
        for index, label in enumerate(self.bulk_actions):
            with cols[index]:
                if st.button(t.t(f"table.actions.{label}", default=label), key=self._key(f"bulk_{label}")):
                    self._trigger_action('bulk', label, table)

    def _render_header(self, table: CrudTable, columns: List[TableColumn], widths: List[float]):
        t = self.translator
        cells = st.columns(widths)
        offset = 0

        if self.selectable:
            select_key = self._key("select_all")
            st.session_state[select_key] = bool(table.rows) and all(table.is_selected(r) for r in table.rows)
            with cells[0]:
                st.checkbox(t.t('table.selectAll'), key=select_key, label_visibility="collapsed",
                            on_change=self.handle_select_all, args=(table,))
            offset = 1

        for index, column in enumerate(columns):
            with cells[offset + index]:
                if column.sortable:
                    label = f"{column.title} {sort_indicator(table, column.key)}".strip()
                    st.button(label, key=self._key(f"sort_{column.key}"),
                              on_click=self.handle_sort_click, args=(table, column.key))
                else:
                    st.markdown(f"**{column.title}**")

    def _row_key(self, table: CrudTable, row: Row, index: int) -> str:
        row_id = row.get(table.row_key)
        return str(row_id) if row_id is not None else f"idx{(table.page - 1) * table.page_size + index}"

    def _render_row(self, table: CrudTable, row: Row, index: int,
                    columns: List[TableColumn], widths: List[float]):
        cells = st.columns(widths)
        row_key = self._row_key(table, row, index)
        offset = 0

        if self.selectable:
            select_key = self._key(f"select_{row_key}")
            st.session_state[select_key] = table.is_selected(row)
            with cells[0]:
                st.checkbox(f"Select {row_key}", key=select_key, label_visibility="collapsed",
                            on_change=self.handle_row_selection, args=(table, row, select_key))
            offset = 1

        for col_index, column in enumerate(columns):
            value = row.get(column.key)
            with cells[offset + col_index]:
                if column.render is not None:
                    try:
                        st.markdown(str(column.render(value, row)))
                    except Exception as e:
                        logger.error(f"Error rendering column {column.key}: {e}", exc_info=True)
                        st.markdown(format_cell(value, self.translator))
                else:
                    st.markdown(format_cell(value, self.translator))

        if self.row_actions:
            t = self.translator
            with cells[-1]:
                action_cols = st.columns(len(self.row_actions))
                for action_index, label in enumerate(self.row_actions):
                    with action_cols[action_index]:
                        if st.button(t.t(f"table.actions.{label}", default=label),
                                     key=self._key(f"action_{label}_{row_key}")):
                            self._trigger_action('row', label, table, row=row)

    def _render_pagination(self, table: CrudTable):
        t = self.translator
        pagination = table.pagination
        total_pages = max(pagination.total_pages, 1)

        col_summary, col_size, col_prev, col_page, col_next = st.columns([3, 2, 1, 1, 1])
        with col_summary:
            st.caption(pagination_summary(pagination, t))
        with col_size:
            options = list(self.page_size_options)
            if table.page_size not in options:
                options = sorted(options + [table.page_size])
            size_key = self._key("page_size")
            st.session_state[size_key] = table.page_size
            st.selectbox(t.t('table.pagination.rowsPerPage'), options=options, key=size_key,
                         on_change=self.handle_page_size_change, args=(table,))
        with col_prev:
            st.button(t.t('table.pagination.previous'), key=self._key("prev"),
                      disabled=table.page <= 1,
                      on_click=self.handle_page_change, args=(table, table.page - 1))
        with col_page:
            st.caption(t.t('table.pagination.page', page=table.page, pages=total_pages))
        with col_next:
            st.button(t.t('table.pagination.next'), key=self._key("next"),
                      disabled=table.page >= total_pages,
                      on_click=self.handle_page_change, args=(table, table.page + 1))
