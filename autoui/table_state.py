"""
Table view-state management for auto tables.

CrudTable tracks pagination, sorting, filtering and selection. With a
`fetch_data` callback every view change triggers a new fetch; without one the
rows are processed client-side (filter -> sort -> paginate).
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlencode
import logging

from .definitions import (
    FetchParams,
    FetchResult,
    TableFilter,
    TablePagination,
    TableSorting,
)
from .filter_config import FilterOperatorConfig, coerce_filter_value
from .table_pipeline import process_rows

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
FetchData = Callable[[FetchParams], Union[FetchResult, Dict[str, Any], Awaitable[Any]]]


class CrudTable:
    """
    State for one table instance.

    Fetch failures are captured into `error` and logged; they are never raised
    to the caller. There is no retry: call refresh() again to retry.
    """

    def __init__(self, rows: Optional[List[Row]] = None, fetch_data: Optional[FetchData] = None,
                 page: int = 1, page_size: int = 10, sort: Optional[TableSorting] = None,
                 filters: Optional[List[TableFilter]] = None, row_key: str = 'id',
                 column_types: Optional[Dict[str, str]] = None):
        """
        Args:
            rows: Client-side rows; ignored for display when fetch_data is given
            fetch_data: Server fetch, sync or async
            page: Initial 1-based page
            page_size: Rows per page
            sort: Initial sorting
            filters: Initial filters
            row_key: Row attribute identifying a row for selection
            column_types: Column key -> field type, used to restore typed
                filter values from query parameters
        """
        self.source_rows: List[Row] = list(rows or [])
        self.fetch_data = fetch_data
        self.row_key = row_key
        self.column_types: Dict[str, str] = dict(column_types or {})
        self.data_revision: Any = None

        self.rows: List[Row] = []
        self.page = max(int(page), 1)
        self.page_size = int(page_size)
        self.total = 0
        self.sorting = sort
        self.filters: List[TableFilter] = list(filters or [])
        self.selected: List[Row] = []

        self.is_loading = False
        self.error: Optional[Exception] = None

        # Local tables show their first page right away; remote ones wait for refresh()
        if self.fetch_data is None:
            self._run_local_pipeline()

    @property
    def is_remote(self) -> bool:
        return self.fetch_data is not None

    @property
    def pagination(self) -> TablePagination:
        return TablePagination(page=self.page, page_size=self.page_size, total=self.total)

    def fetch_params(self) -> FetchParams:
        return FetchParams(
            page=self.page,
            page_size=self.page_size,
            sort=TableSorting(self.sorting.column, self.sorting.direction) if self.sorting else None,
            filters=list(self.filters)
        )

    def _run_local_pipeline(self):
        result = process_rows(self.source_rows, self.filters, self.sorting,
                              self.page, self.page_size)
        self.rows = result.data
        self.total = result.total

    async def refresh(self):
        """Reload the current page from fetch_data or the client-side pipeline."""
        if self.fetch_data is None:
            self._run_local_pipeline()
            return

        self.is_loading = True
        self.error = None
        try:
            result = self.fetch_data(self.fetch_params())
            if inspect.isawaitable(result):
                result = await result
            fetched = FetchResult.coerce(result)
            self.rows = fetched.data
            self.total = fetched.total
        except Exception as e:
            self.error = e
            logger.error(f"Error fetching table data: {e}", exc_info=True)
        finally:
            self.is_loading = False

    async def set_page(self, page: int):
        self.page = max(int(page), 1)
        await self.refresh()

    async def set_page_size(self, page_size: int):
        """Change the page size and go back to the first page."""
        if page_size <= 0:
            logger.warning(f"Ignoring invalid page size {page_size}")
            return
        self.page_size = int(page_size)
        self.page = 1
        await self.refresh()

    async def set_sort(self, column: Optional[str], direction: Optional[str] = 'asc'):
        """Sort by a single column; a None column or direction clears sorting."""
        if not column or not direction:
            self.sorting = None
        else:
            self.sorting = TableSorting(column=column, direction=direction)
        await self.refresh()

    async def toggle_sort(self, column: str):
        """Cycle a column through ascending, descending and unsorted."""
        direction = next_sort_direction(self.sorting, column)
        await self.set_sort(column if direction else None, direction)

    async def set_filters(self, filters: List[TableFilter]):
        valid = []
        for f in filters:
            if FilterOperatorConfig.validate_operator(f.operator):
                valid.append(f)
            else:
                logger.warning(f"Dropping filter on '{f.column}' with unknown operator '{f.operator}'")
        self.filters = valid
        await self.refresh()

    async def set_rows(self, rows: List[Row]):
        """Replace the client-side row set."""
        self.source_rows = list(rows)
        await self.refresh()

    async def sync_rows(self, revision: Any, rows: Optional[List[Row]] = None) -> bool:
        """
        Pick up a change to the backing data made elsewhere.

        `revision` identifies the data version; nothing happens when it matches
        the last one seen. Local tables take `rows` as their new row set,
        remote tables refetch.

        Returns:
            True when the table was refreshed
        """
        if revision == self.data_revision:
            return False
        self.data_revision = revision
        if self.fetch_data is None and rows is not None:
            self.source_rows = list(rows)
        await self.refresh()
        return True

    # Selection

    def _row_id(self, row: Row) -> Any:
        return row.get(self.row_key, id(row))

    def is_selected(self, row: Row) -> bool:
        row_id = self._row_id(row)
        return any(self._row_id(r) == row_id for r in self.selected)

    def select_row(self, row: Row, checked: bool = True):
        if checked:
            if not self.is_selected(row):
                self.selected.append(row)
        else:
            row_id = self._row_id(row)
            self.selected = [r for r in self.selected if self._row_id(r) != row_id]

    def select_all(self, checked: bool = True):
        """Select or clear the loaded rows only (the current page), not every matching row."""
        self.selected = list(self.rows) if checked else []

    def set_selected(self, rows: List[Row]):
        self.selected = list(rows)

    # Query params

    def to_query_params(self) -> Dict[str, Any]:
        return view_state_to_query_params(self.page, self.page_size, self.sorting, self.filters)

    def to_query_string(self) -> str:
        return urlencode(self.to_query_params(), doseq=True)

    async def apply_query_params(self, params: Dict[str, Any],
                                 column_types: Optional[Dict[str, str]] = None):
        """
        Restore page, page size, sort and filters from query parameters.

        Filter values are coerced with `column_types`, falling back to the
        table's own column_types.
        """
        state = view_state_from_query_params(params, default_page_size=self.page_size,
                                             column_types=column_types or self.column_types)
        self.page = state['page']
        self.page_size = state['page_size']
        self.sorting = state['sort']
        self.filters = state['filters']
        await self.refresh()


def next_sort_direction(sorting: Optional[TableSorting], column: str) -> Optional[str]:
    """
    Tri-state sort cycle for a clicked column.

    A different (or no) active column starts at 'asc'; the active column moves
    asc -> desc -> None.
    """
    if sorting is None or sorting.column != column:
        return 'asc'
    if sorting.direction == 'asc':
        return 'desc'
    return None


def view_state_to_query_params(page: int, page_size: int, sorting: Optional[TableSorting],
                               filters: List[TableFilter]) -> Dict[str, Any]:
    """
    Encode table view state as query parameters.

    sort is '<column>:<direction>' and each filter '<column>:<operator>:<value>'.
    """
    params: Dict[str, Any] = {'page': page, 'page_size': page_size}
    if sorting:
        params['sort'] = f"{sorting.column}:{sorting.direction}"
    if filters:
        params['filter'] = [
            f"{f.column}:{f.operator}:{'' if f.value is None else f.value}" for f in filters
        ]
    return params


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _as_int(value: Any, default: int) -> int:
    try:
        return int(_first(value))
    except (TypeError, ValueError):
        return default


def view_state_from_query_params(params: Union[Dict[str, Any], str],
                                 default_page_size: int = 10,
                                 column_types: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Decode query parameters into page, page_size, sort and filters.

    Malformed entries are dropped with a warning. Filter values on columns
    listed in `column_types` are coerced to that type; others stay strings.

    Args:
        params: Mapping (values may be lists) or a raw query string
        default_page_size: Page size used when absent or invalid
        column_types: Column key -> field type

    Returns:
        Dict with keys page, page_size, sort, filters
    """
    if isinstance(params, str):
        params = parse_qs(params)

    page = max(_as_int(params.get('page'), 1), 1)
    page_size = _as_int(params.get('page_size'), default_page_size)
    if page_size <= 0:
        page_size = default_page_size

    sorting = None
    raw_sort = _first(params.get('sort'))
    if raw_sort:
        column, _, direction = str(raw_sort).rpartition(':')
        if column and direction in ('asc', 'desc'):
            sorting = TableSorting(column=column, direction=direction)
        else:
            logger.warning(f"Ignoring malformed sort parameter '{raw_sort}'")

    filters = []
    raw_filters = params.get('filter') or []
    if isinstance(raw_filters, str):
        raw_filters = [raw_filters]
    for raw in raw_filters:
        parts = str(raw).split(':', 2)
        if len(parts) != 3 or not FilterOperatorConfig.validate_operator(parts[1]):
            logger.warning(f"Ignoring malformed filter parameter '{raw}'")
            continue
        column, operator, value = parts
        if column_types and column in column_types:
            value = coerce_filter_value(value, column_types[column])
        filters.append(TableFilter(column=column, operator=operator, value=value))

    return {'page': page, 'page_size': page_size, 'sort': sorting, 'filters': filters}
