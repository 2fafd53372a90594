"""
Client-side table processing used when no remote fetch function is supplied.
Filtering, sorting and pagination are applied in that order over the full row set.
"""

from typing import Any, Dict, List, Optional
import logging

from .definitions import FetchResult, TableFilter, TableSorting
from .filter_config import FilterOperatorConfig

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def row_matches(row: Row, table_filter: TableFilter) -> bool:
    """Check one row against one filter. Unknown operators match everything."""
    predicate = FilterOperatorConfig.get_predicate(table_filter.operator)
    if predicate is None:
        logger.debug(f"Unknown filter operator '{table_filter.operator}', ignoring filter")
        return True
    return bool(predicate(row.get(table_filter.column), table_filter.value))


def apply_filters(rows: List[Row], filters: Optional[List[TableFilter]]) -> List[Row]:
    """
    Keep rows matching every filter.

    Args:
        rows: Rows to filter
        filters: Filters combined with AND

    Returns:
        New list of matching rows
    """
    if not filters:
        return list(rows)
    return [row for row in rows if all(row_matches(row, f) for f in filters)]


def _sort_key(value: Any):
    if isinstance(value, str):
        return (value.casefold(), value)
    return value


def apply_sort(rows: List[Row], sorting: Optional[TableSorting]) -> List[Row]:
    """
    Sort rows by one column. None values always go last, whatever the direction.

    Mixed, mutually incomparable values fall back to comparing their string form.

    Args:
        rows: Rows to sort
        sorting: Column and direction, or None to keep the input order

    Returns:
        New sorted list
    """
    if not sorting or not sorting.column:
        return list(rows)

    column = sorting.column
    reverse = sorting.direction == 'desc'

    present = [row for row in rows if row.get(column) is not None]
    missing = [row for row in rows if row.get(column) is None]

    try:
        ordered = sorted(present, key=lambda r: _sort_key(r.get(column)), reverse=reverse)
    except TypeError as e:
        logger.warning(f"Error sorting by '{column}': {e}, falling back to string comparison")
        ordered = sorted(present, key=lambda r: str(r.get(column)).casefold(), reverse=reverse)

    return ordered + missing


def apply_pagination(rows: List[Row], page: int, page_size: int) -> List[Row]:
    """
    Slice one page out of the rows. Pages are 1-based; pages below 1 act as 1.
    """
    if page_size <= 0:
        return []
    start = (max(page, 1) - 1) * page_size
    return rows[start:start + page_size]


def process_rows(rows: List[Row], filters: Optional[List[TableFilter]] = None,
                 sorting: Optional[TableSorting] = None, page: int = 1,
                 page_size: int = 10) -> FetchResult:
    """
    Run the filter -> sort -> paginate pipeline.

    Returns:
        FetchResult whose `data` is the page and `total` the number of rows
        matching the filters before pagination
    """
    filtered = apply_filters(rows, filters)
    ordered = apply_sort(filtered, sorting)
    page_rows = apply_pagination(ordered, page, page_size)
    return FetchResult(data=page_rows, total=len(filtered))
