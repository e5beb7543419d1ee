# ==============================
# Query Engine
# ==============================
"""
Stateless query operations over an ordered sequence of rows.

Rules:
- Every function is pure: (rows, parameters) -> new data.
- Input rows are never mutated or reordered.
- Missing keys and None values are the same thing ("missing").
- Numeric interpretation is per value, via core.query.values.

Intended usage:
- Dataset facade binds these to the current snapshot's rows
- Library callers may use them directly on any list of dicts
"""

from __future__ import annotations

import locale
import logging
import math
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from core.contracts.dataset_schema import CellValue, Row
from core.contracts.query_schema import ColumnStats, PageResult, PaginationMeta, SortDirection
from core.query.values import (
    fold,
    is_numeric,
    parse_column_list,
    parse_positive_int,
    round_half_up,
    stringify,
    strip_accents,
    to_number,
)

logger = logging.getLogger("csv2api.query")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


# ==============================
# Search / Projection
# ==============================
def search(rows: Sequence[Row], term: Optional[str]) -> List[Row]:
    """Rows where any present cell contains `term`, case-insensitively."""
    if not term:
        return list(rows)
    needle = term.casefold()
    return [row for row in rows if _row_contains(row, needle)]


def _row_contains(row: Row, needle: str) -> bool:
    for value in row.values():
        if value is None:
            continue
        if needle in fold(value):
            return True
    return False


def project(rows: Sequence[Row], columns: Any) -> List[Row]:
    """
    Keep only the requested columns of every row.

    `columns` is a comma-separated string or a list. Requested columns a row
    does not have are left out of that row, not filled with None. An empty
    request returns the rows unchanged.
    """
    wanted = parse_column_list(columns)
    if not wanted:
        return list(rows)
    return [{col: row[col] for col in wanted if col in row} for row in rows]


# ==============================
# Sort
# ==============================
def sort_rows(rows: Sequence[Row], column: Optional[str], direction: Any = SortDirection.ASC) -> List[Row]:
    """
    Stable sort by one column.

    Missing values go last in both directions. Numeric pairs compare as
    numbers. Everything else compares case- and accent-insensitively under
    the LC_COLLATE locale (see use_system_collation), accents breaking ties.
    """
    if not rows or not column:
        return list(rows)
    descending = SortDirection.parse(direction) is SortDirection.DESC

    def compare(a: Row, b: Row) -> int:
        return _compare_cells(a.get(column), b.get(column), descending)

    return sorted(rows, key=cmp_to_key(compare))


def _compare_cells(a: CellValue, b: CellValue, descending: bool) -> int:
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    if is_numeric(a) and is_numeric(b):
        delta = to_number(a) - to_number(b)
        if descending:
            delta = -delta
        return (delta > 0) - (delta < 0)
    order = locale.strcoll(strip_accents(a), strip_accents(b)) or locale.strcoll(fold(a), fold(b))
    return -order if descending else order


def use_system_collation() -> bool:
    """Adopt the host locale for string ordering. False when it cannot be set."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logger.warning("system collation unavailable, using code point order: %s", exc)
        return False
    return True


# ==============================
# Pagination
# ==============================
def paginate(
    rows: Sequence[Row],
    page: Any = DEFAULT_PAGE,
    limit: Any = DEFAULT_LIMIT,
    *,
    default_page: int = DEFAULT_PAGE,
    default_limit: int = DEFAULT_LIMIT,
) -> PageResult:
    """
    Slice one page out of `rows`.

    page and limit accept ints or strings; unparseable values fall back to the
    defaults and everything is clamped to >= 1. A page past the end is an
    empty page with correct metadata, never an error.
    """
    current_page = parse_positive_int(page, default_page)
    page_limit = parse_positive_int(limit, default_limit)

    total_rows = len(rows)
    if total_rows == 0:
        return PageResult(
            data=[],
            pagination=PaginationMeta(
                page=1,
                limit=page_limit,
                total_rows=0,
                total_pages=0,
                has_next=False,
                has_prev=False,
            ),
        )

    total_pages = math.ceil(total_rows / page_limit)
    start = (current_page - 1) * page_limit
    end = min(start + page_limit, total_rows)
    data = [dict(row) for row in rows[start:end]] if start < total_rows else []

    return PageResult(
        data=data,
        pagination=PaginationMeta(
            page=current_page,
            limit=page_limit,
            total_rows=total_rows,
            total_pages=total_pages,
            has_next=current_page < total_pages,
            has_prev=current_page > 1,
            start_index=start + 1 if data else 0,
            end_index=end if data else 0,
        ),
    )


# ==============================
# Lookup / Distinct
# ==============================
def default_id_column(rows: Sequence[Row]) -> Optional[str]:
    """The first key of the first row. A convention, not a declared key."""
    if not rows:
        return None
    return next(iter(rows[0]), None)


def find_by_id(rows: Sequence[Row], row_id: Any, id_column: Optional[str] = None) -> Optional[Row]:
    """
    First row whose `id_column` equals `row_id`, as strings or as numbers.

    Returns None when rows are empty, the id is absent or nothing matches.
    """
    if not rows or row_id is None:
        return None
    column = id_column or default_id_column(rows)
    if not column:
        return None

    wanted = stringify(row_id)
    wanted_numeric = is_numeric(row_id)
    for row in rows:
        value = row.get(column)
        if value is None:
            continue
        if stringify(value) == wanted:
            return row
        if wanted_numeric and is_numeric(value) and to_number(value) == to_number(row_id):
            return row
    return None


def unique_values(rows: Sequence[Row], column: Optional[str]) -> List[CellValue]:
    """Distinct present values of `column` in first-seen order."""
    if not rows or not column:
        return []
    seen: Dict[CellValue, None] = {}
    for row in rows:
        value = row.get(column)
        if value is not None and value not in seen:
            seen[value] = None
    return list(seen)


# ==============================
# Statistics
# ==============================
def column_stats(rows: Sequence[Row], columns: Any = None) -> Dict[str, ColumnStats]:
    """
    Descriptive statistics for the numeric values of each column.

    With no columns requested, the candidates are the keys of the FIRST row
    only; columns that first appear later in a sparse file are not analysed.
    Columns without a single numeric value are left out of the result.
    """
    if not rows:
        return {}
    candidates = parse_column_list(columns) or list(rows[0].keys())

    stats: Dict[str, ColumnStats] = {}
    for column in candidates:
        values = sorted(
            to_number(row[column])
            for row in rows
            if row.get(column) is not None and is_numeric(row[column])
        )
        if values:
            stats[column] = _describe(values)
    return stats


def _describe(values: List[float]) -> ColumnStats:
    count = len(values)
    total = math.fsum(values)
    mid = count // 2
    median = values[mid] if count % 2 else (values[mid - 1] + values[mid]) / 2
    low, high = values[0], values[-1]
    return ColumnStats(
        count=count,
        sum=total,
        mean=round_half_up(total / count),
        median=round_half_up(median),
        min=low,
        max=high,
        range=high - low,
    )
