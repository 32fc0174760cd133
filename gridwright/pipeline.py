"""Row pipeline: filter, search, sort and paginate.

Every stage takes a sequence of records and returns a new list; the
caller's collection is never reordered or trimmed in place. Stages always
run in the order filter -> search -> sort -> paginate. In delegated mode
the external system does that work and the pipeline passes rows through
untouched.
"""

from __future__ import annotations

import math

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .collation import natural_key
from .columns import Column, coerce_operand, has_filter_value
from .config import SortDirection
from .fields import get_field_value, is_blank, to_iso_date, to_number, to_text
from .log import debug


# --- Filter matching ---


def _matches_string(value: str, needle: str, condition: str) -> bool:
    if condition == "not_contain":
        return needle not in value
    if condition == "equal":
        return value == needle
    if condition == "not_equal":
        return value != needle
    if condition == "start_with":
        return value.startswith(needle)
    if condition == "end_with":
        return value.endswith(needle)
    return needle in value


def _matches_number(value: float, operand: float, condition: str) -> bool:
    # NaN on either side fails every comparison, including not_equal
    if math.isnan(value) or math.isnan(operand):
        return False
    if condition == "not_equal":
        return value != operand
    if condition == "greater_than":
        return value > operand
    if condition == "greater_than_equal":
        return value >= operand
    if condition == "less_than":
        return value < operand
    if condition == "less_than_equal":
        return value <= operand
    return value == operand


def _matches_date(value: str, operand: str, condition: str) -> bool:
    if condition == "not_equal":
        return value != operand
    if condition == "greater_than":
        return value > operand
    if condition == "less_than":
        return value < operand
    return value == operand


def matches_filter(value: Any, column: Column) -> bool:
    """Test one cell value against a column's filter.

    Parameters
    ----------
    value : Any
        The resolved field value (None when the path is missing).
    column : Column
        Column carrying ``type``, ``condition`` and ``value``.

    Returns
    -------
    bool
        True when the value passes the filter.
    """
    condition = column.condition or "equal"
    if condition == "is_null":
        return is_blank(value)
    if condition == "is_not_null":
        return not is_blank(value)

    # The value may have been edited directly on the column
    operand = coerce_operand(column.type, column.value)
    if operand == "":
        return True

    if column.type == "number":
        return _matches_number(to_number(value), to_number(operand), condition)
    if column.type == "date":
        return _matches_date(to_iso_date(value), to_iso_date(operand), condition)
    if column.type == "bool":
        return isinstance(value, bool) and isinstance(operand, bool) and value is operand
    return _matches_string(to_text(value).lower(), to_text(operand).lower(), condition)


def active_filters(columns: Iterable[Column]) -> list[Column]:
    """Columns whose filter currently constrains rows."""
    return [col for col in columns if col.filter and has_filter_value(col)]


def apply_column_filters(rows: Sequence[Any], columns: Iterable[Column]) -> list[Any]:
    """Keep the records that satisfy every active column filter."""
    filters = active_filters(columns)
    if not filters:
        return list(rows)
    return [
        row
        for row in rows
        if all(matches_filter(get_field_value(row, col.field), col) for col in filters)
    ]


def apply_global_search(rows: Sequence[Any], columns: Iterable[Column], search: str) -> list[Any]:
    """Keep the records where any visible searchable column contains ``search``.

    The comparison is case-insensitive on the text form of each value.
    """
    if not search:
        return list(rows)
    term = search.lower()
    searchable = [col for col in columns if col.search and not col.hide]
    return [
        row
        for row in rows
        if any(term in to_text(get_field_value(row, col.field)).lower() for col in searchable)
    ]


def sort_rows(rows: Sequence[Any], field: str | None, direction: SortDirection = "asc") -> list[Any]:
    """Sort records by a field with natural collation.

    The sort is stable in both directions: records with equal keys keep
    their input order.
    """
    if not field:
        return list(rows)
    return sorted(
        rows,
        key=lambda row: natural_key(get_field_value(row, field)),
        reverse=direction == "desc",
    )


def paginate_rows(rows: Sequence[Any], page: int, page_size: int) -> list[Any]:
    """Slice out page ``page`` (1-based) of ``page_size`` records."""
    if page_size <= 0:
        return list(rows)
    start = (max(page, 1) - 1) * page_size
    return list(rows[start : start + page_size])


# --- Pagination ---


class PaginationData(BaseModel):
    """Pagination descriptor for the current page."""

    model_config = ConfigDict(populate_by_name=True)

    total_rows: int = Field(alias="totalRows")
    current_page: int = Field(alias="currentPage")
    page_size: int = Field(alias="pageSize")
    max_page: int = Field(alias="maxPage")
    start_page: int = Field(alias="startPage")
    end_page: int = Field(alias="endPage")
    pages: list[int] = Field(default_factory=list)

    @property
    def first_row(self) -> int:
        """1-based index of the first row on the page, 0 when empty."""
        if not self.total_rows:
            return 0
        return (self.current_page - 1) * self.page_size + 1

    @property
    def last_row(self) -> int:
        """1-based index of the last row on the page."""
        return min(self.current_page * self.page_size, self.total_rows)

    @property
    def offset(self) -> int:
        """Number of rows before the current page."""
        return (self.current_page - 1) * self.page_size

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys."""
        return self.model_dump(by_alias=True)


def max_page(total_rows: int, page_size: int) -> int:
    """Last page number; an empty table still has page 1."""
    if page_size <= 0:
        return 1
    return max(math.ceil(total_rows / page_size), 1)


def build_pagination(
    total_rows: int, current_page: int, page_size: int, numbers_count: int = 5
) -> PaginationData:
    """Build the pagination descriptor and its window of page numbers.

    When fewer page buttons than pages are shown, the window is centered on
    the current page and clamped to ``[1, max_page]``.
    """
    last = max_page(total_rows, page_size)
    start_page = 1
    end_page = last

    if numbers_count < last:
        start_page = max(current_page - numbers_count // 2, 1)
        end_page = start_page + numbers_count - 1
        if end_page > last:
            end_page = last
            start_page = end_page - numbers_count + 1

    return PaginationData(
        total_rows=total_rows,
        current_page=current_page,
        page_size=page_size,
        max_page=last,
        start_page=start_page,
        end_page=end_page,
        pages=list(range(start_page, end_page + 1)),
    )


# --- Composition ---


class PipelineState(BaseModel):
    """Live configuration driving the row pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(default=1, ge=1, alias="currentPage")
    page_size: int = Field(default=10, ge=1, alias="pageSize")
    sort_column: str | None = Field(default=None, alias="sortColumn")
    sort_direction: SortDirection = Field(default="asc", alias="sortDirection")
    search: str = ""
    pagination: bool = True
    server_mode: bool = Field(default=False, alias="serverMode")
    total_rows: int = Field(default=0, ge=0, alias="totalRows")
    numbers_count: int = Field(default=5, ge=1, alias="numbersCount")


@dataclass
class PipelineResult:
    """Every intermediate row set plus the pagination descriptor."""

    filtered: list[Any]
    ordered: list[Any]
    displayed: list[Any]
    pagination: PaginationData


def run_pipeline(
    rows: Sequence[Any], columns: Sequence[Column], state: PipelineState
) -> PipelineResult:
    """Run filter -> search -> sort -> paginate from scratch.

    In server mode rows pass through unchanged and ``total_rows`` comes from
    ``state`` instead of the filtered row count.
    """
    if state.server_mode:
        passthrough = list(rows)
        return PipelineResult(
            filtered=passthrough,
            ordered=passthrough,
            displayed=passthrough,
            pagination=build_pagination(
                state.total_rows, state.current_page, state.page_size, state.numbers_count
            ),
        )

    filtered = apply_column_filters(rows, columns)
    filtered = apply_global_search(filtered, columns, state.search)
    ordered = sort_rows(filtered, state.sort_column, state.sort_direction)
    if state.pagination:
        displayed = paginate_rows(ordered, state.current_page, state.page_size)
    else:
        displayed = ordered

    debug(
        f"Pipeline: {len(rows)} rows -> {len(filtered)} filtered -> {len(displayed)} displayed"
    )
    return PipelineResult(
        filtered=filtered,
        ordered=ordered,
        displayed=displayed,
        pagination=build_pagination(
            len(filtered), state.current_page, state.page_size, state.numbers_count
        ),
    )
