"""DataTable session.

A ``DataTable`` holds the live state of one table: its rows and columns,
the measured container, the pipeline state and the selection. Every user
action is either resolved locally (recompute the displayed rows and emit a
local event) or, in server mode, packaged into a ``ServerChange`` and
emitted as ``server-change`` for an external handler to act on.

Usage:
    from gridwright import DataTable

    table = DataTable(rows, columns, container_width=960)
    table.on("row-select", lambda rows: print(len(rows), "selected"))
    table.sort_by("name")
    table.set_filter("status", "active")
    table.displayed_rows()

Filter and search changes in server mode are debounced, width
recalculation after a column or container change is debounced, and local
filter changes are applied on the next scheduler tick. All timers come from
the ``scheduler`` passed in (``threading.Timer`` by default).
"""

# pylint: disable=too-many-instance-attributes,too-many-public-methods

from __future__ import annotations

import inspect
import threading

from collections.abc import Callable, Iterable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .columns import Column, ColumnFilter, filter_snapshot, normalize_columns, unique_field
from .config import GridwrightSettings, SizingStrategy, SortDirection, get_settings
from .exceptions import SessionClosedError
from .formatting import CellFormatter, pagination_text
from .log import debug, exception, warn
from .pipeline import PaginationData, PipelineResult, PipelineState, run_pipeline
from .scheduling import Debouncer, Scheduler
from .selection import SelectionState, SelectionTracker
from .widths import (
    Breakpoint,
    ColumnWidth,
    TableLayout,
    TextMeasurer,
    allocate_widths,
    fallback_widths,
    get_breakpoint,
    table_layout,
)


ChangeType = Literal["sort", "filter", "search", "pagesize", "page", "reset"]

# Server changes that send the handler back to the first page
RESET_PAGE_CHANGES: frozenset[str] = frozenset({"filter", "search", "pagesize", "reset"})

TABLE_EVENTS: frozenset[str] = frozenset(
    {
        "sort-change",
        "page-change",
        "page-size-change",
        "filter-change",
        "search-change",
        "row-select",
        "row-click",
        "row-double-click",
        "server-change",
    }
)

EventHandler = Callable[..., Any]

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def _positional_arity(handler: EventHandler) -> int:
    """Count the required positional parameters of an event handler."""
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return 1
    return len([p for p in params if p.kind in _POSITIONAL and p.default is p.empty])


class ServerChange(BaseModel):
    """State descriptor emitted to the external handler in server mode."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(alias="currentPage")
    page_size: int = Field(alias="pageSize")
    offset: int
    sort_column: str | None = Field(default=None, alias="sortColumn")
    sort_direction: SortDirection = Field(default="asc", alias="sortDirection")
    search: str = ""
    column_filters: list[ColumnFilter] = Field(default_factory=list, alias="columnFilters")
    change_type: ChangeType = Field(alias="changeType")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys."""
        return self.model_dump(by_alias=True)


class DataTable:
    """One table session: rows, columns, widths, pipeline and selection.

    Parameters
    ----------
    rows : iterable, optional
        Records of any shape readable by dotted paths (mappings, objects,
        sequences). The collection is copied; records are not.
    columns : iterable of Column or dict, optional
        Column declarations, normalized on assignment.
    settings : GridwrightSettings, optional
        Configuration. Defaults to ``get_settings()``.
    server_mode : bool
        Delegate filtering, sorting and paging to an external handler.
    total_rows : int
        Row count reported by the external handler in server mode.
    container_width : float
        Measured container width in pixels. Zero means "not measured yet".
    strategy : str, optional
        Sizing strategy; defaults to ``settings.layout.sizing_strategy``.
    scheduler : Scheduler, optional
        Timer source for every delayed action.
    measure : callable, optional
        ``(text, font_weight, font_size) -> pixels`` for content-aware sizing.
    formatter : CellFormatter, optional
        Renders cells for measurement and display.
    """

    def __init__(
        self,
        rows: Iterable[Any] | None = None,
        columns: Iterable[Column | dict[str, Any]] | None = None,
        *,
        settings: GridwrightSettings | None = None,
        server_mode: bool = False,
        total_rows: int = 0,
        container_width: float = 0,
        strategy: SizingStrategy | None = None,
        scheduler: Scheduler | None = None,
        measure: TextMeasurer | None = None,
        formatter: CellFormatter | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        table = self.settings.table
        layout = self.settings.layout

        self.strategy: SizingStrategy = strategy or layout.sizing_strategy
        self.measure = measure
        self.formatter = formatter or CellFormatter(texts=self.settings.text)
        self.state = PipelineState(
            page_size=table.page_size,
            sort_column=table.sort_column,
            sort_direction=table.sort_direction,
            pagination=table.pagination,
            server_mode=server_mode,
            total_rows=max(0, total_rows),
            numbers_count=table.show_numbers_count,
        )
        self.loading = False

        self._lock = threading.RLock()
        self._handlers: dict[str, list[EventHandler]] = {}
        self._closed = False

        self._rows: list[Any] = list(rows or [])
        self._columns: list[Column] = normalize_columns(columns or [])
        self._selection = SelectionTracker(unique_field(self._columns))
        self._result: PipelineResult | None = None

        self._container_width = max(0.0, float(container_width))
        self._breakpoint: Breakpoint = get_breakpoint(self._container_width)
        self._widths: list[ColumnWidth] | None = None

        self._width_timer = Debouncer("width", layout.recalculate_delay_ms, scheduler)
        self._filter_timer = Debouncer("filter", table.filter_debounce_ms, scheduler)
        self._search_timer = Debouncer("search", table.search_debounce_ms, scheduler)

        if self._columns and self._container_width > 0:
            self._schedule_width_recalculation()

    # --- Events ---

    def on(self, event: str, handler: EventHandler) -> bool:
        """Register a handler for a table event.

        Handlers take ``(data)`` or ``(data, event)``. Returns False for an
        unknown event name.
        """
        if event not in TABLE_EVENTS:
            warn(f"Unknown table event {event!r}; expected one of {sorted(TABLE_EVENTS)}")
            return False
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)
        return True

    def off(self, event: str, handler: EventHandler | None = None) -> None:
        """Remove one handler, or every handler for ``event``."""
        with self._lock:
            if handler is None:
                self._handlers.pop(event, None)
            elif handler in self._handlers.get(event, []):
                self._handlers[event].remove(handler)

    def _emit(self, event: str, data: Any) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                if _positional_arity(handler) >= 2:
                    handler(data, event)
                else:
                    handler(data)
            except Exception:  # pylint: disable=broad-exception-caught
                exception(f"Error in {event!r} handler")

    def _check_open(self, action: str) -> None:
        if self._closed:
            raise SessionClosedError("DataTable session is closed", action=action)

    # --- Data and columns ---

    @property
    def rows(self) -> list[Any]:
        """The full row collection (a copy of what was passed in)."""
        return list(self._rows)

    @property
    def columns(self) -> list[Column]:
        """Normalized columns, in declaration order."""
        return self._columns

    @property
    def server_mode(self) -> bool:
        """True when filtering, sorting and paging are delegated."""
        return self.state.server_mode

    @server_mode.setter
    def server_mode(self, value: bool) -> None:
        with self._lock:
            self.state.server_mode = bool(value)
            self._invalidate_rows()

    @property
    def total_rows(self) -> int:
        """Row count used for pagination."""
        return self.pagination().total_rows

    def set_rows(self, rows: Iterable[Any], total_rows: int | None = None) -> None:
        """Replace the row collection.

        In server mode ``total_rows`` is the handler's count of matching rows.
        """
        self._check_open("set_rows")
        with self._lock:
            self._rows = list(rows)
            if total_rows is not None:
                self.state.total_rows = max(0, total_rows)
            self._invalidate_rows()
        if self.settings.layout.content_aware:
            self._schedule_width_recalculation()

    def set_columns(self, columns: Iterable[Column | dict[str, Any]]) -> None:
        """Replace and normalize the column set; widths are recalculated."""
        self._check_open("set_columns")
        with self._lock:
            self._columns = normalize_columns(columns)
            self._selection.unique_field = unique_field(self._columns)
            self._widths = None
            self._invalidate_rows()
        self._schedule_width_recalculation()

    def set_loading(self, loading: bool) -> None:
        """Mark the table as waiting for data; page navigation is ignored meanwhile."""
        self.loading = bool(loading)

    def loading_row_count(self) -> int:
        """Number of placeholder rows to show while loading."""
        return self.state.page_size

    def column(self, field: str) -> Column | None:
        """Look up a column by field path."""
        for col in self._columns:
            if col.field == field:
                return col
        return None

    # --- Widths ---

    @property
    def container_width(self) -> float:
        """Last measured container width."""
        return self._container_width

    @property
    def breakpoint(self) -> Breakpoint:
        """Responsive bucket of the current container width."""
        return self._breakpoint

    @property
    def reserved_width(self) -> int:
        """Width taken by the checkbox column, if shown."""
        if self.settings.table.has_checkbox:
            return self.settings.layout.checkbox_column_width
        return 0

    def set_container_width(self, width: float) -> None:
        """Record a new container measurement and schedule a width recalculation."""
        self._check_open("set_container_width")
        width = max(0.0, float(width))
        with self._lock:
            if width == self._container_width:
                return
            self._container_width = width
            breakpoint = get_breakpoint(width)
            if breakpoint != self._breakpoint:
                debug(f"Breakpoint changed: {self._breakpoint} -> {breakpoint}")
                self._breakpoint = breakpoint
        self._schedule_width_recalculation()

    def set_sizing_strategy(self, strategy: SizingStrategy) -> None:
        """Switch the sizing strategy and schedule a width recalculation."""
        self._check_open("set_sizing_strategy")
        self.strategy = strategy
        self._schedule_width_recalculation()

    def _schedule_width_recalculation(self) -> None:
        if not self.settings.layout.auto_calculate_widths:
            return
        self._width_timer.schedule(self.calculate_column_widths)

    def calculate_column_widths(self) -> list[ColumnWidth]:
        """Allocate widths now and cache them.

        Skipped while the container has not been measured; the cached (or
        fallback) widths are returned instead.
        """
        self._check_open("calculate_column_widths")
        with self._lock:
            if self._container_width <= 0:
                debug("Container not measured yet; skipping width calculation")
                return self.column_widths()
            sample: Sequence[Any] = ()
            if self.settings.layout.content_aware:
                sample = self._rows[: self.settings.layout.content_sample_rows]
            self._widths = allocate_widths(
                self._columns,
                self._container_width,
                rows=sample,
                strategy=self.strategy,
                breakpoint=self._breakpoint,
                measure=self.measure,
                formatter=self.formatter,
                reserved_width=self.reserved_width,
                settings=self.settings.layout,
            )
            return list(self._widths)

    def column_widths(self) -> list[ColumnWidth]:
        """Cached widths, or hint-based fallback widths before the first calculation."""
        with self._lock:
            if self._widths is not None:
                return list(self._widths)
            return fallback_widths(
                self._columns, self._container_width, self._breakpoint, self.settings.layout
            )

    def column_width(self, field: str) -> int | None:
        """Resolved width of one visible column."""
        for width in self.column_widths():
            if width.field == field:
                return width.width
        return None

    def layout(self) -> TableLayout:
        """Summary of how the table sits in its container."""
        return table_layout(
            self.column_widths(),
            self._container_width,
            reserved_width=self.reserved_width,
            strategy=self.strategy,
            settings=self.settings.layout,
        )

    # --- Row pipeline ---

    def _invalidate_rows(self) -> None:
        self._result = None

    def _pipeline(self) -> PipelineResult:
        with self._lock:
            if self._result is None:
                self._result = run_pipeline(self._rows, self._columns, self.state)
            return self._result

    def filtered_rows(self) -> list[Any]:
        """Rows after filtering and search, in sorted order."""
        return list(self._pipeline().ordered)

    def displayed_rows(self) -> list[Any]:
        """Rows of the current page."""
        return list(self._pipeline().displayed)

    def pagination(self) -> PaginationData:
        """Pagination descriptor for the current page."""
        return self._pipeline().pagination

    def pagination_text(self) -> str:
        """The "Showing x to y of z entries" line, or the no-data text when empty."""
        pagination = self.pagination()
        if pagination.total_rows == 0:
            return self.settings.text.no_data
        return pagination_text(self.settings.text.pagination_info, pagination)

    def display_value(self, record: Any, field: str) -> str:
        """Formatted text of one cell."""
        col = self.column(field)
        if col is None:
            return ""
        return self.formatter(record, col)

    @property
    def current_page(self) -> int:
        """Current 1-based page number."""
        return self.state.current_page

    @property
    def page_size(self) -> int:
        """Rows per page."""
        return self.state.page_size

    @property
    def sort_column(self) -> str | None:
        """Field currently sorted on."""
        return self.state.sort_column

    @property
    def sort_direction(self) -> SortDirection:
        """Direction of the current sort."""
        return self.state.sort_direction

    @property
    def search(self) -> str:
        """Committed global search text."""
        return self.state.search

    def sort_by(self, field: str) -> None:
        """Sort on ``field``; the same field again flips the direction."""
        self._check_open("sort_by")
        if not self.settings.table.sortable:
            debug(f"Ignoring sort on {field!r}; sorting is disabled")
            return
        col = self.column(field)
        if col is None or not col.sort:
            debug(f"Ignoring sort on unknown or unsortable column {field!r}")
            return
        with self._lock:
            direction: SortDirection = "asc"
            if field == self.state.sort_column:
                direction = "desc" if self.state.sort_direction == "asc" else "asc"
            self.state.sort_column = field
            self.state.sort_direction = direction
            self._invalidate_rows()
        if self.server_mode:
            self._emit_server_change("sort")
        else:
            self._emit("sort-change", {"field": field, "direction": direction})

    def set_filter(self, field: str, value: Any, condition: str | None = None) -> None:
        """Edit one column's filter and apply the change."""
        self._check_open("set_filter")
        col = self.column(field)
        if col is None or not col.filter:
            debug(f"Ignoring filter on unknown or unfilterable column {field!r}")
            return
        with self._lock:
            col.set_filter(value, condition)
        self.filter_changed()

    def clear_filter(self, field: str) -> None:
        """Reset one column's filter to its type default."""
        self._check_open("clear_filter")
        col = self.column(field)
        if col is None:
            return
        with self._lock:
            col.clear_filter()
        self.filter_changed()

    def filter_changed(self) -> None:
        """React to edited column filter state.

        Call this after changing ``Column.value`` or ``Column.condition``
        directly. The page goes back to 1; local mode recomputes on the next
        tick, server mode emits a debounced ``filter`` change.
        """
        self._check_open("filter_changed")
        with self._lock:
            self.state.current_page = 1
        if self.server_mode:
            delay = self.settings.table.filter_debounce_ms
            if delay > 0:
                self._filter_timer.schedule(lambda: self._emit_server_change("filter"))
            else:
                self._emit_server_change("filter")
        else:
            self._filter_timer.schedule(self._apply_local_filters, delay_ms=0)

    def _apply_local_filters(self) -> None:
        with self._lock:
            self._invalidate_rows()
        self._emit("filter-change", self._columns)

    def set_search(self, text: str) -> None:
        """Change the global search text.

        In server mode with a search delay the text is committed, and the
        change emitted, only after the delay passes without another edit.
        """
        self._check_open("set_search")
        text = text or ""
        delay = self.settings.table.search_debounce_ms
        if self.server_mode and delay > 0:
            self._search_timer.schedule(lambda: self._commit_search(text))
        else:
            self._commit_search(text)

    def _commit_search(self, text: str) -> None:
        with self._lock:
            self.state.search = text
            self.state.current_page = 1
            self._invalidate_rows()
        if self.server_mode:
            self._emit_server_change("search")
        else:
            self._emit("search-change", text)

    def go_to_page(self, page: int) -> bool:
        """Move to ``page``.

        Returns False, changing nothing, when the page is outside
        ``[1, max_page]`` or the table is loading.
        """
        self._check_open("go_to_page")
        with self._lock:
            if page < 1 or page > self.pagination().max_page or self.loading:
                debug(f"Ignoring navigation to page {page}")
                return False
            self.state.current_page = page
            self._invalidate_rows()
        if self.server_mode:
            self._emit_server_change("page")
        else:
            self._emit("page-change", page)
        return True

    def next_page(self) -> bool:
        """Move one page forward."""
        return self.go_to_page(self.state.current_page + 1)

    def previous_page(self) -> bool:
        """Move one page back."""
        return self.go_to_page(self.state.current_page - 1)

    def set_page_size(self, page_size: int) -> None:
        """Change the rows per page and go back to page 1."""
        self._check_open("set_page_size")
        if page_size < 1:
            warn(f"Ignoring invalid page size {page_size}")
            return
        options = self.settings.table.page_size_options
        if options and page_size not in options:
            warn(f"Page size {page_size} is not one of the offered options {options}")
        with self._lock:
            self.state.page_size = page_size
            self.state.current_page = 1
            self._invalidate_rows()
        if self.server_mode:
            self._emit_server_change("pagesize")
        else:
            self._emit("page-size-change", page_size)

    # --- Server mode ---

    def server_change(self, change_type: ChangeType) -> ServerChange:
        """Build the descriptor for a change without emitting it."""
        with self._lock:
            if change_type in RESET_PAGE_CHANGES:
                self.state.current_page = 1
            page = self.state.current_page
            size = self.state.page_size
            return ServerChange(
                current_page=page,
                page_size=size,
                offset=(page - 1) * size,
                sort_column=self.state.sort_column,
                sort_direction=self.state.sort_direction,
                search=self.state.search,
                column_filters=filter_snapshot(self._columns),
                change_type=change_type,
            )

    def _emit_server_change(self, change_type: ChangeType) -> None:
        change = self.server_change(change_type)
        debug(f"Server change: {change_type} (page {change.current_page})")
        self._emit("server-change", change)

    # --- Selection ---

    def _page_offset(self) -> int:
        if not self.state.pagination:
            return 0
        return self.pagination().offset

    def _row_at(self, index: int) -> Any | None:
        rows = self.displayed_rows()
        if 0 <= index < len(rows):
            return rows[index]
        return None

    @property
    def selected_all(self) -> SelectionState:
        """Tri-state aggregate over the displayed rows: False, True or None (some)."""
        with self._lock:
            return self._selection.aggregate(self.displayed_rows(), self._page_offset())

    def get_selected_rows(self) -> list[Any]:
        """Selected rows of the current page, in display order."""
        with self._lock:
            return self._selection.selected_rows(self.displayed_rows(), self._page_offset())

    def select_all(self, selected: bool = True) -> None:
        """Select or unselect every displayed row."""
        self._check_open("select_all")
        with self._lock:
            self._selection.set_all(self.displayed_rows(), selected, self._page_offset())
        self._emit("row-select", self.get_selected_rows())

    def _set_row(self, index: int, selected: bool | None) -> bool:
        with self._lock:
            row = self._row_at(index)
            if row is None:
                debug(f"No displayed row at index {index}")
                return False
            position = self._page_offset() + index
            if selected is None:
                self._selection.toggle(row, position)
            else:
                self._selection.set_selected(row, position, selected)
        self._emit("row-select", self.get_selected_rows())
        return True

    def select_row(self, index: int) -> bool:
        """Select the displayed row at ``index``."""
        self._check_open("select_row")
        return self._set_row(index, True)

    def unselect_row(self, index: int) -> bool:
        """Unselect the displayed row at ``index``."""
        self._check_open("unselect_row")
        return self._set_row(index, False)

    def toggle_row(self, index: int) -> bool:
        """Flip the selection of the displayed row at ``index``."""
        self._check_open("toggle_row")
        return self._set_row(index, None)

    def is_row_selected(self, index: int) -> bool:
        """Return True when the displayed row at ``index`` is selected."""
        with self._lock:
            row = self._row_at(index)
            if row is None:
                return False
            return self._selection.is_selected(row, self._page_offset() + index)

    def clear_selected_rows(self) -> None:
        """Unselect every displayed row."""
        self._check_open("clear_selected_rows")
        with self._lock:
            self._selection.set_all(self.displayed_rows(), False, self._page_offset())

    def row_click(self, index: int) -> None:
        """Handle a click on a displayed row."""
        self._check_open("row_click")
        row = self._row_at(index)
        if row is None:
            return
        if self.settings.table.select_row_on_click:
            self._set_row(index, None)
        self._emit("row-click", {"item": row, "index": index})

    def row_double_click(self, index: int) -> None:
        """Handle a double click on a displayed row."""
        self._check_open("row_double_click")
        row = self._row_at(index)
        if row is not None:
            self._emit("row-double-click", row)

    # --- Session ---

    def reset(self) -> None:
        """Return to the configured initial state.

        Page 1, configured page size and sort, empty search, every column
        filter cleared, nothing selected and pending filter or search
        emissions dropped. Server mode emits a ``reset`` change.
        """
        self._check_open("reset")
        table = self.settings.table
        self._filter_timer.cancel()
        self._search_timer.cancel()
        with self._lock:
            self.state.current_page = 1
            self.state.page_size = table.page_size
            self.state.sort_column = table.sort_column
            self.state.sort_direction = table.sort_direction
            self.state.search = ""
            for col in self._columns:
                col.clear_filter()
            self._selection.clear()
            self._invalidate_rows()
        if self.server_mode:
            self._emit_server_change("reset")

    @property
    def closed(self) -> bool:
        """True after ``close()``."""
        return self._closed

    def close(self) -> None:
        """End the session: cancel pending timers and drop handlers."""
        if self._closed:
            return
        for timer in (self._width_timer, self._filter_timer, self._search_timer):
            timer.close()
        with self._lock:
            self._handlers.clear()
            self._closed = True
        debug("DataTable session closed")

    def __enter__(self) -> DataTable:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
