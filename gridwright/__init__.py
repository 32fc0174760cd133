"""gridwright - tabular data presentation engine.

Given records and column declarations, gridwright decides the pixel width
of every column for a measured container and produces the rows to display
for the current page, sort, filters and search, either computed locally or
delegated to an external handler.
"""

from .collation import fold_text, natural_compare, natural_key
from .columns import Column, ColumnFilter, normalize_columns
from .config import (
    GridwrightSettings,
    LayoutSettings,
    LogSettings,
    TableSettings,
    TextSettings,
    get_settings,
)
from .exceptions import DataSourceError, GridwrightException, SessionClosedError
from .fields import get_field_value
from .formatting import CellFormatter, pagination_text
from .log import configure_logging, enable_debug
from .pipeline import (
    PaginationData,
    PipelineResult,
    PipelineState,
    build_pagination,
    run_pipeline,
)
from .scheduling import Debouncer, Scheduler, ThreadingScheduler
from .selection import SelectionTracker
from .table import DataTable, ServerChange
from .widths import (
    ColumnWidth,
    TableLayout,
    allocate_widths,
    get_breakpoint,
    redistribute_widths,
    table_layout,
)


__version__ = "0.1.0"

__all__ = [
    "CellFormatter",
    "Column",
    "ColumnFilter",
    "ColumnWidth",
    "DataSourceError",
    "DataTable",
    "Debouncer",
    "GridwrightException",
    "GridwrightSettings",
    "LayoutSettings",
    "LogSettings",
    "PaginationData",
    "PipelineResult",
    "PipelineState",
    "Scheduler",
    "SelectionTracker",
    "ServerChange",
    "SessionClosedError",
    "TableLayout",
    "TableSettings",
    "TextSettings",
    "ThreadingScheduler",
    "__version__",
    "allocate_widths",
    "build_pagination",
    "configure_logging",
    "enable_debug",
    "fold_text",
    "get_breakpoint",
    "get_field_value",
    "get_settings",
    "natural_compare",
    "natural_key",
    "normalize_columns",
    "pagination_text",
    "redistribute_widths",
    "run_pipeline",
    "table_layout",
]
