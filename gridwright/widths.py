"""Column width allocation.

Turns column width hints and a measured container into one concrete pixel
width per visible column. Everything here is a pure function of its inputs;
``allocate_widths`` is the entry point.

Strategies:
- ``auto-width``: every column gets ``max(min_width, preferred_width)``; the
  table may overflow or underfill its container.
- ``auto-fit``: widths are grown or shrunk to fill the container exactly.
- ``hybrid``: strict columns keep their preferred width and the remaining
  space is fitted over the other columns.

Whatever the strategy, when ``respect_column_min_widths`` is on and the
column minimums do not fit, every column is forced to
``max(min_width, preferred_width)`` and the caller is expected to scroll.
"""

# pylint: disable=too-many-arguments

from __future__ import annotations

import math

from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Literal

from .columns import Column, visible_columns
from .config import LayoutSettings
from .formatting import CellFormatter
from .log import debug


if TYPE_CHECKING:
    from .config import SizingStrategy


Breakpoint = Literal["xs", "sm", "md", "lg", "xl"]

# Upper container width bound of each breakpoint; wider containers are "xl"
BREAKPOINTS: dict[str, int] = {"xs": 480, "sm": 768, "md": 1024, "lg": 1280, "xl": 1536}

BASE_WIDTHS: dict[str, dict[str, int]] = {
    "bool": {"xs": 60, "sm": 70, "md": 80, "lg": 90, "xl": 100},
    "number": {"xs": 80, "sm": 90, "md": 100, "lg": 110, "xl": 120},
    "date": {"xs": 100, "sm": 110, "md": 120, "lg": 130, "xl": 140},
    "string": {"xs": 100, "sm": 120, "md": 140, "lg": 160, "xl": 180},
}

MIN_WIDTHS: dict[str, dict[str, int]] = {
    "bool": {"xs": 50, "sm": 60, "md": 70, "lg": 70, "xl": 70},
    "number": {"xs": 60, "sm": 70, "md": 80, "lg": 80, "xl": 80},
    "date": {"xs": 80, "sm": 90, "md": 100, "lg": 100, "xl": 100},
    "string": {"xs": 80, "sm": 90, "md": 100, "lg": 100, "xl": 100},
}

READABILITY_MIN_WIDTHS: dict[str, int] = {"bool": 80, "number": 100, "date": 120, "string": 120}

MAX_WIDTHS: dict[str, dict[str, int]] = {
    "bool": {"xs": 80, "sm": 100, "md": 120, "lg": 140, "xl": 160},
    "number": {"xs": 120, "sm": 150, "md": 180, "lg": 200, "xl": 220},
    "date": {"xs": 140, "sm": 160, "md": 180, "lg": 200, "xl": 220},
    "string": {"xs": 200, "sm": 250, "md": 300, "lg": 350, "xl": 400},
}

# Share of the container a column of each type may take at most
MAX_WIDTH_RATIOS: dict[str, float] = {"bool": 0.10, "number": 0.15, "date": 0.20, "string": 0.40}

FONT_SIZES: dict[str, str] = {"xs": "11px", "sm": "12px", "md": "13px", "lg": "14px", "xl": "14px"}
HEADER_FONT_WEIGHT = "600"
CELL_FONT_WEIGHT = "400"

TYPE_PRIORITY: dict[str, int] = {"string": 2, "number": 3, "date": 4, "bool": 5}
UNIQUE_PRIORITY = 1
UNKNOWN_PRIORITY = 6

# Leftover smaller than this after fitting is spread over expandable columns
TRAILING_REMAINDER = 20

TextMeasurer = Callable[[str, str, str], float]


# --- Responsive defaults ---


def get_breakpoint(container_width: float) -> Breakpoint:
    """Bucket a container width into a responsive breakpoint."""
    for name in ("xs", "sm", "md", "lg"):
        if container_width <= BREAKPOINTS[name]:
            return name  # type: ignore[return-value]
    return "xl"


def _table_key(column_type: str) -> str:
    return column_type if column_type in BASE_WIDTHS else "string"


def responsive_base_width(column_type: str, breakpoint: Breakpoint) -> int:
    """Default preferred width for a column type at a breakpoint."""
    return BASE_WIDTHS[_table_key(column_type)][breakpoint]


def responsive_min_width(
    column_type: str, breakpoint: Breakpoint, preserve_readability: bool = True
) -> int:
    """Default minimum width, raised to the readability floor when asked."""
    key = _table_key(column_type)
    min_width = MIN_WIDTHS[key][breakpoint]
    if preserve_readability:
        min_width = max(min_width, READABILITY_MIN_WIDTHS[key])
    return min_width


def responsive_max_width(column_type: str, breakpoint: Breakpoint, container_width: float) -> int:
    """Default maximum width: the smaller of the container share and the absolute cap."""
    key = _table_key(column_type)
    percentage_max = int(max(container_width, 0) * MAX_WIDTH_RATIOS[key])
    return min(percentage_max, MAX_WIDTHS[key][breakpoint])


def font_size(breakpoint: Breakpoint) -> str:
    """CSS font size used to measure text at a breakpoint."""
    return FONT_SIZES[breakpoint]


def available_width(
    container_width: float,
    reserved_width: int = 0,
    padding: int = 32,
    minimum: int = 300,
) -> int:
    """Usable width for columns, floored at ``minimum``.

    Parameters
    ----------
    container_width : float
        Measured container width in pixels.
    reserved_width : int
        Width taken by fixed side elements such as a checkbox column.
    padding : int
        Constant allowance for borders and scrollbars.
    minimum : int
        Floor applied to the result.
    """
    return max(int(container_width) - reserved_width - padding, minimum)


def approximate_text_width(text: str, font_weight: str, font_size_css: str) -> float:
    """Estimate rendered text width without a drawing surface.

    Used when the host supplies no measurement function. Bold text is
    assumed slightly wider than regular text.
    """
    try:
        size = float(str(font_size_css).rstrip("px") or 14)
    except ValueError:
        size = 14.0
    try:
        bold = int(font_weight) >= 600
    except (TypeError, ValueError):
        bold = str(font_weight).lower() == "bold"
    return math.ceil(len(text) * size * (0.6 if bold else 0.55))


def column_priority(column: Column) -> int:
    """Rank a column for callers that need a tie-break: lower ranks first."""
    if column.is_unique:
        return UNIQUE_PRIORITY
    return TYPE_PRIORITY.get(column.type, UNKNOWN_PRIORITY)


# --- Resolved widths ---


@dataclass
class ColumnWidth:
    """Resolved width of one visible column."""

    field: str
    width: int
    min_width: int
    max_width: int
    preferred_width: int
    priority: int = TYPE_PRIORITY["string"]
    shrink_priority: int = 5
    is_flexible: bool = True
    is_strict: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys."""
        data = asdict(self)
        return {
            "field": data["field"],
            "width": data["width"],
            "minWidth": data["min_width"],
            "maxWidth": data["max_width"],
            "preferredWidth": data["preferred_width"],
            "priority": data["priority"],
            "shrinkPriority": data["shrink_priority"],
            "isFlexible": data["is_flexible"],
            "isStrict": data["is_strict"],
        }


def _clamp(value: int, lower: int, upper: int) -> int:
    # The minimum wins when the hints contradict each other
    return max(lower, min(upper, value))


def _resolve_hints(
    column: Column, breakpoint: Breakpoint, container_width: float, settings: LayoutSettings
) -> tuple[int, int, int]:
    min_width = column.min_width or responsive_min_width(
        column.type, breakpoint, settings.preserve_readability
    )
    max_width = column.max_width or responsive_max_width(column.type, breakpoint, container_width)
    preferred = (
        column.preferred_width or column.width or responsive_base_width(column.type, breakpoint)
    )
    return min_width, max_width, preferred


def fallback_widths(
    columns: Sequence[Column],
    container_width: float,
    breakpoint: Breakpoint | None = None,
    settings: LayoutSettings | None = None,
) -> list[ColumnWidth]:
    """Widths straight from the hints, used before or instead of allocation."""
    settings = settings or LayoutSettings()
    breakpoint = breakpoint or get_breakpoint(container_width)
    result = []
    for col in visible_columns(columns):
        min_width, max_width, preferred = _resolve_hints(col, breakpoint, container_width, settings)
        fallback = col.width or responsive_base_width(col.type, breakpoint)
        result.append(
            ColumnWidth(
                field=col.field,
                width=preferred if col.strict else fallback,
                min_width=min_width,
                max_width=max_width,
                preferred_width=preferred,
                priority=column_priority(col),
                shrink_priority=col.shrink_priority,
                is_flexible=True,
                is_strict=col.strict,
            )
        )
    return result


def initial_widths(
    columns: Sequence[Column],
    container_width: float,
    breakpoint: Breakpoint,
    rows: Sequence[Any] = (),
    measure: TextMeasurer | None = None,
    formatter: Callable[[Any, Column], str] | None = None,
    settings: LayoutSettings | None = None,
) -> list[ColumnWidth]:
    """Compute each visible column's ideal width before redistribution.

    With content-aware sizing on, the header text and the formatted values
    of the first ``content_sample_rows`` rows are measured; the ideal width
    is ``clamp(min, max, max(preferred, ceil(max(header, average))))``.
    """
    settings = settings or LayoutSettings()
    formatter = formatter or CellFormatter()
    size = font_size(breakpoint)
    sample = list(rows[: settings.content_sample_rows]) if settings.content_aware else []
    measure_text = measure or approximate_text_width

    result = []
    for col in visible_columns(columns):
        min_width, max_width, preferred = _resolve_hints(col, breakpoint, container_width, settings)

        content_width = 0
        if settings.content_aware:
            header_width = measure_text(col.header, HEADER_FONT_WEIGHT, size)
            header_width += settings.header_allowance
            total = header_width
            for row in sample:
                text = formatter(row, col)
                total += measure_text(text, CELL_FONT_WEIGHT, size) + settings.padding_offset
            average = total / (len(sample) + 1)
            content_width = math.ceil(max(header_width, average))

        if col.strict:
            # Strict columns are never resized, not even into their own range
            ideal = preferred
        else:
            ideal = _clamp(max(preferred, content_width), min_width, max_width)
        result.append(
            ColumnWidth(
                field=col.field,
                width=ideal,
                min_width=min_width,
                max_width=max_width,
                preferred_width=preferred,
                priority=column_priority(col),
                shrink_priority=col.shrink_priority,
                is_flexible=not col.width and not col.strict,
                is_strict=col.strict,
            )
        )
    return result


# --- Redistribution ---


def _total(widths: Sequence[ColumnWidth]) -> int:
    return sum(w.width for w in widths)


def _grow(flexible: list[ColumnWidth], extra: int) -> None:
    """Hand out ``extra`` pixels proportionally, never past each max width."""
    active = [w for w in flexible if w.width < w.max_width]
    while extra > 0 and active:
        weight = sum(w.width for w in active)
        spent = 0
        for w in active:
            share = extra * w.width / weight if weight > 0 else extra / len(active)
            increase = math.floor(min(share, w.max_width - w.width))
            w.width += increase
            spent += increase
        if spent == 0:
            break
        extra -= spent
        active = [w for w in active if w.width < w.max_width]


def _spread(columns: list[ColumnWidth], extra: int) -> None:
    """Hand out ``extra`` pixels proportionally to current width, uncapped."""
    weight = sum(w.width for w in columns)
    for w in columns:
        share = extra * w.width / weight if weight > 0 else extra / len(columns)
        w.width += math.floor(share)


def _shrink(
    widths: list[ColumnWidth],
    flexible: list[ColumnWidth],
    excess: int,
    respect_min_widths: bool,
) -> None:
    """Remove ``excess`` pixels, lowest shrink priority first."""
    reducible = sorted(
        (w for w in flexible if w.width > w.min_width), key=lambda w: w.shrink_priority
    )
    remaining = excess
    for w in reducible:
        reduction = min(remaining, w.width - w.min_width)
        w.width -= reduction
        remaining -= reduction
        if remaining <= 0:
            return

    if remaining > 0 and not respect_min_widths:
        scalable = [w for w in widths if not w.is_strict]
        current = _total(widths)
        if current <= 0 or not scalable:
            return
        scale = max(0.0, (current - remaining) / current)
        debug(f"Scaling columns by {scale:.3f} to absorb {remaining}px")
        for w in scalable:
            w.width = max(w.min_width, math.floor(w.width * scale))


def _fit(widths: list[ColumnWidth], available: int, respect_min_widths: bool) -> None:
    """Grow or shrink ``widths`` so they add up to ``available``."""
    flexible = [w for w in widths if w.is_flexible and not w.is_strict]
    total = _total(widths)

    if total < available:
        extra = available - total
        if flexible:
            _grow(flexible, extra)
            leftover = available - _total(widths)
            if leftover > 0:
                below_max = [w for w in flexible if w.width < w.max_width]
                _spread(below_max or flexible, leftover)
        elif widths:
            per_column = extra // len(widths)
            for w in widths:
                w.width += per_column
    elif total > available:
        _shrink(widths, flexible, total - available, respect_min_widths)

    remainder = available - _total(widths)
    if 0 < remainder < TRAILING_REMAINDER:
        expandable = [w for w in flexible if w.width < w.max_width]
        if expandable:
            extra_per_column = remainder // len(expandable)
            for w in expandable:
                w.width = min(w.max_width, w.width + extra_per_column)


def _fit_hybrid(widths: list[ColumnWidth], available: int, respect_min_widths: bool) -> None:
    strict = [w for w in widths if w.is_strict]
    others = [w for w in widths if not w.is_strict]
    for w in strict:
        w.width = w.preferred_width

    remaining = max(0, available - _total(strict))
    flexible = [w for w in others if w.is_flexible]
    flexible_min = sum(w.min_width for w in flexible)

    if flexible and flexible_min > remaining:
        # Not even the flexible minimums fit: share what is left by minimum
        for w in flexible:
            w.width = max(w.min_width, math.floor(remaining * w.min_width / flexible_min))
        return

    _fit(others, remaining, respect_min_widths)


def redistribute_widths(
    widths: list[ColumnWidth],
    available: int,
    strategy: SizingStrategy = "auto-fit",
    respect_min_widths: bool = False,
) -> list[ColumnWidth]:
    """Adjust resolved widths in place for the given strategy.

    Parameters
    ----------
    widths : list of ColumnWidth
        Ideal widths, typically from ``initial_widths``. Mutated in place.
    available : int
        Usable container width in pixels.
    strategy : str
        ``"auto-fit"``, ``"auto-width"`` or ``"hybrid"``.
    respect_min_widths : bool
        Never go below minimums; overflow instead.

    Returns
    -------
    list of ColumnWidth
        The same list, for chaining.
    """
    total_min = sum(w.min_width for w in widths)

    if strategy == "auto-width" or (respect_min_widths and total_min > available):
        if strategy != "auto-width":
            debug(f"Column minimums ({total_min}px) exceed {available}px; forcing minimums")
        for w in widths:
            w.width = max(w.min_width, w.preferred_width)
        return widths

    if strategy == "hybrid":
        _fit_hybrid(widths, available, respect_min_widths)
    else:
        _fit(widths, available, respect_min_widths)
    return widths


def allocate_widths(
    columns: Sequence[Column],
    container_width: float,
    *,
    rows: Sequence[Any] = (),
    strategy: SizingStrategy | None = None,
    breakpoint: Breakpoint | None = None,
    measure: TextMeasurer | None = None,
    formatter: Callable[[Any, Column], str] | None = None,
    reserved_width: int = 0,
    settings: LayoutSettings | None = None,
) -> list[ColumnWidth]:
    """Allocate a width to every visible column.

    Parameters
    ----------
    columns : sequence of Column
        Normalized columns; hidden ones are skipped.
    container_width : float
        Measured container width in pixels.
    rows : sequence, optional
        Records sampled for content-aware sizing.
    strategy : str, optional
        Sizing strategy; defaults to ``settings.sizing_strategy``.
    breakpoint : str, optional
        Responsive bucket; derived from ``container_width`` when omitted.
    measure : callable, optional
        ``(text, font_weight, font_size) -> pixels``. Defaults to a
        character-count estimate.
    formatter : callable, optional
        ``(record, column) -> str`` used to render sampled cells.
    reserved_width : int
        Width taken by fixed side elements (checkbox column).
    settings : LayoutSettings, optional
        Layout configuration.

    Returns
    -------
    list of ColumnWidth
        One entry per visible column, in column order.
    """
    settings = settings or LayoutSettings()
    strategy = strategy or settings.sizing_strategy
    breakpoint = breakpoint or get_breakpoint(container_width)

    widths = initial_widths(
        columns,
        container_width,
        breakpoint,
        rows=rows,
        measure=measure,
        formatter=formatter,
        settings=settings,
    )
    if not widths:
        return widths

    if container_width <= 0:
        debug("No container width; using forced minimum widths")
        for w in widths:
            w.width = max(w.min_width, w.preferred_width)
        return widths

    available = available_width(
        container_width,
        reserved_width=reserved_width,
        padding=settings.container_padding,
        minimum=settings.min_available_width,
    )
    redistribute_widths(widths, available, strategy, settings.respect_column_min_widths)
    debug(
        f"Allocated {len(widths)} columns ({strategy}, {breakpoint}): "
        f"{_total(widths)}px of {available}px"
    )
    return widths


# --- Table layout ---


@dataclass
class TableLayout:
    """How the table as a whole sits in its container."""

    total_width: int
    min_width: int
    css_width: str
    css_min_width: str
    horizontal_scroll: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys."""
        return {
            "totalWidth": self.total_width,
            "minWidth": self.min_width,
            "cssWidth": self.css_width,
            "cssMinWidth": self.css_min_width,
            "horizontalScroll": self.horizontal_scroll,
        }


def table_layout(
    widths: Sequence[ColumnWidth],
    container_width: float,
    reserved_width: int = 0,
    strategy: SizingStrategy | None = None,
    settings: LayoutSettings | None = None,
    min_table_width: str | None = None,
) -> TableLayout:
    """Summarize total width, CSS widths and the need for horizontal scrolling."""
    settings = settings or LayoutSettings()
    strategy = strategy or settings.sizing_strategy

    total = _total(widths) + reserved_width
    min_total = sum(w.min_width for w in widths) + reserved_width

    scroll = (
        settings.allow_horizontal_scroll and strategy != "auto-fit" and total > container_width
    )

    if not settings.expand_to_fill_container or strategy == "auto-width":
        css_width = f"{total}px"
    elif strategy == "hybrid":
        css_width = f"{total}px" if total > container_width else "100%"
    else:
        css_width = "100%"

    if min_table_width:
        css_min_width = min_table_width
    elif settings.respect_column_min_widths or settings.preserve_readability:
        css_min_width = f"{min_total}px"
    else:
        css_min_width = "100%"

    return TableLayout(
        total_width=total,
        min_width=min_total,
        css_width=css_width,
        css_min_width=css_min_width,
        horizontal_scroll=scroll,
    )
