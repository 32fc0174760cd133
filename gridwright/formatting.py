"""Cell formatting collaborators.

Formatting is delegated to the host locale through the standard ``locale``
module; callers that need a fixed presentation pass their own callables to
``CellFormatter``.
"""

from __future__ import annotations

import locale
import math

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .config import TextSettings
from .fields import get_field_value, to_datetime, to_number, to_text


if TYPE_CHECKING:
    from .columns import Column
    from .pipeline import PaginationData


def locale_date(value: datetime) -> str:
    """Format a datetime with the locale's date representation."""
    return value.strftime("%x")


def locale_number(value: float) -> str:
    """Format a number with locale grouping and up to three decimals."""
    if float(value).is_integer():
        return locale.format_string("%d", int(value), grouping=True)
    text = locale.format_string("%.3f", value, grouping=True)
    point = locale.localeconv().get("decimal_point") or "."
    return text.rstrip("0").rstrip(point) if point in text else text


def format_display_date(value: Any, formatter: Callable[[datetime], str] = locale_date) -> str:
    """Format a date cell, returning ``""`` for empty or unparseable values."""
    parsed = to_datetime(value)
    if parsed is None:
        return ""
    return formatter(parsed)


def format_number(value: Any, formatter: Callable[[float], str] = locale_number) -> str:
    """Format a number cell, returning ``""`` for empty or non-numeric values."""
    if value is None or value == "":
        return ""
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return ""
    return formatter(number)


@dataclass
class CellFormatter:
    """Turn a record's field into display text according to the column type.

    Parameters
    ----------
    texts : TextSettings
        Labels used for boolean cells.
    date_formatter : callable
        Renders a parsed datetime; defaults to the locale date format.
    number_formatter : callable
        Renders a float; defaults to locale grouping.
    """

    texts: TextSettings = field(default_factory=TextSettings)
    date_formatter: Callable[[datetime], str] = locale_date
    number_formatter: Callable[[float], str] = locale_number

    def __call__(self, record: Any, column: Column) -> str:
        """Format ``record``'s value for ``column``."""
        return self.format_value(get_field_value(record, column.field), column.type)

    def format_value(self, value: Any, column_type: str) -> str:
        """Format a raw value for a column type."""
        if column_type == "bool":
            return self.texts.boolean_yes if value else self.texts.boolean_no
        if column_type == "date":
            return format_display_date(value, self.date_formatter)
        if column_type == "number":
            return format_number(value, self.number_formatter)
        return to_text(value)


def pagination_text(template: str, pagination: PaginationData) -> str:
    """Render the "Showing x to y of z" line for a pagination descriptor.

    ``{start}``, ``{end}`` and ``{total}`` are substituted; ``start`` is 0
    when the table is empty.
    """
    return template.format(
        start=pagination.first_row,
        end=pagination.last_row,
        total=pagination.total_rows,
    )
