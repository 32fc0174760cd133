"""Record field access and value coercion.

Records may be mappings, objects with attributes, or sequences. A dotted
path such as ``"owner.address.city"`` walks one level per segment; any
missing segment resolves the whole path to ``None``.
"""

from __future__ import annotations

import math

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any


def get_field_value(record: Any, path: str) -> Any | None:
    """Resolve a dotted field path against a record.

    Parameters
    ----------
    record : Any
        Mapping, attribute-bearing object, or sequence.
    path : str
        Dotted path. Integer segments index into sequences.

    Returns
    -------
    Any or None
        The resolved value, or None when any segment is missing.
    """
    if not path:
        return None

    current = record
    for key in path.split("."):
        if current is None:
            return None
        current = _lookup(current, key)
    return current


def _lookup(obj: Any, key: str) -> Any | None:
    if isinstance(obj, Mapping):
        return obj.get(key)
    if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
        try:
            return obj[int(key)]
        except (ValueError, IndexError):
            return None
    attribute = getattr(obj, key, None)
    # Methods of plain values such as str.upper are not fields
    return None if callable(attribute) else attribute


def is_blank(value: Any) -> bool:
    """Return True for None and the empty string."""
    return value is None or value == ""


def to_text(value: Any) -> str:
    """Render a value as display text.

    Booleans render lower-case and integral floats drop their fraction,
    so ``5.0`` and ``5`` read the same.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_number(value: Any) -> float:
    """Coerce a value to float, returning NaN when it is not numeric.

    NaN never compares equal or ordered, so a non-numeric cell simply
    fails every numeric filter.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d.%m.%Y", "%b %d %Y", "%d %b %Y")


def to_datetime(value: Any) -> datetime | None:
    """Parse a value into a datetime, or None when it is not a date.

    Accepts ``date``/``datetime`` objects, ISO 8601 strings, a few common
    calendar formats, and numbers as epoch milliseconds (UTC).
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def to_iso_date(value: Any) -> str:
    """Normalize a value to ``YYYY-MM-DD``, or ``""`` when unparseable."""
    parsed = to_datetime(value)
    if parsed is None:
        return ""
    return f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"
