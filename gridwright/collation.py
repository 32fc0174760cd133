"""Natural, case-insensitive collation.

``natural_key`` turns any cell value into a tuple that sorts the way a
person reads a table column:

- letters compare case- and accent-insensitively (``"émile" == "Emile"``)
- digit runs compare by numeric value (``"Item 2" < "Item 10"``)
- digit runs sort before letters at the same position
- missing and empty values sort first

Keys are plain tuples, so they work with ``sorted(key=...)`` and keep
Python's sort stability: records with equal keys retain their input order.
"""

from __future__ import annotations

import math
import re
import unicodedata

from datetime import date, datetime
from typing import Any

from .fields import to_text


_TOKEN_RE = re.compile(r"(\d+)")

# Token kinds; the numeric kind sorts first
_NUMBER = 0
_TEXT = 1

NaturalKey = tuple[tuple[int, Any], ...]


def fold_text(text: str) -> str:
    """Case-fold and strip accents for comparison."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def natural_key(value: Any) -> NaturalKey:
    """Build the collation key for a single value."""
    if value is None:
        return ()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return ()
        return ((_NUMBER, value),)
    if isinstance(value, (datetime, date)):
        text = value.isoformat()
    else:
        text = to_text(value)

    tokens: list[tuple[int, Any]] = []
    for part in _TOKEN_RE.split(fold_text(text)):
        if not part:
            continue
        if part.isdecimal():
            tokens.append((_NUMBER, int(part)))
        else:
            tokens.append((_TEXT, part))
    return tuple(tokens)


def natural_compare(a: Any, b: Any) -> int:
    """Three-way compare two values by their natural keys.

    Returns
    -------
    int
        Negative when ``a`` sorts first, positive when ``b`` does, 0 when equal.
    """
    key_a = natural_key(a)
    key_b = natural_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0
