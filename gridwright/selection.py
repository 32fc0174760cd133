"""Row selection tracking.

Selection is kept as a set of stable row keys rather than as flags written
onto the caller's records. A row's key is the value of the unique-key
column when the table has one, otherwise its absolute position in the
filtered and sorted sequence.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Any

from .fields import get_field_value
from .log import warn


# Tri-state aggregate: False = none, True = all, None = some
SelectionState = bool | None


class SelectionTracker:
    """Track which rows are selected and aggregate over a displayed page.

    Parameters
    ----------
    unique_field : str, optional
        Dotted path of the unique-key column. Without it rows are keyed by
        their absolute position.
    """

    def __init__(self, unique_field: str | None = None) -> None:
        self._unique_field = unique_field
        self._selected: set[Hashable] = set()

    @property
    def unique_field(self) -> str | None:
        """Field used to key rows, if any."""
        return self._unique_field

    @unique_field.setter
    def unique_field(self, value: str | None) -> None:
        """Change the key field; keys built from the old field are dropped."""
        if value != self._unique_field:
            self._selected.clear()
        self._unique_field = value

    def __len__(self) -> int:
        return len(self._selected)

    def key_for(self, record: Any, position: int) -> Hashable:
        """Stable key for a record at an absolute position."""
        if self._unique_field:
            value = get_field_value(record, self._unique_field)
            if value is not None:
                try:
                    hash(value)
                except TypeError:
                    warn(
                        f"Unique field {self._unique_field!r} holds an unhashable value; "
                        "falling back to row position"
                    )
                else:
                    return ("key", value)
        return ("position", position)

    def keys_for(self, rows: Sequence[Any], offset: int = 0) -> list[Hashable]:
        """Keys for a page of rows starting at absolute position ``offset``."""
        return [self.key_for(row, offset + i) for i, row in enumerate(rows)]

    def is_selected(self, record: Any, position: int) -> bool:
        """Return True when the record at ``position`` is selected."""
        return self.key_for(record, position) in self._selected

    def set_selected(self, record: Any, position: int, selected: bool) -> None:
        """Select or unselect one record."""
        key = self.key_for(record, position)
        if selected:
            self._selected.add(key)
        else:
            self._selected.discard(key)

    def toggle(self, record: Any, position: int) -> bool:
        """Flip one record's selection and return the new state."""
        selected = not self.is_selected(record, position)
        self.set_selected(record, position, selected)
        return selected

    def set_all(self, rows: Sequence[Any], selected: bool, offset: int = 0) -> None:
        """Set every displayed record to the same selection state."""
        keys = self.keys_for(rows, offset)
        if selected:
            self._selected.update(keys)
        else:
            self._selected.difference_update(keys)

    def selected_rows(self, rows: Sequence[Any], offset: int = 0) -> list[Any]:
        """The displayed records that are selected, in display order."""
        return [
            row
            for row, key in zip(rows, self.keys_for(rows, offset), strict=True)
            if key in self._selected
        ]

    def aggregate(self, rows: Sequence[Any], offset: int = 0) -> SelectionState:
        """Tri-state summary over the displayed records.

        Returns
        -------
        bool or None
            False when none are selected (or nothing is displayed), True when
            all are, None when some are.
        """
        selected = len(self.selected_rows(rows, offset))
        if selected == 0:
            return False
        if selected == len(rows):
            return True
        return None

    def clear(self) -> None:
        """Unselect everything."""
        self._selected.clear()
