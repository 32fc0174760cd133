"""Column descriptors.

``Column`` is a Pydantic model that accepts both snake_case and camelCase
keys and fills every default on construction, so a normalized column always
has a concrete ``type``, ``condition`` and boolean flags.

Usage:
    from gridwright.columns import Column, normalize_columns

    columns = normalize_columns([
        {"field": "id", "isUnique": True, "type": "number"},
        {"field": "owner.name", "title": "Owner", "minWidth": "120px"},
        Column(field="created", type="date", strict=True, preferred_width=140),
    ])

Malformed hints are repaired rather than rejected: unknown types become
``string``, negative or unparseable widths are dropped, and an invalid
condition falls back to the type's default.
"""

from __future__ import annotations

import re

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .log import debug, warn


ColumnType = Literal["string", "number", "date", "bool"]
FilterCondition = Literal[
    "contain",
    "not_contain",
    "equal",
    "not_equal",
    "start_with",
    "end_with",
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
    "is_null",
    "is_not_null",
]

COLUMN_TYPES: frozenset[str] = frozenset({"string", "number", "date", "bool"})

# Conditions each column type understands, besides the null checks
TYPE_CONDITIONS: dict[str, frozenset[str]] = {
    "string": frozenset(
        {"contain", "not_contain", "equal", "not_equal", "start_with", "end_with"}
    ),
    "number": frozenset(
        {
            "equal",
            "not_equal",
            "greater_than",
            "greater_than_equal",
            "less_than",
            "less_than_equal",
        }
    ),
    "date": frozenset({"equal", "not_equal", "greater_than", "less_than"}),
    "bool": frozenset({"equal"}),
}
NULL_CONDITIONS: frozenset[str] = frozenset({"is_null", "is_not_null"})

_CONDITION_ALIASES = {
    "contains": "contain",
    "not_contains": "not_contain",
    "equals": "equal",
    "not_equals": "not_equal",
    "starts_with": "start_with",
    "ends_with": "end_with",
}

_TYPE_ALIASES = {
    "text": "string",
    "str": "string",
    "boolean": "bool",
    "int": "number",
    "integer": "number",
    "float": "number",
    "datetime": "date",
}

_WIDTH_RE = re.compile(r"^\s*(\d+)\s*(px)?\s*$")

DEFAULT_SHRINK_PRIORITY = 5


def default_condition(column_type: str) -> str:
    """Return the filter condition a column of this type starts with."""
    return "contain" if column_type == "string" else "equal"


def parse_width(value: Any) -> int | None:
    """Parse a width hint given as an int or a ``"120"``/``"120px"`` string.

    Returns None for missing, zero, negative or unparseable values.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        width = int(value)
    else:
        match = _WIDTH_RE.match(str(value))
        if not match:
            warn(f"Ignoring unparseable width hint: {value!r}")
            return None
        width = int(match.group(1))
    if width < 0:
        warn(f"Ignoring negative width hint: {value!r}")
        return None
    return width or None


def parse_condition(value: Any) -> str | None:
    """Normalize a filter condition name.

    Accepts the plural aliases (``contains``, ``equals`` ...) and returns None
    for empty or unknown names so the caller can apply the type default.
    """
    if value is None or value == "":
        return None
    name = str(value).strip().lower()
    name = _CONDITION_ALIASES.get(name, name)
    if name not in NULL_CONDITIONS and not any(
        name in conditions for conditions in TYPE_CONDITIONS.values()
    ):
        warn(f"Unknown filter condition {value!r}, using the column default")
        return None
    return name


def coerce_operand(column_type: str, value: Any) -> Any:
    """Normalize a filter operand: None becomes ``""`` and bool text becomes a bool."""
    if value is None:
        return ""
    # Bool filters compare by identity, so "true"/"false" inputs become bools
    if column_type == "bool" and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
    return value


class Column(BaseModel):
    """A displayable field with its sizing hints and filter state.

    Filter state (``condition`` and ``value``) is mutable: the table session
    updates it in place when the user edits a column filter.
    """

    model_config = ConfigDict(
        populate_by_name=True,  # Accept both snake_case and camelCase
        validate_assignment=False,
        extra="ignore",
    )

    # Identity
    field: str
    title: str | None = None
    type: ColumnType = "string"
    is_unique: bool = Field(default=False, alias="isUnique")

    # Behavior flags
    hide: bool = False
    sort: bool = True
    filter: bool = True
    search: bool = True

    # Width hints
    width: int | None = None
    min_width: int | None = Field(default=None, alias="minWidth")
    max_width: int | None = Field(default=None, alias="maxWidth")
    preferred_width: int | None = Field(default=None, alias="preferredWidth")
    strict: bool = False
    shrink_priority: int = Field(default=DEFAULT_SHRINK_PRIORITY, alias="shrinkPriority")

    # Filter state
    condition: FilterCondition | None = None
    value: Any = ""

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> str:
        """Lower-case the type and map unknown types to ``string``."""
        if v is None or v == "":
            return "string"
        name = str(v).strip().lower()
        name = _TYPE_ALIASES.get(name, name)
        if name not in COLUMN_TYPES:
            warn(f"Unknown column type {v!r}, treating as 'string'")
            return "string"
        return name

    @field_validator("width", "min_width", "max_width", "preferred_width", mode="before")
    @classmethod
    def normalize_width(cls, v: Any) -> int | None:
        """Accept pixel strings; drop negative or unparseable hints."""
        return parse_width(v)

    @field_validator("hide", "sort", "filter", "search", "strict", "is_unique", mode="before")
    @classmethod
    def default_flags(cls, v: Any, info: Any) -> bool:
        """Treat an explicit None as "use the default"."""
        if v is None:
            return info.field_name in {"sort", "filter", "search"}
        return bool(v)

    @field_validator("shrink_priority", mode="before")
    @classmethod
    def default_shrink_priority(cls, v: Any) -> int:
        """Missing or zero shrink priority falls back to the default."""
        if v is None or v == "" or v == 0:
            return DEFAULT_SHRINK_PRIORITY
        return v

    @field_validator("condition", mode="before")
    @classmethod
    def normalize_condition(cls, v: Any) -> str | None:
        """Map aliases, leave unknown conditions for the type default."""
        return parse_condition(v)

    @model_validator(mode="after")
    def fill_defaults(self) -> Column:
        """Fill the condition and value defaults that depend on the type."""
        if self.condition is None:
            self.condition = default_condition(self.type)  # type: ignore[assignment]
        self.value = coerce_operand(self.type, self.value)
        return self

    @property
    def header(self) -> str:
        """Header text: the title, or the field path when untitled."""
        return self.title or self.field

    def set_filter(self, value: Any, condition: str | None = None) -> None:
        """Update the filter operand and, optionally, its condition.

        A condition the column type does not understand falls back to the
        type default; the null checks are accepted for every type.
        """
        if condition is not None:
            name = parse_condition(condition)
            if name is None or (
                name not in NULL_CONDITIONS and name not in TYPE_CONDITIONS[self.type]
            ):
                name = default_condition(self.type)
            self.condition = name  # type: ignore[assignment]
        self.value = coerce_operand(self.type, value)

    def clear_filter(self) -> None:
        """Reset the filter to its type default."""
        self.value = ""
        self.condition = default_condition(self.type)  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys, excluding None values."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ColumnFilter(BaseModel):
    """Snapshot of one column's filter state, as sent to delegated handlers."""

    model_config = ConfigDict(populate_by_name=True)

    field: str
    type: ColumnType
    condition: FilterCondition
    value: Any = ""
    active: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys."""
        return self.model_dump(by_alias=True)


def normalize_columns(columns: Iterable[Column | dict[str, Any]]) -> list[Column]:
    """Validate column declarations and resolve the unique-key column.

    At most one column keeps ``is_unique``; when several are marked, the
    first wins and the others are cleared.

    Parameters
    ----------
    columns : iterable of Column or dict
        Column declarations. ``Column`` instances are kept as-is (their
        filter state is owned by the caller); dicts are validated.

    Returns
    -------
    list of Column
        Normalized columns in declaration order.
    """
    result: list[Column] = []
    unique_seen = False
    for col in columns:
        column = col if isinstance(col, Column) else Column.model_validate(col)
        if column.is_unique:
            if unique_seen:
                warn(f"Column {column.field!r} is also marked unique; keeping the first")
                column.is_unique = False
            unique_seen = True
        result.append(column)
    debug(f"Normalized {len(result)} columns")
    return result


def unique_field(columns: Iterable[Column]) -> str | None:
    """Return the field of the unique-key column, if any."""
    for col in columns:
        if col.is_unique:
            return col.field
    return None


def visible_columns(columns: Iterable[Column]) -> list[Column]:
    """Return the columns that are not hidden."""
    return [col for col in columns if not col.hide]


def has_filter_value(column: Column) -> bool:
    """Return True when the column filter should constrain rows."""
    return (column.value is not None and column.value != "") or column.condition in NULL_CONDITIONS


def filter_snapshot(columns: Iterable[Column]) -> list[ColumnFilter]:
    """Copy the filter state of every filterable column."""
    return [
        ColumnFilter(
            field=col.field,
            type=col.type,
            condition=col.condition or default_condition(col.type),  # type: ignore[arg-type]
            value=col.value,
            active=has_filter_value(col),
        )
        for col in columns
        if col.filter
    ]
