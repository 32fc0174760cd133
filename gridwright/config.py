"""Configuration system for gridwright using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.gridwright] section (project-level)
3. ./gridwright.toml (project-level, explicit)
4. ~/.config/gridwright/config.toml (user-level, overrides project)
5. Environment variables (highest priority)

Environment variables use GRIDWRIGHT_ prefix with nested delimiter __.
Example: GRIDWRIGHT_TABLE__PAGE_SIZE, GRIDWRIGHT_LAYOUT__SIZING_STRATEGY
"""

from __future__ import annotations

import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .log import warn


if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib  # type: ignore[import-not-found]
    except ImportError:
        tomllib = None


SizingStrategy = Literal["auto-fit", "auto-width", "hybrid"]
SortDirection = Literal["asc", "desc"]


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    # Project-level pyproject.toml [tool.gridwright] (lowest file priority)
    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    # Explicit gridwright.toml (project-level)
    project_toml = Path("gridwright.toml")
    if project_toml.exists():
        files.append(project_toml)

    # User-level config (overrides project configs)
    if sys.platform == "win32":
        user_config = Path(os.environ.get("APPDATA", "~")) / "gridwright" / "config.toml"
    else:
        user_config = Path("~/.config/gridwright/config.toml")
    user_config = user_config.expanduser()
    if user_config.exists():
        files.append(user_config)

    # Environment variable override for config file (highest file priority)
    env_config = os.environ.get("GRIDWRIGHT_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    if tomllib is None:
        return {}

    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            content = config_file.read_text(encoding="utf-8")
            data = tomllib.loads(content)
        except (OSError, tomllib.TOMLDecodeError) as e:
            warn(f"Ignoring invalid config file {config_file}: {e}")
            continue

        # Handle pyproject.toml [tool.gridwright] section
        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("gridwright", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class TableSettings(BaseSettings):
    """Row pipeline and interaction defaults.

    Environment prefix: GRIDWRIGHT_TABLE__
    Example: GRIDWRIGHT_TABLE__PAGE_SIZE=25
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDWRIGHT_TABLE__",
        extra="ignore",
    )

    pagination: bool = True
    page_size: int = Field(default=10, ge=1)
    # NoDecode keeps pydantic-settings from JSON-parsing the env value
    page_size_options: Annotated[list[int], NoDecode] = Field(
        default_factory=lambda: [10, 20, 30, 50, 100]
    )
    show_numbers_count: int = Field(default=5, ge=1, description="Page buttons in the window")
    sort_column: str | None = None
    sort_direction: SortDirection = "asc"
    sortable: bool = Field(default=True, description="Allow sorting on any column")
    filter_debounce_ms: int = Field(
        default=300, ge=0, description="Delegated-mode filter debounce (0 disables)"
    )
    search_debounce_ms: int = Field(
        default=300, ge=0, description="Delegated-mode search debounce (0 disables)"
    )
    has_checkbox: bool = False
    select_row_on_click: bool = False

    @field_validator("page_size_options", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: Any) -> list[int]:
        """Parse comma-separated strings from env vars."""
        if isinstance(v, str):
            return [int(s.strip()) for s in v.split(",") if s.strip()]
        return v or []


class LayoutSettings(BaseSettings):
    """Column width allocation settings.

    Environment prefix: GRIDWRIGHT_LAYOUT__
    Example: GRIDWRIGHT_LAYOUT__SIZING_STRATEGY=hybrid
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDWRIGHT_LAYOUT__",
        extra="ignore",
    )

    sizing_strategy: SizingStrategy = "auto-fit"
    auto_calculate_widths: bool = True
    content_aware: bool = Field(
        default=True, description="Measure header and sampled cell text when sizing"
    )
    respect_column_min_widths: bool = False
    preserve_readability: bool = True
    expand_to_fill_container: bool = True
    allow_horizontal_scroll: bool = True
    recalculate_delay_ms: int = Field(
        default=100, ge=0, description="Debounce window for width recalculation"
    )
    content_sample_rows: int = Field(default=15, ge=0)
    padding_offset: int = Field(default=32, ge=0, description="Added to measured cell text")
    header_allowance: int = Field(default=80, ge=0, description="Added to measured header text")
    container_padding: int = Field(default=32, ge=0)
    min_available_width: int = Field(default=300, ge=0)
    checkbox_column_width: int = Field(default=52, ge=0)


class TextSettings(BaseSettings):
    """Display labels.

    Environment prefix: GRIDWRIGHT_TEXT__
    Example: GRIDWRIGHT_TEXT__BOOLEAN_YES="Oui"
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDWRIGHT_TEXT__",
        extra="ignore",
    )

    no_data: str = "No data available"
    pagination_info: str = "Showing {start} to {end} of {total} entries"
    boolean_yes: str = "Yes"
    boolean_no: str = "No"


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: GRIDWRIGHT_LOG__
    Example: GRIDWRIGHT_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDWRIGHT_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


_SECTIONS: list[tuple[str, str, str]] = [
    ("table", "TABLE", "Table"),
    ("layout", "LAYOUT", "Layout"),
    ("text", "TEXT", "Texts"),
    ("log", "LOG", "Logging"),
]


class GridwrightSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: GRIDWRIGHT__

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.gridwright] section
    3. ./gridwright.toml (project-level)
    4. ~/.config/gridwright/config.toml (user-level, overrides project)
    5. Environment variables (highest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDWRIGHT__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    table: TableSettings = Field(default_factory=TableSettings)
    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    text: TextSettings = Field(default_factory=TextSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        # Explicit data wins over TOML files
        merged = _deep_merge(_load_toml_config(), data)
        super().__init__(**merged)

    def to_toml(self) -> str:
        """Export settings as TOML string."""
        lines = ["# gridwright Configuration", "# Generated by: gridwright config --toml", ""]

        all_data = self.model_dump()
        for section_name, _, _ in _SECTIONS:
            lines.append(f"[{section_name}]")
            for field_name, field_value in all_data.get(section_name, {}).items():
                if field_value is None:
                    # TOML has no null; leaving the key out keeps the default
                    continue
                if isinstance(field_value, list):
                    value_str = "[" + ", ".join(_toml_scalar(v) for v in field_value) + "]"
                else:
                    value_str = _toml_scalar(field_value)
                lines.append(f"{field_name} = {value_str}")
            lines.append("")

        return "\n".join(lines)

    def to_env(self) -> str:
        """Export settings as shell environment variables."""
        lines = [
            "# gridwright Environment Variables",
            "# Generated by: gridwright config --env",
            "",
        ]

        all_data = self.model_dump()
        for section_name, env_prefix, _ in _SECTIONS:
            for field_name, field_value in all_data.get(section_name, {}).items():
                if field_value is None:
                    continue
                env_name = f"GRIDWRIGHT_{env_prefix}__{field_name.upper()}"
                if isinstance(field_value, list):
                    value_str = ",".join(str(v) for v in field_value)
                elif isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                else:
                    value_str = str(field_value)
                lines.append(f'export {env_name}="{value_str}"')

        return "\n".join(lines)

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["gridwright Configuration", "=" * 60]

        all_data = self.model_dump()
        for section_name, _, display_name in _SECTIONS:
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in all_data.get(section_name, {}).items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:28} = {value_str}")

        return "\n".join(lines)


def _toml_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(value)


@lru_cache(maxsize=1)
def get_settings() -> GridwrightSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return GridwrightSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> GridwrightSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
