"""Command-line interface for gridwright configuration and table rendering."""

from __future__ import annotations

import argparse
import json
import os
import sys

from pathlib import Path
from typing import TYPE_CHECKING, Any

from .exceptions import DataSourceError


if TYPE_CHECKING:
    from .config import GridwrightSettings


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def main(argv: list[str] | None = None) -> int:
    """Run the main CLI entry point.

    Parameters
    ----------
    argv : list of str, optional
        Arguments to parse instead of ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="gridwright",
        description="gridwright configuration and table tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or export configuration",
    )
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )
    config_group.add_argument(
        "--toml",
        action="store_true",
        help="Export configuration as TOML",
    )
    config_group.add_argument(
        "--env",
        action="store_true",
        help="Export configuration as environment variables",
    )
    config_group.add_argument(
        "--sources",
        action="store_true",
        help="Show configuration file sources",
    )
    config_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file path (default: stdout)",
    )

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize a gridwright.toml configuration file",
    )
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Overwrite existing configuration file",
    )
    init_parser.add_argument(
        "--path",
        "-p",
        type=str,
        default="gridwright.toml",
        help="Path for configuration file (default: gridwright.toml)",
    )

    # render command
    render_parser = subparsers.add_parser(
        "render",
        help="Compute column widths and the displayed page for a JSON data set",
    )
    render_parser.add_argument("rows", type=str, help="JSON file holding a list of records")
    render_parser.add_argument(
        "--columns",
        "-c",
        type=str,
        required=True,
        help="JSON file holding a list of column declarations",
    )
    render_parser.add_argument(
        "--width",
        "-w",
        type=float,
        default=1024,
        help="Container width in pixels (default: 1024)",
    )
    render_parser.add_argument("--page", type=int, default=1, help="Page to display")
    render_parser.add_argument(
        "--page-size",
        type=_positive_int,
        default=None,
        help="Rows per page (uses config default)",
    )
    render_parser.add_argument("--search", type=str, default="", help="Global search text")
    render_parser.add_argument("--sort", type=str, default=None, help="Field to sort on")
    render_parser.add_argument(
        "--desc",
        action="store_true",
        help="Sort descending",
    )
    render_parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Column filter using the column's condition (repeatable)",
    )
    render_parser.add_argument(
        "--strategy",
        type=str,
        choices=["auto-fit", "auto-width", "hybrid"],
        default=None,
        help="Sizing strategy (uses config default)",
    )
    render_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file path (default: stdout)",
    )

    args = parser.parse_args(argv)

    if args.command == "config":
        return handle_config(args)
    if args.command == "init":
        return handle_init(args)
    if args.command == "render":
        return handle_render(args)
    parser.print_help()
    return 0


def _write_output(output: str, path: str | None) -> None:
    if path:
        Path(path).write_text(output, encoding="utf-8")
        print(f"Output written to {path}")
    else:
        print(output)


def handle_config(args: argparse.Namespace) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import GridwrightSettings

    if args.sources:
        return show_config_sources()

    settings = GridwrightSettings()

    if args.toml:
        output = settings.to_toml()
    elif args.env:
        output = settings.to_env()
    else:
        output = format_config_show(settings)

    _write_output(output, args.output)
    return 0


def handle_init(args: argparse.Namespace) -> int:
    """Handle the init command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import GridwrightSettings

    path = Path(args.path)

    if path.exists() and not args.force:
        print(f"Error: {path} already exists. Use --force to overwrite.", file=sys.stderr)
        return 1

    settings = GridwrightSettings()
    toml_content = settings.to_toml()

    header = """# gridwright Configuration File
#
# Environment variables can override any setting:
#   GRIDWRIGHT_TABLE__PAGE_SIZE=25
#   GRIDWRIGHT_TABLE__FILTER_DEBOUNCE_MS=500
#   GRIDWRIGHT_LAYOUT__SIZING_STRATEGY="hybrid"
#   GRIDWRIGHT_LOG__LEVEL="DEBUG"
#
# Use nested keys with __ (double underscore) delimiter.

"""
    path.write_text(header + toml_content, encoding="utf-8")
    print(f"Created {path}")

    return 0


def load_json_list(path: str, what: str) -> list[Any]:
    """Read a JSON file that must hold a list.

    Raises
    ------
    DataSourceError
        If the file cannot be read or does not hold a JSON list.
    """
    source = Path(path)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise DataSourceError(f"{what} file not found", path=path) from e
    except OSError as e:
        raise DataSourceError(f"Cannot read {what} file: {e}", path=path) from e
    except json.JSONDecodeError as e:
        raise DataSourceError(f"{what} file is not valid JSON: {e.msg}", path=path) from e
    if not isinstance(data, list):
        raise DataSourceError(
            f"{what} file must hold a JSON list", path=path, found=type(data).__name__
        )
    return data


def _parse_filters(entries: list[str]) -> dict[str, str]:
    filters = {}
    for entry in entries:
        field, sep, value = entry.partition("=")
        if not sep or not field.strip():
            raise DataSourceError(f"Invalid filter {entry!r}; expected FIELD=VALUE")
        filters[field.strip()] = value
    return filters


def render_table(args: argparse.Namespace) -> dict[str, Any]:
    """Run the width allocator and row pipeline for the render command."""
    from .config import GridwrightSettings
    from .table import DataTable

    rows = load_json_list(args.rows, "Rows")
    columns = load_json_list(args.columns, "Columns")
    if not all(isinstance(col, dict) for col in columns):
        raise DataSourceError("Every column must be a JSON object", path=args.columns)
    filters = _parse_filters(args.filter)

    settings = GridwrightSettings()
    if args.page_size is not None:
        settings.table.page_size = args.page_size
    if args.sort:
        settings.table.sort_column = args.sort
        settings.table.sort_direction = "desc" if args.desc else "asc"
    # Widths are calculated once below instead of on a timer
    settings.layout.auto_calculate_widths = False

    for col in columns:
        if col.get("field") in filters:
            col["value"] = filters[col["field"]]

    with DataTable(
        rows,
        columns,
        settings=settings,
        container_width=args.width,
        strategy=args.strategy,
    ) as table:
        if args.search:
            table.set_search(args.search)
        if args.page != 1 and not table.go_to_page(args.page):
            print(
                f"Warning: page {args.page} is out of range; showing page 1",
                file=sys.stderr,
            )
        widths = table.calculate_column_widths()
        return {
            "widths": [w.to_dict() for w in widths],
            "layout": table.layout().to_dict(),
            "pagination": table.pagination().to_dict(),
            "paginationText": table.pagination_text(),
            "rows": table.displayed_rows(),
        }


def handle_render(args: argparse.Namespace) -> int:
    """Handle the render command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    try:
        result = render_table(args)
    except DataSourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _write_output(json.dumps(result, indent=2, default=str), args.output)
    return 0


def show_config_sources() -> int:
    """Show configuration file sources and their status.

    Returns
    -------
    int
        Exit code.
    """
    sources = [
        ("Built-in defaults", "Always loaded", True),
        ("pyproject.toml [tool.gridwright]", "pyproject.toml", None),
        ("./gridwright.toml", "gridwright.toml", None),
        (
            "~/.config/gridwright/config.toml",
            str(Path.home() / ".config" / "gridwright" / "config.toml"),
            None,
        ),
        ("GRIDWRIGHT_CONFIG_FILE", os.environ.get("GRIDWRIGHT_CONFIG_FILE", ""), None),
        ("Environment variables", "GRIDWRIGHT_* vars", None),
    ]

    print("Configuration Sources (in order of precedence):\n")
    print(f"{'Source':<40} {'Status':<15} {'Path'}")
    print("-" * 80)

    for name, path_str, forced_status in sources:
        if forced_status is True:
            status = "Active"
            path_display = ""
        elif name == "Environment variables":
            env_vars = [
                k
                for k in os.environ
                if k.startswith("GRIDWRIGHT_") and k != "GRIDWRIGHT_CONFIG_FILE"
            ]
            if env_vars:
                status = f"{len(env_vars)} vars"
                path_display = ", ".join(env_vars[:3])
                if len(env_vars) > 3:
                    path_display += "..."
            else:
                status = "No vars"
                path_display = ""
        elif not path_str:
            status = "Not set"
            path_display = ""
        else:
            path = Path(path_str).expanduser()
            status = "Found" if path.exists() else "Not found"
            path_display = str(path)

        print(f"{name:<40} {status:<15} {path_display}")

    print("\nNote: Later sources override earlier ones.")
    return 0


def format_config_show(settings: GridwrightSettings) -> str:
    """Format configuration for display.

    Parameters
    ----------
    settings : GridwrightSettings
        The settings object to format.

    Returns
    -------
    str
        Formatted configuration string.
    """
    return settings.show()


if __name__ == "__main__":
    sys.exit(main())
