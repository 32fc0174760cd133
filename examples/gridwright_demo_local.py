"""Demo: Local table with sorting, filtering, search and selection.

Builds a table over a small inventory, sizes its columns for a few container
widths and walks through the row pipeline. Everything runs in-process; the
table prints each event it emits.
"""

import time

from typing import Any

from gridwright import DataTable, enable_debug


INVENTORY = [
    {"sku": "A-100", "name": "Anvil", "price": 129.0, "stock": 4, "active": True},
    {"sku": "B-220", "name": "Bellows", "price": 45.5, "stock": 0, "active": False},
    {"sku": "C-310", "name": "Chisel set", "price": 32.0, "stock": 18, "active": True},
    {"sku": "D-050", "name": "Drift punch", "price": 8.75, "stock": 60, "active": True},
    {"sku": "F-900", "name": "Forge blower", "price": 210.0, "stock": 2, "active": True},
    {"sku": "H-002", "name": "Hammer 2 lb", "price": 24.0, "stock": 35, "active": True},
    {"sku": "H-010", "name": "Hammer 10 lb", "price": 61.0, "stock": 7, "active": False},
    {"sku": "T-400", "name": "Tongs", "price": 39.9, "stock": 12, "active": True},
]

COLUMNS = [
    {"field": "sku", "title": "SKU", "isUnique": True, "minWidth": 90},
    {"field": "name", "title": "Product"},
    {"field": "price", "title": "Price", "type": "number"},
    {"field": "stock", "title": "In stock", "type": "number"},
    {"field": "active", "title": "Active", "type": "bool"},
]


def print_event(data: Any, event: str) -> None:
    """Print every table event."""
    print(f"  <- {event}: {data}")


def print_page(table: DataTable) -> None:
    """Print the displayed rows with formatted cells."""
    for record in table.displayed_rows():
        cells = [table.display_value(record, col.field) for col in table.columns]
        print("   ", " | ".join(cells))
    print("   ", table.pagination_text())


def main() -> None:
    """Run the demo."""
    enable_debug()

    with DataTable(INVENTORY, COLUMNS) as table:
        for event in ("sort-change", "search-change", "page-change", "row-select"):
            table.on(event, print_event)

        print("\nColumn widths by container:")
        for width in (420, 900, 1400):
            table.set_container_width(width)
            widths = table.calculate_column_widths()
            summary = ", ".join(f"{w.field}={w.width}" for w in widths)
            print(f"  {width}px ({table.breakpoint}): {summary}")

        print("\nSorted by price:")
        table.sort_by("price")
        print_page(table)

        print("\nActive items only:")
        table.set_filter("active", True)
        # Local filter changes apply on the next tick
        time.sleep(0.05)
        print_page(table)

        print("\nSearch 'hammer':")
        table.set_search("hammer")
        print_page(table)
        table.select_all()

        table.reset()
        table.set_page_size(3)
        table.go_to_page(3)
        print("\nPage 3 of 3:")
        print_page(table)


if __name__ == "__main__":
    main()
