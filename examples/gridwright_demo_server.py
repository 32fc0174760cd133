"""Demo: Server-mode table driven by an external handler.

The table delegates filtering, sorting and paging. Each change arrives as a
ServerChange; the handler queries a fake backend of 137 orders and hands the
page back with set_rows(). Filter and search edits inside the debounce
window collapse into one request.
"""

import time

from gridwright import DataTable, GridwrightSettings, ServerChange


STATUSES = ["open", "shipped", "returned"]

ORDERS = [
    {
        "id": i,
        "customer": f"Customer {i % 23:02d}",
        "status": STATUSES[i % 3],
        "total": round(10 + (i * 7.3) % 400, 2),
    }
    for i in range(1, 138)
]


def query_backend(change: ServerChange) -> tuple[list[dict], int]:
    """Answer a ServerChange the way a database-backed endpoint would."""
    rows = ORDERS
    for flt in change.column_filters:
        if flt.active and flt.value != "":
            needle = str(flt.value).lower()
            rows = [r for r in rows if needle in str(r[flt.field]).lower()]
    if change.search:
        term = change.search.lower()
        rows = [r for r in rows if any(term in str(v).lower() for v in r.values())]
    if change.sort_column:
        rows = sorted(
            rows,
            key=lambda r: r[change.sort_column],
            reverse=change.sort_direction == "desc",
        )
    total = len(rows)
    return rows[change.offset : change.offset + change.page_size], total


def main() -> None:
    """Run the demo."""
    settings = GridwrightSettings(table={"filter_debounce_ms": 250, "search_debounce_ms": 250})
    columns = [
        {"field": "id", "type": "number", "isUnique": True},
        {"field": "customer"},
        {"field": "status"},
        {"field": "total", "type": "number"},
    ]
    first_page, total = query_backend(
        ServerChange(current_page=1, page_size=10, offset=0, change_type="reset")
    )

    with DataTable(
        first_page,
        columns,
        settings=settings,
        server_mode=True,
        total_rows=total,
        container_width=960,
    ) as table:

        def on_server_change(change: ServerChange) -> None:
            print(f"request: {change.to_dict()}")
            table.set_loading(True)
            rows, count = query_backend(change)
            table.set_rows(rows, total_rows=count)
            table.set_loading(False)
            print(f"  -> {len(rows)} rows, {table.pagination_text()}")

        table.on("server-change", on_server_change)

        table.go_to_page(4)
        table.sort_by("total")

        # Typing "ship" one key at a time sends a single request
        for prefix in ("s", "sh", "shi", "ship"):
            table.set_filter("status", prefix)
            time.sleep(0.05)
        time.sleep(0.4)

        table.set_search("customer 07")
        time.sleep(0.4)

        table.reset()


if __name__ == "__main__":
    main()
