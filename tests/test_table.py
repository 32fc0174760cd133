"""Tests for the DataTable session.

Local mode recomputes rows and emits local events; server mode packages
every change into a ServerChange. Timers run on the manual scheduler from
conftest, so debounce windows are advanced explicitly.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from gridwright.config import GridwrightSettings
from gridwright.exceptions import SessionClosedError
from gridwright.table import DataTable, ServerChange
from gridwright.widths import available_width


def ids(rows):
    return [row["id"] for row in rows]


def numbered(count):
    return [{"id": i, "name": f"Row {i}"} for i in range(1, count + 1)]


def server_changes(handler):
    """ServerChange objects a MagicMock handler received."""
    return [call.args[0] for call in handler.call_args_list]


# =============================================================================
# Local mode
# =============================================================================


class TestLocalSorting:
    """Tests for sorting in local mode."""

    def test_sort_toggles_direction(self, table):
        """Sorting the same field twice flips the direction."""
        handler = MagicMock()
        table.on("sort-change", handler)

        table.sort_by("name")
        assert ids(table.displayed_rows()) == [3, 4, 5, 2, 1]
        handler.assert_called_with({"field": "name", "direction": "asc"})

        table.sort_by("name")
        assert table.sort_direction == "desc"
        assert ids(table.displayed_rows()) == [1, 2, 5, 4, 3]

    def test_new_field_sorts_ascending(self, table):
        """Switching fields starts ascending again."""
        table.sort_by("name")
        table.sort_by("name")
        table.sort_by("price")
        assert table.sort_column == "price"
        assert table.sort_direction == "asc"

    def test_unknown_or_unsortable_column_ignored(self, table):
        """Sorting a missing or sort-disabled column does nothing."""
        handler = MagicMock()
        table.on("sort-change", handler)
        table.sort_by("missing")
        table.set_columns([{"field": "id", "sort": False}])
        table.sort_by("id")
        handler.assert_not_called()
        assert table.sort_column is None

    def test_sorting_disabled_for_table(self, sample_rows, sample_columns, scheduler):
        """With sortable off, no column sorts and no event fires."""
        settings = GridwrightSettings(table={"sortable": False})
        tbl = DataTable(sample_rows, sample_columns, settings=settings, scheduler=scheduler)
        handler = MagicMock()
        tbl.on("sort-change", handler)
        tbl.sort_by("name")
        handler.assert_not_called()
        assert tbl.sort_column is None
        assert ids(tbl.displayed_rows()) == [1, 2, 3, 4, 5]
        tbl.close()


class TestLocalFiltering:
    """Tests for filtering and search in local mode."""

    def test_filter_applies_on_next_tick(self, table, scheduler):
        """Local filter changes are deferred to the next tick."""
        handler = MagicMock()
        table.on("filter-change", handler)
        assert len(table.displayed_rows()) == 5

        table.set_filter("name", "item")
        assert len(table.displayed_rows()) == 5
        handler.assert_not_called()

        scheduler.tick()
        assert ids(table.displayed_rows()) == [1, 2, 5]
        handler.assert_called_once_with(table.columns)

    def test_filter_resets_page(self, scheduler, settings):
        """A filter change goes back to page 1."""
        tbl = DataTable(numbered(30), [{"field": "id"}, {"field": "name"}],
                        settings=settings, scheduler=scheduler)
        tbl.go_to_page(3)
        tbl.set_filter("name", "row")
        scheduler.tick()
        assert tbl.current_page == 1

    def test_direct_column_edit(self, table, scheduler):
        """Editing a Column in place and calling filter_changed applies it."""
        table.column("active").value = True
        table.filter_changed()
        scheduler.tick()
        assert ids(table.displayed_rows()) == [1, 3, 4]

    def test_direct_bool_text_edit(self, table, scheduler):
        """Bool text set directly on a Column filters like the bool itself."""
        table.column("active").value = "true"
        table.filter_changed()
        scheduler.tick()
        assert ids(table.displayed_rows()) == [1, 3, 4]

    def test_clear_filter(self, table, scheduler):
        """Clearing a filter restores every row."""
        table.set_filter("name", "item")
        scheduler.tick()
        table.clear_filter("name")
        scheduler.tick()
        assert len(table.displayed_rows()) == 5

    def test_search_is_immediate(self, table):
        """Local search commits at once and emits search-change."""
        handler = MagicMock()
        table.on("search-change", handler)
        table.set_search("ana")
        assert ids(table.displayed_rows()) == [1, 4, 5]
        handler.assert_called_once_with("ana")

    def test_filter_and_search_combine(self, table, scheduler):
        """Search only narrows rows that pass the filters."""
        table.set_filter("active", True)
        scheduler.tick()
        table.set_search("ana")
        assert ids(table.displayed_rows()) == [1, 4]


class TestLocalPaging:
    """Tests for page navigation in local mode."""

    @pytest.fixture
    def paged(self, settings, scheduler):
        tbl = DataTable(numbered(47), [{"field": "id", "type": "number"}],
                        settings=settings, scheduler=scheduler)
        yield tbl
        tbl.close()

    def test_out_of_range_page_is_rejected(self, paged):
        """Page 6 of 5 changes nothing."""
        handler = MagicMock()
        paged.on("page-change", handler)
        assert paged.go_to_page(6) is False
        assert paged.go_to_page(0) is False
        assert paged.current_page == 1
        handler.assert_not_called()

    def test_go_to_last_page(self, paged):
        """The last page holds the remainder."""
        handler = MagicMock()
        paged.on("page-change", handler)
        assert paged.go_to_page(5) is True
        assert ids(paged.displayed_rows()) == list(range(41, 48))
        handler.assert_called_once_with(5)

    def test_navigation_ignored_while_loading(self, paged):
        """Loading blocks navigation."""
        paged.set_loading(True)
        assert paged.go_to_page(2) is False
        paged.set_loading(False)
        assert paged.next_page() is True
        assert paged.previous_page() is True
        assert paged.previous_page() is False

    def test_page_size_change(self, paged):
        """Changing the page size goes back to page 1."""
        handler = MagicMock()
        paged.on("page-size-change", handler)
        paged.go_to_page(3)
        paged.set_page_size(20)
        assert paged.current_page == 1
        assert paged.pagination().max_page == 3
        assert paged.loading_row_count() == 20
        handler.assert_called_once_with(20)

    def test_invalid_page_size_ignored(self, paged):
        """Page sizes below 1 are ignored."""
        paged.set_page_size(0)
        assert paged.page_size == 10

    def test_unlisted_page_size_warns(self, paged, caplog):
        """A size outside the offered options is applied with a warning."""
        with caplog.at_level("WARNING", logger="gridwright"):
            paged.set_page_size(25)
        assert paged.page_size == 25
        assert "not one of the offered options" in caplog.text

    def test_listed_page_size_is_quiet(self, paged, caplog):
        """Offered sizes apply without a warning."""
        with caplog.at_level("WARNING", logger="gridwright"):
            paged.set_page_size(20)
        assert "offered options" not in caplog.text

    def test_pagination_window(self, scheduler):
        """The configured button count shapes the window."""
        settings = GridwrightSettings(table={"show_numbers_count": 3})
        tbl = DataTable(numbered(47), [{"field": "id"}], settings=settings, scheduler=scheduler)
        tbl.go_to_page(5)
        assert tbl.pagination().pages == [3, 4, 5]
        tbl.close()

    def test_pagination_text(self, paged):
        """The info line reflects the current page."""
        paged.go_to_page(5)
        assert paged.pagination_text() == "Showing 41 to 47 of 47 entries"

    def test_empty_table_shows_no_data_text(self, scheduler):
        """With no rows the info line is the configured no-data text."""
        settings = GridwrightSettings(text={"no_data": "Nothing here"})
        tbl = DataTable([], [{"field": "id"}], settings=settings, scheduler=scheduler)
        assert tbl.pagination_text() == "Nothing here"
        tbl.close()


# =============================================================================
# Server mode
# =============================================================================


class TestServerMode:
    """Tests for delegated changes."""

    def test_rows_pass_through(self, server_table):
        """Rows are displayed as given, with the external total."""
        assert len(server_table.displayed_rows()) == 10
        assert server_table.total_rows == 47
        assert server_table.pagination().max_page == 5

    def test_page_navigation_keeps_page(self, server_table):
        """Plain navigation never resets the page."""
        handler = MagicMock()
        server_table.on("server-change", handler)
        server_table.go_to_page(3)
        change = handler.call_args.args[0]
        assert isinstance(change, ServerChange)
        assert change.change_type == "page"
        assert change.current_page == 3
        assert change.offset == 20
        assert change.page_size == 10

    def test_page_out_of_range(self, server_table):
        """Navigation past the external total is rejected."""
        handler = MagicMock()
        server_table.on("server-change", handler)
        assert server_table.go_to_page(6) is False
        handler.assert_not_called()

    def test_sort_keeps_page(self, server_table):
        """Sorting does not reset the page."""
        handler = MagicMock()
        server_table.go_to_page(3)
        server_table.on("server-change", handler)
        server_table.sort_by("name")
        change = handler.call_args.args[0]
        assert change.change_type == "sort"
        assert change.current_page == 3
        assert change.sort_column == "name"
        assert change.sort_direction == "asc"

    def test_filter_resets_page_after_debounce(self, server_table, scheduler):
        """A filter change emits page 1 once the debounce window passes."""
        handler = MagicMock()
        server_table.go_to_page(3)
        server_table.on("server-change", handler)

        server_table.set_filter("name", "row")
        assert server_table.current_page == 1
        scheduler.advance(299)
        handler.assert_not_called()
        scheduler.advance(1)

        change = handler.call_args.args[0]
        assert change.change_type == "filter"
        assert change.current_page == 1
        assert change.offset == 0
        name_filter = next(f for f in change.column_filters if f.field == "name")
        assert name_filter.value == "row"
        assert name_filter.active is True

    def test_filter_burst_emits_once(self, server_table, scheduler):
        """Three filter edits inside the window produce one change with the last value."""
        handler = MagicMock()
        server_table.on("server-change", handler)
        for value in ("r", "ro", "row"):
            server_table.set_filter("name", value)
            scheduler.advance(100)
        scheduler.advance(300)

        assert handler.call_count == 1
        change = handler.call_args.args[0]
        name_filter = next(f for f in change.column_filters if f.field == "name")
        assert name_filter.value == "row"

    def test_zero_filter_delay_emits_immediately(self, scheduler):
        """A zero debounce disables the delay."""
        settings = GridwrightSettings(table={"filter_debounce_ms": 0})
        tbl = DataTable(numbered(3), [{"field": "name"}], settings=settings,
                        scheduler=scheduler, server_mode=True, total_rows=3)
        handler = MagicMock()
        tbl.on("server-change", handler)
        tbl.set_filter("name", "x")
        handler.assert_called_once()
        tbl.close()

    def test_search_debounced(self, server_table, scheduler):
        """Search text commits and emits only after the search window."""
        handler = MagicMock()
        server_table.on("server-change", handler)
        server_table.set_search("r")
        server_table.set_search("ro")
        assert server_table.search == ""
        scheduler.advance(200)

        assert handler.call_count == 1
        change = handler.call_args.args[0]
        assert change.change_type == "search"
        assert change.search == "ro"
        assert change.current_page == 1
        assert server_table.search == "ro"

    def test_page_size_change(self, server_table):
        """Page-size changes reset the page."""
        handler = MagicMock()
        server_table.go_to_page(2)
        server_table.on("server-change", handler)
        server_table.set_page_size(25)
        change = handler.call_args.args[0]
        assert change.change_type == "pagesize"
        assert change.page_size == 25
        assert change.current_page == 1

    def test_reset_cancels_pending_emissions(self, server_table, scheduler):
        """Reset drops the pending filter change and emits a single reset."""
        handler = MagicMock()
        server_table.go_to_page(3)
        server_table.on("server-change", handler)
        server_table.set_filter("name", "row")
        server_table.set_search("x")
        server_table.reset()
        scheduler.advance(1000)

        changes = server_changes(handler)
        assert [c.change_type for c in changes] == ["reset"]
        assert changes[0].current_page == 1
        assert changes[0].search == ""
        assert not any(f.active for f in changes[0].column_filters)

    def test_set_rows_updates_total(self, server_table):
        """The external handler delivers rows and the new total."""
        server_table.set_rows(numbered(5), total_rows=5)
        assert len(server_table.displayed_rows()) == 5
        assert server_table.pagination().max_page == 1

    def test_descriptor_to_dict(self, server_table):
        """Descriptors serialize with camelCase keys."""
        data = server_table.server_change("page").to_dict()
        assert set(data) == {
            "currentPage",
            "pageSize",
            "offset",
            "sortColumn",
            "sortDirection",
            "search",
            "columnFilters",
            "changeType",
        }
        assert data["columnFilters"][0]["field"] == "id"


# =============================================================================
# Selection
# =============================================================================


class TestTableSelection:
    """Tests for selection through the session."""

    def test_select_all_and_aggregate(self, table):
        """Selecting all displayed rows makes the aggregate True."""
        handler = MagicMock()
        table.on("row-select", handler)
        table.select_all()
        assert table.selected_all is True
        assert len(handler.call_args.args[0]) == 5

        table.unselect_row(0)
        assert table.selected_all is None
        assert not table.is_row_selected(0)
        assert table.is_row_selected(1)

        table.clear_selected_rows()
        assert table.selected_all is False

    def test_selection_follows_unique_key(self, table):
        """A keyed row stays selected when sorting moves it."""
        table.select_row(0)
        table.sort_by("name")
        assert ids(table.get_selected_rows()) == [1]
        assert table.is_row_selected(4)

    def test_positional_selection_is_per_position(self, settings, scheduler):
        """Without a unique column, selection is tied to absolute positions."""
        tbl = DataTable(numbered(25), [{"field": "name"}], settings=settings, scheduler=scheduler)
        tbl.go_to_page(2)
        tbl.select_row(0)
        assert tbl.get_selected_rows() == [{"id": 11, "name": "Row 11"}]
        tbl.go_to_page(1)
        assert tbl.selected_all is False
        tbl.close()

    def test_out_of_range_index(self, table):
        """Indexes outside the page are ignored."""
        assert table.select_row(99) is False
        assert table.is_row_selected(99) is False

    def test_row_click_without_selection(self, table):
        """Clicks are reported; selection is untouched by default."""
        handler = MagicMock()
        table.on("row-click", handler)
        table.row_click(1)
        handler.assert_called_once_with({"item": table.displayed_rows()[1], "index": 1})
        assert table.selected_all is False

    def test_row_click_selects(self, sample_rows, sample_columns, scheduler):
        """With select-on-click, a click toggles the row."""
        settings = GridwrightSettings(table={"select_row_on_click": True})
        tbl = DataTable(sample_rows, sample_columns, settings=settings, scheduler=scheduler)
        tbl.row_click(2)
        assert tbl.is_row_selected(2)
        tbl.row_click(2)
        assert not tbl.is_row_selected(2)
        tbl.close()

    def test_row_double_click(self, table):
        """Double clicks report the record."""
        handler = MagicMock()
        table.on("row-double-click", handler)
        table.row_double_click(0)
        handler.assert_called_once_with(table.displayed_rows()[0])

    def test_reset_clears_selection_and_state(self, table, scheduler):
        """Reset restores the configured initial state."""
        table.select_all()
        table.sort_by("name")
        table.set_filter("name", "item")
        scheduler.tick()
        table.set_search("1")
        table.reset()

        assert table.selected_all is False
        assert table.sort_column is None
        assert table.search == ""
        assert table.column("name").value == ""
        assert table.column("name").condition == "contain"
        assert len(table.displayed_rows()) == 5


# =============================================================================
# Widths
# =============================================================================


class TestTableWidths:
    """Tests for debounced width recalculation."""

    def test_fallback_until_calculated(self, sample_rows, sample_columns, settings, scheduler):
        """Before the recalculation fires, hint-based widths are used."""
        tbl = DataTable(sample_rows, sample_columns, settings=settings,
                        scheduler=scheduler, container_width=1000)
        fallback = [w.width for w in tbl.column_widths()]
        scheduler.advance(100)
        widths = tbl.column_widths()
        assert [w.width for w in widths] != fallback
        assert abs(sum(w.width for w in widths) - available_width(1000)) <= len(widths)
        tbl.close()

    def test_resize_burst_recalculates_once(self, table, scheduler):
        """Rapid container changes coalesce into a single recalculation."""
        with patch.object(table, "calculate_column_widths") as calculate:
            for width in (900, 1000, 1300):
                table.set_container_width(width)
                scheduler.advance(30)
            scheduler.advance(100)
        calculate.assert_called_once()
        assert table.breakpoint == "xl"

    def test_same_width_does_not_reschedule(self, table, scheduler):
        """An unchanged measurement is not a trigger."""
        table.set_container_width(1000)
        scheduler.advance(100)
        with patch.object(table, "calculate_column_widths") as calculate:
            table.set_container_width(1000)
            scheduler.advance(100)
        calculate.assert_not_called()

    def test_unmeasured_container_skips(self, table):
        """With no container width, calculation returns fallback widths."""
        widths = table.calculate_column_widths()
        assert [w.field for w in widths] == [c.field for c in table.columns]

    def test_checkbox_reserves_width(self, sample_rows, sample_columns, scheduler):
        """The checkbox column is subtracted from the usable width."""
        settings = GridwrightSettings(table={"has_checkbox": True})
        tbl = DataTable(sample_rows, sample_columns, settings=settings,
                        scheduler=scheduler, container_width=1200)
        widths = tbl.calculate_column_widths()
        assert tbl.reserved_width == 52
        available = available_width(1200, reserved_width=52)
        assert abs(sum(w.width for w in widths) - available) <= len(widths)
        assert tbl.layout().total_width == sum(w.width for w in widths) + 52
        tbl.close()

    def test_auto_calculation_off(self, sample_rows, sample_columns, scheduler):
        """With automatic calculation off nothing is scheduled."""
        settings = GridwrightSettings(layout={"auto_calculate_widths": False})
        tbl = DataTable(sample_rows, sample_columns, settings=settings,
                        scheduler=scheduler, container_width=1000)
        assert scheduler.pending == 0
        assert tbl.column_width("name") == 140
        tbl.close()

    def test_strategy_switch(self, table, scheduler):
        """auto-width widths ignore the container."""
        table.set_container_width(1000)
        table.set_sizing_strategy("auto-width")
        scheduler.advance(100)
        assert all(w.width == max(w.min_width, w.preferred_width) for w in table.column_widths())


# =============================================================================
# Events and lifecycle
# =============================================================================


class TestEventsAndLifecycle:
    """Tests for handler dispatch and closing."""

    def test_unknown_event(self, table):
        """Unknown event names are refused."""
        assert table.on("sorted", MagicMock()) is False

    def test_two_argument_handler(self, table):
        """Handlers may take the event name as a second argument."""
        seen = []
        table.on("search-change", lambda data, event: seen.append((data, event)))
        table.set_search("x")
        assert seen == [("x", "search-change")]

    def test_handler_error_is_contained(self, table):
        """A failing handler does not stop the action or later handlers."""
        after = MagicMock()
        table.on("search-change", MagicMock(side_effect=RuntimeError("boom")))
        table.on("search-change", after)
        table.set_search("x")
        after.assert_called_once_with("x")

    def test_off(self, table):
        """Removed handlers are not called."""
        handler = MagicMock()
        table.on("search-change", handler)
        table.off("search-change", handler)
        table.set_search("x")
        handler.assert_not_called()

    def test_display_value(self, table):
        """Cells are formatted by column type."""
        record = table.rows[0]
        assert table.display_value(record, "active") == "Yes"
        assert table.display_value(record, "owner.name") == "Ana"
        assert table.display_value(record, "missing") == ""

    def test_close_cancels_and_refuses(self, table, scheduler):
        """Closing cancels timers; later actions raise."""
        table.set_container_width(800)
        table.close()
        assert scheduler.pending == 0
        assert table.closed
        with pytest.raises(SessionClosedError) as exc_info:
            table.sort_by("name")
        assert exc_info.value.action == "sort_by"
        table.close()

    def test_context_manager(self, settings, scheduler):
        """The session closes on exit."""
        with DataTable(numbered(3), [{"field": "id"}], settings=settings,
                       scheduler=scheduler) as tbl:
            assert not tbl.closed
        assert tbl.closed
