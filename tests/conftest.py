"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from gridwright.config import GridwrightSettings, clear_settings
from gridwright.table import DataTable


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config files and GRIDWRIGHT_* variables out of every test."""
    import os

    for key in list(os.environ):
        if key.startswith("GRIDWRIGHT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("APPDATA", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    clear_settings()
    yield
    clear_settings()


# =============================================================================
# Deterministic Scheduler
# =============================================================================


class ManualTimer:
    """Timer handle owned by ``ManualScheduler``."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler on a fake millisecond clock; timers only run when the test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        # Rounded so float seconds land exactly on whole milliseconds
        timer = ManualTimer(round(self.now + delay * 1000, 6), callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that are neither canceled nor fired."""
        return len([t for t in self.timers if not t.cancelled and not t.fired])

    def advance(self, ms: float) -> None:
        """Move the clock forward, running due timers in order."""
        target = round(self.now + ms, 6)
        while True:
            due = [
                t for t in self.timers if not t.cancelled and not t.fired and t.due <= target
            ]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = max(self.now, timer.due)
            timer.fired = True
            timer.callback()
        self.now = target

    def tick(self) -> None:
        """Run everything scheduled for "now"."""
        self.advance(0)


@pytest.fixture
def scheduler():
    """A fresh manual scheduler."""
    return ManualScheduler()


# =============================================================================
# Sample Data
# =============================================================================


def make_rows() -> list[dict[str, Any]]:
    """Five records covering every column type and a few awkward values."""
    return [
        {
            "id": 1,
            "name": "Item 10",
            "price": 25.5,
            "created": "2024-03-01",
            "active": True,
            "owner": {"name": "Ana"},
        },
        {
            "id": 2,
            "name": "Item 2",
            "price": 8,
            "created": "2024-01-15",
            "active": False,
            "owner": {"name": "Bo"},
        },
        {
            "id": 3,
            "name": "apple",
            "price": 12,
            "created": "2023-12-31",
            "active": True,
            "owner": {"name": "Cy"},
        },
        {
            "id": 4,
            "name": "Banana",
            "price": None,
            "created": "not a date",
            "active": True,
            "owner": None,
        },
        {
            "id": 5,
            "name": "Item 1",
            "price": "19.99",
            "created": "2024-03-01T10:00:00Z",
            "active": False,
            "owner": {"name": "Ana"},
        },
    ]


def make_columns() -> list[dict[str, Any]]:
    """Column declarations matching ``make_rows``."""
    return [
        {"field": "id", "type": "number", "isUnique": True},
        {"field": "name", "title": "Name"},
        {"field": "price", "type": "number"},
        {"field": "created", "type": "date"},
        {"field": "active", "type": "bool"},
        {"field": "owner.name", "title": "Owner"},
    ]


def numbered_rows(count: int) -> list[dict[str, Any]]:
    """``count`` simple records with ids starting at 1."""
    return [{"id": i, "name": f"Row {i}"} for i in range(1, count + 1)]


@pytest.fixture
def sample_rows():
    """Five mixed-type records."""
    return make_rows()


@pytest.fixture
def sample_columns():
    """Column declarations for ``sample_rows``."""
    return make_columns()


@pytest.fixture
def settings():
    """Settings with short, distinct debounce windows."""
    return GridwrightSettings(
        table={"filter_debounce_ms": 300, "search_debounce_ms": 200},
        layout={"recalculate_delay_ms": 100},
    )


@pytest.fixture
def table(sample_rows, sample_columns, settings, scheduler):
    """Local-mode table over the sample data."""
    tbl = DataTable(sample_rows, sample_columns, settings=settings, scheduler=scheduler)
    yield tbl
    tbl.close()


@pytest.fixture
def server_table(settings, scheduler):
    """Server-mode table reporting 47 matching rows, 10 per page."""
    tbl = DataTable(
        numbered_rows(10),
        [{"field": "id", "type": "number", "isUnique": True}, {"field": "name"}],
        settings=settings,
        scheduler=scheduler,
        server_mode=True,
        total_rows=47,
    )
    yield tbl
    tbl.close()
