"""Cancellable single-shot timers.

Each concern that needs delayed work (width recalculation, delegated filter
emission, delegated search emission, deferred local filtering) owns one
``Debouncer``. Scheduling always cancels whatever is pending for that
concern first, so a burst of triggers collapses into a single run carrying
the last callback.

Timers come from a ``Scheduler``; the default one uses ``threading.Timer``.
Hosts with their own event loop can supply a scheduler backed by it.
"""

from __future__ import annotations

import threading

from collections.abc import Callable
from typing import Protocol

from .log import debug, exception


class TimerHandle(Protocol):
    """A scheduled call that can be canceled."""

    def cancel(self) -> None:
        """Prevent the call from running if it has not started."""


class Scheduler(Protocol):
    """Something that can run a callback after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""


class ThreadingScheduler:
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Start a daemon timer thread for ``callback``."""
        timer = threading.Timer(max(delay, 0.0), callback)
        timer.daemon = True
        timer.start()
        return timer


class Debouncer:
    """Single-shot timer for one concern, rescheduled on every trigger.

    Parameters
    ----------
    name : str
        Concern name, used in log messages.
    delay_ms : int
        Default delay in milliseconds. Zero schedules for the next tick.
    scheduler : Scheduler, optional
        Timer source. Defaults to ``ThreadingScheduler``.
    """

    def __init__(self, name: str, delay_ms: int = 100, scheduler: Scheduler | None = None) -> None:
        self.name = name
        self.delay_ms = max(0, delay_ms)
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._handle: TimerHandle | None = None
        self._callback: Callable[[], None] | None = None
        # Bumped on every schedule/cancel so a superseded timer that already
        # started cannot run its stale callback
        self._generation = 0
        self._closed = False

    @property
    def pending(self) -> bool:
        """True while a callback is waiting to run."""
        with self._lock:
            return self._callback is not None

    def schedule(self, callback: Callable[[], None], delay_ms: int | None = None) -> None:
        """Cancel any pending call and schedule ``callback``.

        Parameters
        ----------
        callback : callable
            Zero-argument function to run.
        delay_ms : int, optional
            Override for this call; defaults to ``self.delay_ms``.
        """
        delay = self.delay_ms if delay_ms is None else max(0, delay_ms)
        with self._lock:
            if self._closed:
                debug(f"Debouncer {self.name!r} is closed; dropping schedule")
                return
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._callback = callback
            self._handle = self._scheduler.call_later(
                delay / 1000.0, lambda: self._fire(generation)
            )

    def cancel(self) -> bool:
        """Cancel the pending call. Returns True if one was pending."""
        with self._lock:
            was_pending = self._callback is not None
            if self._handle is not None:
                self._handle.cancel()
            self._handle = None
            self._callback = None
            self._generation += 1
        if was_pending:
            debug(f"Debouncer {self.name!r} canceled")
        return was_pending

    def flush(self) -> bool:
        """Run the pending call now instead of waiting. Returns True if one ran."""
        with self._lock:
            callback = self._callback
            if self._handle is not None:
                self._handle.cancel()
            self._handle = None
            self._callback = None
            self._generation += 1
        if callback is None:
            return False
        self._run(callback)
        return True

    def close(self) -> None:
        """Cancel the pending call and refuse any later schedule."""
        self.cancel()
        with self._lock:
            self._closed = True

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._callback is None:
                return
            callback = self._callback
            self._callback = None
            self._handle = None
        # Run outside the lock so the callback may schedule again
        self._run(callback)

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:  # pylint: disable=broad-exception-caught
            exception(f"Error in scheduled {self.name!r} callback")
