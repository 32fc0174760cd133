"""gridwright exception hierarchy.

All gridwright-specific exceptions inherit from GridwrightException, enabling
catch-all handling while supporting specific error types.

The computation core itself degrades to safe defaults instead of raising;
these exceptions belong to the outer surfaces (sessions and the CLI).
"""

from __future__ import annotations

from typing import Any


class GridwrightException(Exception):
    """Base exception for all gridwright errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize gridwright exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (path, action, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class DataSourceError(GridwrightException):
    """Rows or columns could not be loaded.

    Raised when an input file cannot be read or parsed,
    or holds something other than a list.
    """

    def __init__(self, message: str, path: str | None = None, **context: Any) -> None:
        """Initialize data source error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        path : str, optional
            The file that failed to load.
        **context : Any
            Additional context.
        """
        super().__init__(message, path=path, **context)
        self.path = path


class SessionClosedError(GridwrightException):
    """An action was invoked on a table session after it was closed.

    Closing a session cancels every pending timer; acting on it afterwards
    would schedule work that can never be delivered.
    """

    def __init__(self, message: str, action: str | None = None, **context: Any) -> None:
        """Initialize session closed error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        action : str, optional
            The action that was attempted.
        **context : Any
            Additional context.
        """
        super().__init__(message, action=action, **context)
        self.action = action
