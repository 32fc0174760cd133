"""Logging utilities for gridwright.

Normalization problems and scheduled-callback failures are logged as
warnings instead of being raised.
"""

from __future__ import annotations

import logging
import sys


class _LoggerHolder:
    """Holder for the global logger instance."""

    instance: logging.Logger | None = None


_DEFAULT_FORMAT = "%(name)s - %(levelname)s - %(message)s"


def get_logger() -> logging.Logger:
    """Get the gridwright logger instance.

    Returns
    -------
    logging.Logger
        The gridwright logger configured with a stream handler.
    """
    if _LoggerHolder.instance is None:
        logger = logging.getLogger("gridwright")
        logger.setLevel(logging.WARNING)

        # Only add handler if none exists
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
            logger.addHandler(handler)

        _LoggerHolder.instance = logger

    return _LoggerHolder.instance


def debug(msg: str) -> None:
    """Log a debug message.

    Parameters
    ----------
    msg : str
        The message to log.
    """
    get_logger().debug(msg)


def warn(msg: str) -> None:
    """Log a warning message. Never raises exceptions.

    Parameters
    ----------
    msg : str
        The warning message to log.
    """
    get_logger().warning(msg)


def exception(msg: str) -> None:
    """Log an exception with full traceback.

    Call this from within an except block.

    Parameters
    ----------
    msg : str
        The error message to log alongside the traceback.
    """
    get_logger().exception(msg)


def set_level(level: int | str) -> None:
    """Set the logging level.

    Parameters
    ----------
    level : int or str
        The logging level (e.g., logging.DEBUG, "DEBUG").
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    get_logger().setLevel(level)


def configure_logging(level: int | str | None = None, fmt: str | None = None) -> None:
    """Apply level and format, falling back to the loaded ``LogSettings``.

    Parameters
    ----------
    level : int or str, optional
        Logging level. Defaults to ``get_settings().log.level``.
    fmt : str, optional
        Format string for the package handler. Defaults to ``get_settings().log.format``.
    """
    if level is None or fmt is None:
        from .config import get_settings  # pylint: disable=import-outside-toplevel

        log_settings = get_settings().log
        level = level if level is not None else log_settings.level
        fmt = fmt if fmt is not None else log_settings.format

    logger = get_logger()
    set_level(level)
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(fmt))


def enable_debug() -> None:
    """Enable debug mode for verbose allocation and pipeline logging.

    This will show all debug messages including:
    - Column normalization repairs
    - Width allocation decisions
    - Pipeline recomputations
    - Debounced emissions
    """
    set_level(logging.DEBUG)
