"""Root logger configuration for the ``run`` command."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVELS = ("debug", "info", "warning", "error")

_QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler")


def configure(level: str = "info", console: Optional[Console] = None) -> logging.Handler:
    """Send log records at *level* and above to stderr through Rich.

    Chatty third-party loggers are held at ``WARNING`` unless *level* is
    ``debug``. Calling this again replaces the previously installed handler.

    Raises:
        ValueError: If *level* is not one of :data:`LOG_LEVELS`.
    """
    if level.lower() not in LOG_LEVELS:
        raise ValueError(f"unknown log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")
    numeric = getattr(logging, level.upper())

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=numeric == logging.DEBUG,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if numeric == logging.DEBUG else logging.WARNING)
    return handler
