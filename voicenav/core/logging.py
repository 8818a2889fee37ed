from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any

import structlog


def configure_logging(debug: bool = False) -> None:
    """Configure structured logging for the application.

    Debug mode renders human-readable console lines; otherwise every event is a
    single JSON object so provider lookups can be grepped by query or strategy.
    """

    level = logging.DEBUG if debug else logging.INFO
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer(sort_keys=True)
    )

    logging.basicConfig(format="%(message)s", level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def get_logger(*args: Any, **kwargs: Any) -> structlog.BoundLogger:
    return structlog.get_logger(*args, **kwargs)


def log_context(**values: Any) -> AbstractContextManager[Any]:
    """Bind ``values`` to every log event emitted inside the ``with`` block."""

    return structlog.contextvars.bound_contextvars(**values)
