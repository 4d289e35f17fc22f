"""Structured logging for the DOCCS sync."""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    debug: Optional[bool] = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render events as JSON lines instead of console output.
        debug: When true, forces DEBUG regardless of ``level``.
    """
    if debug:
        level = "DEBUG"
    numeric_level = getattr(logging, level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer: list = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger for a module."""
    return structlog.get_logger(name)


@contextmanager
def record_context(record_id: str, din: Optional[str]) -> Iterator[None]:
    """Bind the Airtable record id and DIN to every event logged inside."""
    with structlog.contextvars.bound_contextvars(record_id=record_id, din=din):
        yield
