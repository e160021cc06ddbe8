"""Structured logging setup for the relay and its tools."""

from __future__ import annotations

import logging

import structlog


def configure_logging(*, debug: bool = False, json_logs: bool = False) -> None:
    """Configure structlog for the process.

    Args:
        debug: Enable debug level logging.
        json_logs: Output logs as JSON (for production).
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_connection(connection_id: str) -> None:
    """Attach the connection id to every log line emitted by the current task."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(connection_id=connection_id)
