"""Structured logging configuration for the idempotency MongoDB adapter.

This module provides structured logging using structlog. Adapter events
carry contextual fields such as the collection name, idempotency key and
error type; request and response payloads are never logged.

Examples:
    Configure logging::

        from idempotent_mongo_adapter.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Use the logger::

        from idempotent_mongo_adapter.observability.logging import get_logger

        logger = get_logger(__name__)
        logger.info("adapter.initialized", collection="idempotencyStore", ttl_seconds=86400)

    Output (JSON)::

        {
            "event": "adapter.initialized",
            "collection": "idempotencyStore",
            "ttl_seconds": 86400,
            "timestamp": "2024-01-01T00:00:00.000000Z",
            "level": "info"
        }
"""

import logging
import sys
from typing import Any, TextIO

import structlog


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging for the hosting application.

    The adapter never calls this itself; it only emits events through
    loggers from get_logger(). Call it once at startup if the host has no
    structlog configuration of its own.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit one JSON object per line when True, otherwise
            the colored console format
        stream: Destination for log lines, stdout by default

    Raises:
        ValueError: If level is not a known log level name.
    """
    numeric_level = _resolve_level(level)
    stream = stream or sys.stdout

    logging.basicConfig(format="%(message)s", stream=stream, level=numeric_level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
