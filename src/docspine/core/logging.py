"""
docspine logging - structured logging for chain runs and bulk writes.

Manifesto:
    A chain run touches several collections and may run for a long time.
    Logs should say which run and which stage they belong to, and be
    machine-readable in production:

    - **Structures:** JSON output for log aggregation
    - **Correlates:** ``run_id`` is bound for the lifetime of a chain run
    - **Flexes:** Console output for development, JSON for production

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="docspine")
            ↓
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars        (run_id, collection, ...)
          3. add_log_level
          4. service metadata
          5. JSONRenderer or ConsoleRenderer

Examples:
    >>> from docspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("chain_run_started", primary="orders", stages=2)

Tags:
    logging, structlog, observability, json-logging, docspine
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "docspine"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "docspine",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stderr.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        # stdout carries CLI output (JSON lines), so logs go to stderr
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # module-level loggers must follow a later configure_logging() call
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(run_id="abc123"):
            logger.info("chain_run_started")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())

    async def __aenter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    async def __aexit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
