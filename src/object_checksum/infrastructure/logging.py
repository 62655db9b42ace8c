"""Structured logging for the checksum service.

Every event carries the service name and the deployment context handed to
:func:`setup_logging` (environment, digest algorithm). Module loggers add
a ``logger`` field, so lines from the request path and from the
continuation worker thread can be told apart.

Usage:
    from object_checksum.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("checksum_range_planned", start=0, end=5 * 1024**3 - 1)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


SERVICE_NAME = "object_checksum"


def _static_fields(fields: dict[str, Any]) -> Processor:
    """Processor adding fixed fields without overriding event values."""

    def add_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_fields


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    **service_context: Any,
) -> structlog.stdlib.BoundLogger:
    """Configure structlog for the service.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' for machine-readable lines, 'console' for humans
        **service_context: Fields added to every event, e.g. environment

    Returns:
        The service logger
    """
    level_number = getattr(logging, level.upper())
    # uvicorn and other stdlib loggers share stdout with structlog
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level_number)

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _static_fields({"service": SERVICE_NAME, **service_context}),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_number),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return get_logger(SERVICE_NAME)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a lazily configured logger.

    Safe to call at import time: configuration is resolved on first use,
    after :func:`setup_logging` has run.

    Args:
        name: Recorded as the ``logger`` field (module name typically)
        **initial_context: Initial context to bind to the logger
    """
    if name is not None:
        initial_context.setdefault("logger", name)
    return structlog.get_logger(**initial_context)
