"""Structured logging and OpenTelemetry spans for floe-relative.

Every catalog operation runs inside catalog_operation(), which opens a span
named ``catalog.<operation>`` and logs start, completion (with duration) and
failure events through the ``floe.relative`` structlog logger.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer
    from structlog.stdlib import BoundLogger

LOGGER_NAME = "floe.relative"
TRACER_NAME = LOGGER_NAME

_ATTRIBUTE_PREFIX = "floe.catalog."

_logger: BoundLogger | None = None


def get_logger() -> BoundLogger:
    """Return the package logger."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(LOGGER_NAME)
    return _logger


def get_tracer() -> Tracer:
    """Return the package tracer.

    Not cached: the global tracer provider may be installed after import.
    """
    return trace.get_tracer(TRACER_NAME)


def build_processors(*, json_format: bool, add_timestamp: bool) -> list[Any]:
    """Return the structlog processor chain used by configure_logging()."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    processors.append(
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )
    return processors


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Route floe-relative logs through the standard library.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render JSON lines instead of console output.
        add_timestamp: Add an ISO-8601 UTC ``timestamp`` key.

    Raises:
        ValueError: If the level name is unknown.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        msg = f"Unknown log level: {log_level}"
        raise ValueError(msg)

    structlog.configure(
        processors=build_processors(json_format=json_format, add_timestamp=add_timestamp),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger(LOGGER_NAME).setLevel(level)


@contextmanager
def catalog_operation(
    operation: str,
    *,
    warehouse: str | None = None,
    namespace: str | None = None,
    table: str | None = None,
) -> Iterator[Span]:
    """Trace and log one catalog operation.

    Empty identifiers (the warehouse root namespace) are left out of the
    span attributes. Exceptions are recorded on the span, logged and
    re-raised unchanged.

    Args:
        operation: Operation name (e.g., "list_tables", "drop_table").
        warehouse: Warehouse root location.
        namespace: Namespace being operated on.
        table: Table being operated on.

    Yields:
        The active span.

    Example:
        >>> with catalog_operation("drop_table", table="bronze.customers"):
        ...     catalog.drop_table("bronze.customers")
    """
    context = {
        key: value
        for key, value in (("warehouse", warehouse), ("namespace", namespace), ("table", table))
        if value
    }
    attributes = {_ATTRIBUTE_PREFIX + "operation": operation}
    attributes.update({_ATTRIBUTE_PREFIX + key: value for key, value in context.items()})
    logger = get_logger().bind(operation=operation, **context)

    with get_tracer().start_as_current_span(
        f"catalog.{operation}",
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as current:
        logger.debug(f"{operation}_started")
        started = time.perf_counter()
        try:
            yield current
        except Exception as exc:
            current.record_exception(exc)
            current.set_status(Status(StatusCode.ERROR, str(exc)))
            logger.error(f"{operation}_failed", error=str(exc), error_type=type(exc).__name__)
            raise
        current.set_status(Status(StatusCode.OK))
        logger.info(
            f"{operation}_completed",
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
