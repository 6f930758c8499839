"""
db-spine logging - structured logging for the traversal engine.

Manifesto:
    A crawler that runs unattended for weeks is only debuggable through
    its logs. Every traversal event is a structured record (event name +
    key/value pairs) so cursor positions, batch sizes and checkpoint
    decisions can be queried in a log aggregator.

    - **Structured:** JSON output for log aggregation
    - **Correlated:** ``db_name`` bound once per traversal via LogContext
    - **Flexible:** Console output for development, JSON for production

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="db-spine")
        configure_from_settings(ConnectorSettings)   ← CLI entry point
              │
              ▼
        structlog processor chain:
          1. TimeStamper(iso)
          2. merge_contextvars / add_log_level
          3. add_connector_metadata (service.name, service.version)
          4. ecs_field_names (JSON only)
          5. JSONRenderer (or ConsoleRenderer for dev)

Examples:
    >>> from dbspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("batch_fetched", cursor=300, rows=300)

Tags:
    logging, structlog, observability, json-logging, db-spine

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from dbspine import __version__

if TYPE_CHECKING:
    from dbspine.core.settings import ConnectorSettings

_service_name = "db-spine"


def _add_connector_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp every record with the service name and package version."""
    event_dict.setdefault("service.name", _service_name)
    event_dict.setdefault("service.version", __version__)
    return event_dict


def _ecs_field_names(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename ``timestamp``/``level`` to their ECS names for aggregators."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # Resolved per call: the CLI runner swaps sys.stderr between invocations.
    return structlog.PrintLogger(sys.stderr)


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "db-spine",
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for traversal events.

    Records go to stderr so command output on stdout stays parseable.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON when True, console when False, JSON for non-tty
            stdout when None
        service: Value of the ``service.name`` field
        add_timestamp: Prepend an ISO timestamp to every record
    """
    global _service_name
    _service_name = service

    if json_format is None:
        json_format = not sys.stdout.isatty()
    numeric_level = getattr(logging, level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_connector_metadata,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors += [_ecs_field_names, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)


def configure_from_settings(settings: ConnectorSettings) -> None:
    """Apply ``log_level`` and ``log_format`` (``json`` or ``console``) from settings."""
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, tagged with *name* under the ``logger`` key."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger().bind(logger=name)


def bind_context(**kwargs: Any) -> None:
    """Attach key/values to every record logged from this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Bind key/values for the duration of a ``with`` block.

    Example:
        with LogContext(db_name="inventory"):
            logger.info("traversal_started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
]
