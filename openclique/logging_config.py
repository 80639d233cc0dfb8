"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any

import structlog

from openclique.config import Settings


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "openclique",
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level name; unknown names fall back to INFO
        json_format: If True, output JSON; if False, output colored console format
        service_name: Name of the service bound to every log entry
    """
    numeric_level = _resolve_level(level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        renderer: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def configure_from_settings(settings: Settings) -> None:
    """Configure logging from OPENCLIQUE_LOG_LEVEL / OPENCLIQUE_LOG_FORMAT."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format.lower() != "console",
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_request_context(
    request_id: str,
    actor_id: str | None = None,
    **kwargs: Any,
) -> None:
    """Bind the request id (and acting admin, when known) to subsequent log entries."""
    context: dict[str, Any] = {"request_id": request_id}
    if actor_id:
        context["actor_id"] = actor_id
    context.update(kwargs)
    structlog.contextvars.bind_contextvars(**context)


def bind_actor(actor_id: str) -> None:
    """Attach the authenticated admin to subsequent log entries of this request."""
    structlog.contextvars.bind_contextvars(actor_id=actor_id)


def clear_request_context() -> None:
    """Drop request-scoped context, keeping the service name."""
    structlog.contextvars.unbind_contextvars("request_id", "actor_id", "path")
