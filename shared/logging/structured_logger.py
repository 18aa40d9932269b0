"""Structured logging configuration using structlog.

Renders every log entry as one JSON object (or a console line in
development) carrying the event name, level, logger, ISO timestamp, the
application tag, and whatever context is bound for the current request
(correlation id, service name).
"""

import logging
import sys
from typing import Any, Iterable, Optional

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "service-request-engine"

# Driver loggers that flood DEBUG output with connection pool chatter.
NOISY_LOGGERS = ("pymongo", "pymongo.connection", "pymongo.serverSelection")


def add_app_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag entries with the application name.

    Args:
        logger: The logger instance
        method_name: The logging method name
        event_dict: The event dictionary

    Returns:
        Event dictionary with ``app`` set unless the caller bound one
    """
    event_dict.setdefault("app", APP_NAME)
    return event_dict


def _quiet(logger_names: Iterable[str], level: int) -> None:
    for name in logger_names:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    service_name: Optional[str] = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; the last call wins.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON output when True, console rendering otherwise
        service_name: Bound as ``service`` on every subsequent entry
    """
    level = getattr(logging, log_level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_app_context,
    ]
    processors.append(
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
    _quiet(NOISY_LOGGERS, level)

    if service_name:
        bind_context(service=service_name)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind key/value pairs to every later entry in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove previously bound keys from the current context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()
