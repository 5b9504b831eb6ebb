"""Structured logging for the WingMatch engine."""

import logging
import sys
from typing import Any, Dict, MutableMapping, Optional

import structlog
from structlog.types import Processor

from wingmatch.config import settings

# Event keys that carry phone numbers; only the last digits are kept
PHONE_KEYS = frozenset({"phone", "phone_number"})


def mask_phone_numbers(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Replace every digit but the last four of a phone number with '*'."""
    for key in PHONE_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > 4:
            event_dict[key] = "*" * (len(value) - 4) + value[-4:]
    return event_dict


def add_app_context(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("app", settings.APP_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def configure_logging(json_logs: Optional[bool] = None) -> None:
    """
    Route stdlib and structlog output through one processor chain.

    Console output in development, one JSON object per line elsewhere. SQL
    statement logging from SQLAlchemy is only let through in DEBUG mode.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=log_level, stream=sys.stdout)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)

    if json_logs is None:
        json_logs = settings.ENVIRONMENT.lower() != "development"

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        mask_phone_numbers,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Logger for a module, with optional context bound up front."""
    return structlog.get_logger(name).bind(**initial_values)  # type: ignore


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: Exception,
    message: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a failure with its type, message and context.

    Engine errors carry their status code, retryable flag and details.
    Retryable ones (storage hiccups, lost races) are warnings without a
    traceback; anything else is an error with the traceback attached.

    Args:
        logger (structlog.stdlib.BoundLogger): The logger instance to use.
        error (Exception): The exception to log.
        message (Optional[str], optional): Custom message. Defaults to "An error occurred".
        extra (Optional[Dict[str, Any]], optional): Additional context to log.
    """
    context = dict(extra or {})
    context["error_type"] = error.__class__.__name__
    context["error_message"] = str(error)

    details = getattr(error, "details", None)
    if details:
        context["error_details"] = details
    if hasattr(error, "status_code"):
        context["status_code"] = error.status_code

    if getattr(error, "retryable", False):
        logger.warning(message or "An error occurred", **context, retryable=True)
        return
    logger.error(message or "An error occurred", **context, exc_info=error)
