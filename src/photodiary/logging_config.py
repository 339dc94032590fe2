"""
Structured logging setup for the photodiary image proxy.

structlog sits on top of the standard library logger so that uvicorn,
FastAPI and google-auth records end up in the same stream as ours.
"""

import logging
import os
import sys
from typing import Any

import structlog

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

DEVELOPMENT_ENVIRONMENTS = ("development", "dev", "local", "test")


def get_log_level() -> int:
    """Resolve LOG_LEVEL to a logging constant, INFO when unset or unknown."""
    return LOG_LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def is_development_environment() -> bool:
    """Return True when ENVIRONMENT names a development-like environment."""
    return os.getenv("ENVIRONMENT", "development").lower() in DEVELOPMENT_ENVIRONMENTS


def configure_structured_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    Development renders human-readable console lines, everything else
    renders one JSON object per line for the log collector.
    """
    log_level = get_log_level()
    is_dev = is_development_environment()

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger().setLevel(log_level)

    structlog.get_logger("photodiary.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        environment="development" if is_dev else "production",
    )


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger.

    Args:
        name: Logger name, usually the calling module's ``__name__``

    Returns:
        structlog.BoundLogger: Logger instance
    """
    return structlog.get_logger(name or "photodiary")


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """
    Log the duration of an operation.

    Args:
        operation: Name of the operation
        duration: Duration in seconds
        **context: Additional context information
    """
    get_logger("photodiary.performance").info(
        "performance_metric", operation=operation, duration_seconds=duration, **context
    )


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """
    Log an exception together with structured context.

    Args:
        error: Exception that occurred
        context: Additional context information
    """
    error_context: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if context:
        error_context.update(context)

    get_logger("photodiary.errors").error("error_occurred", **error_context, exc_info=error)


def log_security_event(event_type: str, **context: Any) -> None:
    """
    Log an authentication or access related event.

    Args:
        event_type: Type of security event
        **context: Additional context information
    """
    get_logger("photodiary.security").warning("security_event", event_type=event_type, **context)
