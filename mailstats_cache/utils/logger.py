"""
Structured logging configuration using structlog.

Provides JSON-formatted logging with context processors for
timestamps and log levels.
"""
import logging
import os
import sys
from typing import Any, Optional

import structlog


def setup_logging(level: str = "INFO", environment: Optional[str] = None) -> None:
    """
    Configure structured logging with structlog.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: "development" for colored console output; anything
            else renders JSON (default: ENVIRONMENT env var)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    if environment is None:
        environment = os.getenv("ENVIRONMENT", "production")
    is_dev = environment == "development"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("stats_cache_hit", user_id="user-1")
    """
    return structlog.get_logger(name)


def log_stats_resolution(
    user_id: str,
    origin: str,
    duration_ms: float,
    error: str | None = None,
    **extra: Any,
) -> None:
    """
    Log the outcome of one stats lookup in structured format.

    Args:
        user_id: User the stats were resolved for
        origin: "cache", "cursor", "computed" or "empty"
        duration_ms: Time spent resolving in milliseconds
        error: Error message if resolution failed
        **extra: Additional context to log

    Example:
        >>> log_stats_resolution("user-1", "cache", 1.8, new_count=4)
    """
    logger = get_logger("stats_resolution")

    log_data = {
        "user_id": user_id,
        "origin": origin,
        "duration_ms": round(duration_ms, 2),
        "cached": origin in ("cache", "cursor"),
        "error": error,
        **extra,
    }

    if error:
        logger.error("stats_resolution_failed", **log_data)
    else:
        logger.info("stats_resolution_success", **log_data)
