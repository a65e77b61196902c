"""
Structured logging setup for the calendar core.
Provides JSON-formatted logs with consistent fields for production monitoring
and a human-readable console format for local development.
"""

import logging
import sys

import structlog
from structlog.stdlib import LoggerFactory

_NOISE_LOGGERS = (
    "httpx",
    "httpcore",
    "uvicorn.access",
)


def setup_logging(log_level: str = "INFO", fmt: str = "json") -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: ``json`` for JSON lines, ``text`` for colored console output
    """
    if fmt == "text":
        timestamper = structlog.processors.TimeStamper(fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()
    else:
        timestamper = structlog.processors.TimeStamper(fmt="iso")
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            # request_id and sync_generation bound via structlog.contextvars
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            timestamper,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_request(method: str, path: str, status_code: int, duration_ms: float):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)


def log_sync_outcome(generation: int, event_count: int, failed_accounts: list[str], stale: bool):
    """Log the user-visible outcome of one aggregation cycle."""
    logger = get_logger("calendar.sync")

    log_data = {
        "sync_generation": generation,
        "event_count": event_count,
        "failed_accounts": failed_accounts,
        "stale": stale,
    }

    if failed_accounts:
        logger.warning("Calendar sync completed with failures", **log_data)
    else:
        logger.info("Calendar sync completed", **log_data)
