"""
Module: logger.py
Description: Structured logging configuration for the Event Relay.

Configures structlog for JSON output so delivery workers, the rate
limiter and the API all emit one machine-readable line per log call
with their context bound as keys.

Key Components:
- JSON output with timestamp and level processors
- configure_logging(): Apply the level from settings
- get_logger() helper function

Dependencies: structlog, logging, datetime
Author: Event Relay Team
"""

import logging

import structlog
from datetime import datetime, timezone


def _add_timestamp(logger, method_name, event_dict):
    """
    Add ISO 8601 timestamp to log entries.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Current log event dictionary

    Returns:
        Updated event dictionary with timestamp
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _add_log_level(logger, method_name, event_dict):
    """Add log level to event dictionary."""
    event_dict["level"] = method_name.upper()
    return event_dict


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for JSON output at the given level.

    Safe to call more than once; the last call wins for loggers
    created afterwards.

    Args:
        level: Standard logging level name (DEBUG, INFO, ...)
    """
    structlog.configure(
        processors=[
            _add_timestamp,
            _add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.WriteLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )


configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Delivery succeeded", job_id="job_123", attempt=1)
        {"job_id": "job_123", "attempt": 1, "event": "Delivery succeeded", "timestamp": "...", "level": "INFO"}
    """
    return structlog.get_logger(name)
