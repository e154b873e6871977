"""
Structured JSON logging utilities.

Every module logs through ``logging.getLogger(__name__)``; this module
supplies a single-line JSON formatter for deployments that collect logs
as structured records, and an adapter for attaching fixed context such
as the current user id.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}


class StructuredJsonFormatter(logging.Formatter):
    """
    JSON formatter producing one object per line.

    Fields:
    - timestamp: ISO 8601 in UTC
    - level: Log level name
    - logger: Logger name
    - message: Rendered message
    - exception: Formatted traceback, when present
    - any ``extra`` fields passed to the logging call
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_obj[key] = value
                except (TypeError, ValueError):
                    log_obj[key] = str(value)

        return json.dumps(log_obj, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = "journify_storage",
) -> logging.Logger:
    """
    Attach a JSON stdout handler to a logger.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: the package logger)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())

    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


def get_storage_logger(name: str) -> logging.Logger:
    """
    Get a component logger with consistent naming.

    Args:
        name: Component name (e.g., 'auth', 'data')

    Returns:
        Logger instance named 'journify_storage.{name}'
    """
    return logging.getLogger(f"journify_storage.{name}")


class StorageLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges fixed context into every record's extras."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra or {})
        kwargs["extra"] = extra
        return msg, kwargs
