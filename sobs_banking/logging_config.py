"""
Structured Logging Configuration Module

JSON log lines for ledger, card and money movement operations. Context such
as the acting user or the affected account travels on the log record and is
emitted as top-level keys.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Record attributes copied into every JSON line when present
CONTEXT_FIELDS = ("correlation_id", "user_id", "action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per log record"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    logger_name: str = "sobs",
    log_format: str = "json",
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the application logger.

    Calling this again replaces the handler installed by the previous call.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Application root logger; module loggers are "sobs.<area>"
        log_format: "json" for structured lines, anything else for plain text
        log_file: Append to this file instead of writing to stderr
    """
    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return logger


def get_logger(name: str = "sobs") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None) -> None:
    """
    Log a business action with structured context.

    Args:
        logger: Logger to emit on
        level: Level name, e.g. "info" or "warning"
        message: Human readable message
        user_id: Acting user
        action: Short action name, e.g. "deposit"
        resource: Affected resource, e.g. "account:12345678901234"
        correlation_id: Request correlation id
        extra: Any further structured details
    """
    context = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "extra": extra,
    }
    logger.log(
        getattr(logging, level.upper()),
        message,
        extra={key: value for key, value in context.items() if value}
    )
