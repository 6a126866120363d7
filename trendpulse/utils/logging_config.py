"""Structured logging configuration."""

import json
import logging
import sys
from typing import Any

from trendpulse.utils.config import get_settings


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Topic-level events attach their fields through
    ``extra={"extra_fields": {...}}``; those keys are merged into the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string with log data
        """
        settings = get_settings()

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "app_name": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Text formatter; appends ``topic=<key>`` when the record carries one."""

    def __init__(self) -> None:
        fmt = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict) and "topic" in extra_fields:
            message = f"{message} [topic={extra_fields['topic']}]"
        return message


# Track if logging has been configured
_logging_configured = False


def setup_logging(use_json: bool | None = None, force_reconfigure: bool = False) -> None:
    """
    Configure application logging.

    Sets up console logging with the LOG_LEVEL from settings.
    Prevents duplicate handlers by checking if already configured.

    Args:
        use_json: JSON output when True, text when False. None defers to
            the LOG_FORMAT setting.
        force_reconfigure: If True, force reconfiguration even if already set up.
    """
    global _logging_configured

    if _logging_configured and not force_reconfigure:
        return

    settings = get_settings()
    if use_json is None:
        use_json = settings.LOG_FORMAT == "json"

    root_logger = logging.getLogger()

    # Remove only our own StreamHandler; pytest's caplog handler stays
    handlers_to_remove = [
        h for h in root_logger.handlers
        if isinstance(h, logging.StreamHandler) and h.stream == sys.stdout
    ]
    for handler in handlers_to_remove:
        root_logger.removeHandler(handler)

    log_level = getattr(logging, settings.LOG_LEVEL)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JsonFormatter() if use_json else StandardFormatter())
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO; one line per subreddit fetch is noise
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    _logging_configured = True

    logger = logging.getLogger(__name__)
    logger.debug(
        "Logging configured: level=%s, format=%s",
        settings.LOG_LEVEL,
        "json" if use_json else "standard",
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Ensures logging is set up before returning the logger.

    Args:
        name: Name for the logger (typically __name__ from calling module)

    Returns:
        Logger instance
    """
    if not _logging_configured:
        setup_logging()

    return logging.getLogger(name)


def reset_logging() -> None:
    """
    Reset logging configuration.

    Useful for testing to clear state between tests.
    """
    global _logging_configured

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)

    _logging_configured = False
