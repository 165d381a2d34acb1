"""Structured key=value logging for pipeline runs."""

import logging
import sys
from typing import Any

# Fields promoted to top-level keys when passed through `extra`
RUN_FIELDS = ("run_id", "feature_id", "spec_id", "stage", "agent")


class StructuredFormatter(logging.Formatter):
    """Render a record as space-separated key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in RUN_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                fields[key] = value

        fields.update(getattr(record, "extra_data", None) or {})

        line = " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_from_settings() -> int:
    from spec_engine.core.config import get_settings

    try:
        settings = get_settings()
    except Exception:
        return logging.INFO
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return logging.DEBUG if settings.SPEC_ENGINE_ENV == "dev" else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger writing structured lines to stdout.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger with a single StructuredFormatter handler
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_from_settings())
        logger.propagate = False

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Log msg with run fields promoted and everything else under extra_data."""
    extra: dict[str, Any] = {key: kwargs.pop(key) for key in RUN_FIELDS if key in kwargs}
    extra["extra_data"] = kwargs
    logger.log(level, msg, extra=extra)
