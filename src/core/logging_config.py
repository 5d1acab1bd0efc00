"""
Structured Logging Configuration for InspectFlow
================================================

JSON lines for production (one object per record, ready for ELK or
CloudWatch), plain text for local runs. Both the API process and the Celery
worker call `setup_logging(settings)` at startup.

Document and session transitions are logged through `ContextLogger`; the ids
of the affected records (`CORRELATION_KEYS`) become top-level keys of each
JSON line, any other context lands under `extra`. The text format appends the
same ids so a document can be followed across API and worker output.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Optional

from core.config import Settings, get_settings

CORRELATION_KEYS = ("document_id", "session_id", "user_id", "job_id")

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"

# Chatty at INFO, not useful for tracing a document
QUIET_LOGGERS = ("pymongo", "urllib3", "celery", "kombu", "amqp")


def split_context(extra: dict) -> tuple[dict, dict]:
    """Separate correlation ids from the rest of a record's context."""
    context = dict(extra)
    ids = {key: context.pop(key) for key in CORRELATION_KEYS if key in context}
    return ids, context


class JSONFormatter(logging.Formatter):
    """One JSON object per record, correlation ids at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            ids, context = split_context(record.extra_data)
            log_data.update(ids)
            if context:
                log_data["extra"] = context

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with `[document_id=... session_id=...]` appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if hasattr(record, "extra_data"):
            ids, _ = split_context(record.extra_data)
            if ids:
                line += " [" + " ".join(f"{key}={value}" for key, value in ids.items()) + "]"
        return line


class ContextLogger:
    """
    Logger wrapper that supports adding context to log messages.

    Usage:
        logger = get_logger(__name__)
        logger.info("Extraction started", extra={"document_id": "123", "attempt": 1})
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _log(self, level: int, message: str, extra: dict[str, Any] | None = None, **kwargs):
        if extra:
            kwargs["extra"] = {"extra_data": extra}
        self._logger.log(level, message, **kwargs)

    def debug(self, message: str, extra: dict[str, Any] | None = None, **kwargs):
        self._log(logging.DEBUG, message, extra, **kwargs)

    def info(self, message: str, extra: dict[str, Any] | None = None, **kwargs):
        self._log(logging.INFO, message, extra, **kwargs)

    def warning(self, message: str, extra: dict[str, Any] | None = None, **kwargs):
        self._log(logging.WARNING, message, extra, **kwargs)

    def error(self, message: str, extra: dict[str, Any] | None = None, **kwargs):
        self._log(logging.ERROR, message, extra, **kwargs)

    def exception(self, message: str, extra: dict[str, Any] | None = None, **kwargs):
        kwargs["exc_info"] = True
        self._log(logging.ERROR, message, extra, **kwargs)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure the root logger from `LOG_LEVEL`, `LOG_JSON` and `LOG_FILE`.

    The log file, when set, always receives JSON lines.
    """
    settings = settings or get_settings()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter() if settings.log_json else TextFormatter())
    root_logger.addHandler(console_handler)

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextLogger instance
    """
    return ContextLogger(logging.getLogger(name))
