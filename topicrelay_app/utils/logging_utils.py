import logging
import json
import os
from logging.handlers import RotatingFileHandler

# Relay identifiers passed through ``logger.info(..., extra={...})``.
CONTEXT_FIELDS = ("user_id", "thread_id", "chat_id", "message_id", "media_group_id")


class JsonFormatter(logging.Formatter):
    """Format log records as JSON, including any relay context fields."""

    def format(self, record: logging.LogRecord) -> str:
        """Return the given record serialized as a JSON string."""
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt or "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "module": record.module,
            "funcName": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def relay_context(**fields) -> dict:
    """Build an ``extra`` mapping for a log call, dropping empty fields.

    Example
    -------
    ``logger.info("Forwarded", extra=relay_context(user_id=1, thread_id=7))``
    """
    return {key: value for key, value in fields.items() if key in CONTEXT_FIELDS and value is not None}


def setup_json_file_logger(log_file: str, level: int = logging.INFO) -> RotatingFileHandler:
    """Route root-logger records into the JSON log file.

    Celery workers replace the root handlers installed by the app's dictConfig,
    so ``celery_app`` calls this from ``after_setup_logger`` to keep album
    flushes in ``app.json`` next to the webhook's records. If the root logger
    already writes to ``log_file`` that handler is returned unchanged.

    Returns the handler; call ``removeHandler`` on the root logger when done.
    """
    root_logger = logging.getLogger()
    target = os.path.abspath(log_file)
    for existing in root_logger.handlers:
        if isinstance(existing, RotatingFileHandler) and existing.baseFilename == target:
            return existing

    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    handler = RotatingFileHandler(
        filename=log_file,
        maxBytes=10_485_760,
        backupCount=5,
        encoding="utf8",
    )
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    return handler
