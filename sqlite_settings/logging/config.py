"""Logging for the settings store.

- Every module logs through get_logger(), which scrubs context before any handler sees it
- Records go to the "sqlite_settings" logger; a NullHandler keeps the library quiet by default
- configure_logging() opts a host into JSON lines on that logger without touching the root logger
"""
from __future__ import annotations

import json
import logging
from typing import Any, MutableMapping, Optional

from sqlite_settings.lib.redaction import redact, redact_sql

PACKAGE_LOGGER = "sqlite_settings"
CONTEXT_KEYS = ("operation", "database", "setting", "statement", "create", "file")
SENSITIVE_KEYS = frozenset({"value", "password", "secret", "token"})
REDACTED_VALUE = "***REDACTED***"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


class StoreLogAdapter(logging.LoggerAdapter):
    """Redacts statement text and sensitive extras on the way in."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        for key in SENSITIVE_KEYS.intersection(extra):
            extra[key] = REDACTED_VALUE
        if "statement" in extra:
            extra["statement"] = redact_sql(str(extra["statement"]))
        if "database" in extra:
            extra["database"] = redact(str(extra["database"]))
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> StoreLogAdapter:
    return StoreLogAdapter(logging.getLogger(name), {})


class JsonFormatter(logging.Formatter):
    """One JSON object per record: level, logger, message and the store context."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {key: getattr(record, key) for key in CONTEXT_KEYS if hasattr(record, key)}
        if context:
            payload["context"] = {key: _jsonable(value) for key, value in context.items()}
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: int = logging.INFO, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """Send store records as JSON lines to handler (stderr by default).

    Calling again without a handler does not stack a second stream handler.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if handler is None:
        if any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
            return logger
        handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


__all__ = [
    "PACKAGE_LOGGER",
    "REDACTED_VALUE",
    "JsonFormatter",
    "StoreLogAdapter",
    "configure_logging",
    "get_logger",
]
