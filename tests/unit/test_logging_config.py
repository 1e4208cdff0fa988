from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

from sqlite_settings.logging.config import (
    PACKAGE_LOGGER,
    REDACTED_VALUE,
    JsonFormatter,
    configure_logging,
    get_logger,
)
from sqlite_settings.services.settings_store import SettingsStore


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test.settings",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg="Settings operation failed",
        args=(),
        exc_info=None,
        func=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def captured(package_logger: logging.Logger) -> _ListHandler:
    handler = _ListHandler()
    configure_logging(level=logging.DEBUG, handler=handler)
    return handler


def test_json_formatter_includes_context():
    payload = json.loads(JsonFormatter().format(_record(operation="set", setting="theme", unrelated="x")))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "test.settings"
    assert payload["message"] == "Settings operation failed"
    assert payload["context"] == {"operation": "set", "setting": "theme"}


def test_json_formatter_renders_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exception"]


def test_log_adapter_redacts_values_and_statements(captured: _ListHandler):
    log = get_logger(f"{PACKAGE_LOGGER}.tests")

    log.info(
        "Running statement",
        extra={
            "operation": "execute",
            "value": "hunter2",
            "statement": "INSERT INTO settings (name, value) VALUES ('pw', 'hunter2')",
            "database": "/tmp/s.db",
        },
    )

    record = captured.records[-1]
    assert record.value == REDACTED_VALUE  # type: ignore[attr-defined]
    assert record.statement == "INSERT INTO settings (name, value) VALUES ('***', '***')"  # type: ignore[attr-defined]
    assert record.database == "/tmp/s.db"  # type: ignore[attr-defined]
    assert record.operation == "execute"  # type: ignore[attr-defined]


def test_configure_logging_targets_package_logger_only(package_logger: logging.Logger):
    root = logging.getLogger()
    root_handlers = list(root.handlers)

    logger = configure_logging(level=logging.DEBUG)

    assert logger is package_logger
    assert logger.level == logging.DEBUG
    assert isinstance(logger.handlers[-1].formatter, JsonFormatter)
    assert root.handlers == root_handlers


def test_configure_logging_is_idempotent(package_logger: logging.Logger):
    configure_logging()
    count = len(package_logger.handlers)
    configure_logging()

    assert len(package_logger.handlers) == count


def test_library_is_silent_without_configuration(package_logger: logging.Logger):
    assert any(isinstance(h, logging.NullHandler) for h in package_logger.handlers)


@pytest.mark.integration
def test_store_records_flow_through_configured_handler(tmp_path: Path, captured: _ListHandler):
    store = SettingsStore("s.db", tmp_path)
    store.raw_command("INSERT INTO settings (name, value) VALUES ('password', 'hunter2')")
    store.close()

    statements = [r for r in captured.records if getattr(r, "statement", None)]
    assert statements
    assert all("hunter2" not in r.statement for r in statements)  # type: ignore[attr-defined]
    assert any(r.getMessage() == "Settings store closed" for r in captured.records)
    assert all(r.name.startswith(PACKAGE_LOGGER) for r in captured.records)
    formatted = [captured.formatter.format(r) for r in captured.records]  # type: ignore[union-attr]
    assert all("hunter2" not in line for line in formatted)
