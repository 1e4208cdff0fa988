from __future__ import annotations

import pytest

from sqlite_settings.storage.config import AdapterConfig


def test_defaults_keep_single_file():
    cfg = AdapterConfig()
    assert cfg.journal_mode == "DELETE"
    assert cfg.pragmas() == [
        "PRAGMA foreign_keys=ON",
        "PRAGMA journal_mode=DELETE",
        "PRAGMA synchronous=NORMAL",
        "PRAGMA busy_timeout=5000",
    ]


def test_modes_are_normalized():
    cfg = AdapterConfig(journal_mode="wal", synchronous="full", foreign_keys=False)
    assert cfg.journal_mode == "WAL"
    assert "PRAGMA synchronous=FULL" in cfg.pragmas()
    assert "PRAGMA foreign_keys=OFF" in cfg.pragmas()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"journal_mode": "sideways"},
        {"synchronous": "sometimes"},
        {"timeout_seconds": -1},
        {"busy_timeout_ms": -5},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        AdapterConfig(**kwargs)
