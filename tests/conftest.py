from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from sqlite_settings.services.settings_store import SettingsStore

DB_FILE_NAME = "UnitTest.db"


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SettingsStore]:
    settings_store = SettingsStore(DB_FILE_NAME, tmp_path)
    yield settings_store
    settings_store.close()


@pytest.fixture
def seeded_store(store: SettingsStore) -> SettingsStore:
    """Store with a consumer-defined paths table and one extra setting."""
    assert store.raw_command(
        "CREATE TABLE paths (id INTEGER PRIMARY KEY AUTOINCREMENT, path VARCHAR(250) UNIQUE, age int(4))"
    )
    assert store.set("PathDBInstalled", "TRUE")
    return store
