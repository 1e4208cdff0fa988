from __future__ import annotations

import enum
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from sqlite_settings.core.errors import (
    BootstrapError,
    ClosedStoreError,
    ConnectionError,
    SettingsStoreError,
)
from sqlite_settings.lib.paths import compose_database_path, normalize_directory
from sqlite_settings.logging.config import get_logger
from sqlite_settings.storage.config import AdapterConfig
from sqlite_settings.storage.sqlite_adapter import Params, SQLiteAdapter, TabularResult

SETTINGS_TABLE_DDL = (
    "CREATE TABLE settings ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "name VARCHAR(150) UNIQUE, "
    "value VARCHAR(250))"
)
SENTINEL_NAME = "dbInstalled"
SENTINEL_VALUE = "TRUE"

_SELECT_VALUE = "SELECT value FROM settings WHERE name = ?"
_DELETE_SETTING = "DELETE FROM settings WHERE name = ?"
_INSERT_SETTING = "INSERT INTO settings (name, value) VALUES (?, ?)"
# Files SQLite may leave beside the database while a connection is or was open
_SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")

AdapterFactory = Callable[[Path, AdapterConfig], SQLiteAdapter]


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    OPENING = "opening"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class SettingsStore:
    """Persistent name/value settings kept in a single SQLite file.

    Every public operation goes through ensure_open() first. A handle that was
    closed underneath the store (by the caller or the engine) is reopened
    there, but never recreated: if the database file has vanished the
    operation fails with ConnectionError. After close() the store is
    terminal and every operation raises ClosedStoreError.

    A new file is bootstrapped with the settings table and a dbInstalled=TRUE
    sentinel row; if the sentinel does not read back, the file is removed and
    BootstrapError raised. Existing files are opened without schema checks.
    """

    def __init__(
        self,
        database_file_name: str,
        directory_path: str | os.PathLike[str] = ".",
        *,
        config: AdapterConfig | None = None,
        adapter_factory: AdapterFactory | None = None,
    ) -> None:
        self._logger = get_logger(__name__)
        self._config = config or AdapterConfig()
        self._adapter_factory: AdapterFactory = adapter_factory or SQLiteAdapter
        self._state = StoreState.UNINITIALIZED
        self._database_file_name = database_file_name
        self._path_to_database = normalize_directory(directory_path)
        db_path = compose_database_path(self._path_to_database, database_file_name)
        self._adapter = self._adapter_factory(db_path, self._config)

        if db_path.exists():
            self._open_existing()
        else:
            self._bootstrap()

    # Properties ---------------------------------------------------------
    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def handle(self) -> SQLiteAdapter:
        return self._adapter

    @property
    def database_file_name(self) -> str:
        return self._database_file_name

    @property
    def database_path(self) -> Path:
        return self._adapter.path

    @property
    def path_to_database(self) -> Path:
        return self._path_to_database

    @path_to_database.setter
    def path_to_database(self, value: str | os.PathLike[str]) -> None:
        """Rebind the store to the same file name in another directory.

        The new location is not bootstrapped; a missing file there surfaces
        as ConnectionError on the next operation.
        """
        self._raise_if_closed()
        directory = normalize_directory(value)
        if directory == self._path_to_database:
            return
        db_path = compose_database_path(directory, self._database_file_name)
        self._adapter.close()
        self._path_to_database = directory
        self._adapter = self._adapter_factory(db_path, self._config)
        self._logger.info("Database directory changed", extra=self._operation_context("rebind"))

    # Public operations --------------------------------------------------
    def ensure_open(self) -> None:
        """Guard run before every operation: reject closed stores, reopen closed handles.

        A vanished file or a failed reopen leaves the store FAILED; a later
        successful reopen returns it to READY.
        """
        self._raise_if_closed()
        if not self._adapter.path.exists():
            self._adapter.close()
            self._state = StoreState.FAILED
            raise ConnectionError(f"Database file no longer exists: {self._adapter.path}")
        if self._adapter.is_open:
            return
        self._state = StoreState.OPENING
        self._logger.info("Reopening database connection", extra=self._operation_context("reopen"))
        try:
            self._adapter.open()
        except ConnectionError:
            self._state = StoreState.FAILED
            raise
        self._state = StoreState.READY

    def get(self, name: str, default: Optional[str] = "") -> Optional[str]:
        """Return the stored value for name, or default when no row matches.

        default is "" so an unset name reads like an empty one; pass
        default=None to tell the two apart.
        """
        with self._operation("get", setting=name):
            self.ensure_open()
            rows = self._adapter.query(_SELECT_VALUE, (name,))
        if not rows or rows[0]["value"] is None:
            return default
        return str(rows[0]["value"])

    def set(self, name: str, value: str) -> bool:
        """Replace the setting: delete then insert, atomically. The row id changes."""
        with self._operation("set", setting=name):
            self.ensure_open()
            with self._adapter.transaction():
                self._adapter.execute(_DELETE_SETTING, (name,))
                self._adapter.execute(_INSERT_SETTING, (name, value))
        return True

    def raw_command(self, sql: str, params: Params = ()) -> bool:
        """Run any statement the engine accepts. The SQL text is the caller's responsibility."""
        with self._operation("raw_command"):
            self.ensure_open()
            self._adapter.execute(sql, params)
        return True

    def select(self, sql: str, params: Params = ()) -> TabularResult:
        """Run a query and return all rows as column-name keyed dicts."""
        with self._operation("select"):
            self.ensure_open()
            return self._adapter.query(sql, params)

    def close(self) -> None:
        if self._state is StoreState.CLOSED:
            return
        try:
            self._adapter.close()
        finally:
            self._state = StoreState.CLOSED
            self._logger.info("Settings store closed", extra=self._operation_context("close"))

    def __enter__(self) -> "SettingsStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Lifecycle internals -----------------------------------------------
    def _open_existing(self) -> None:
        self._state = StoreState.OPENING
        context = self._operation_context("open_store")
        try:
            self._adapter.open()
            self._adapter.health_check()
        except ConnectionError:
            self._adapter.close()
            self._state = StoreState.FAILED
            self._logger.error("Opening settings database failed", extra=context, exc_info=True)
            raise
        self._state = StoreState.READY
        self._logger.info("Settings database opened", extra=context)

    def _bootstrap(self) -> None:
        self._state = StoreState.BOOTSTRAPPING
        context = self._operation_context("bootstrap")
        self._logger.info("Bootstrapping settings database", extra=context)
        try:
            self._adapter.open(create=True)
            self._adapter.execute(SETTINGS_TABLE_DDL)
            self._adapter.execute(_INSERT_SETTING, (SENTINEL_NAME, SENTINEL_VALUE))
            rows = self._adapter.query(_SELECT_VALUE, (SENTINEL_NAME,))
            if not rows or any(str(row["value"]) != SENTINEL_VALUE for row in rows):
                raise BootstrapError(
                    f"Error creating database {self._adapter.path}: sentinel row did not read back as {SENTINEL_VALUE}."
                )
        except (BootstrapError, ConnectionError):
            self._discard_partial_file()
            self._logger.error("Bootstrap failed", extra=context, exc_info=True)
            raise
        except Exception as exc:
            self._discard_partial_file()
            self._logger.error("Bootstrap failed", extra=context, exc_info=True)
            raise BootstrapError(f"Error creating database {self._adapter.path}: {exc}") from exc
        self._state = StoreState.READY
        self._logger.info("Settings database bootstrapped", extra=context)

    def _discard_partial_file(self) -> None:
        # Close before delete
        self._state = StoreState.FAILED
        self._adapter.close()
        db_path = self._adapter.path
        for path in (db_path, *(Path(f"{db_path}{suffix}") for suffix in _SIDECAR_SUFFIXES)):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                self._logger.error(
                    "Could not remove partial database file",
                    extra={**self._operation_context("bootstrap"), "file": str(path)},
                    exc_info=True,
                )

    def _raise_if_closed(self) -> None:
        if self._state is StoreState.CLOSED:
            raise ClosedStoreError(f"Settings store for {self._adapter.path} has been closed.")

    @contextmanager
    def _operation(self, operation: str, **extra: object) -> Iterator[None]:
        context = {**self._operation_context(operation), **extra}
        try:
            yield
        except SettingsStoreError:
            self._logger.error("Settings operation failed", extra=context, exc_info=True)
            raise

    def _operation_context(self, operation: str) -> dict[str, object]:
        return {"operation": operation, "database": str(self._adapter.path)}


__all__ = ["SettingsStore", "StoreState", "SENTINEL_NAME", "SENTINEL_VALUE", "SETTINGS_TABLE_DDL"]
