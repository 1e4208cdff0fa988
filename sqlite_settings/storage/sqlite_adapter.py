from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence, Union

from sqlite_settings.core.errors import ConnectionError, map_sqlite_exception
from sqlite_settings.logging.config import get_logger
from sqlite_settings.storage.config import AdapterConfig

Params = Union[Sequence[Any], Mapping[str, Any]]
Row = dict[str, Any]
TabularResult = list[Row]
Observer = Callable[[dict], None]

# Older interpreters raise sqlite3.Warning for multi-statement input
_ENGINE_ERRORS = (sqlite3.Error, sqlite3.Warning)


class SQLiteAdapter:
    """One connection to one SQLite database file.

    - Either closed or open; open() and close() are idempotent
    - Opens on demand (without creating the file) when a statement arrives while closed
    - Autocommit connection; transaction() provides savepoint-based boundaries with nesting
    - Engine errors surface as StatementError subclasses carrying the engine message
    """

    backend: str = "sqlite"

    def __init__(self, db_path: Path | str, config: AdapterConfig | None = None) -> None:
        self._db_path = Path(db_path)
        self._config = config or AdapterConfig()
        self._connection: sqlite3.Connection | None = None
        self._tx_depth = 0
        self._observer: Optional[Observer] = None
        self._logger = get_logger(__name__)

    @property
    def path(self) -> Path:
        return self._db_path

    @property
    def config(self) -> AdapterConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    # Observability hook -------------------------------------------------
    def set_observer(self, observer: Optional[Observer]) -> None:
        """Install an optional observer callable(event_dict) for per-operation timings."""
        self._observer = observer

    def _notify(self, event: dict) -> None:
        cb = self._observer
        if not cb:
            return
        try:
            cb(event)
        except Exception:
            # Observers never break DB paths
            self._logger.debug("Adapter observer failed", exc_info=True)

    # Lifecycle ----------------------------------------------------------
    def open(self, *, create: bool = False) -> None:
        if self._connection is not None:
            return

        context = {"operation": "open", "database": str(self._db_path)}
        if not self._db_path.parent.is_dir():
            raise ConnectionError(f"Directory for database does not exist: {self._db_path.parent}")
        if not create and not self._db_path.exists():
            raise ConnectionError(f"Database file not found: {self._db_path}")

        mode = "rwc" if create else "rw"
        uri = f"{self._db_path.resolve().as_uri()}?mode={mode}"
        _t0 = time.perf_counter()
        try:
            conn = sqlite3.connect(
                uri,
                uri=True,
                timeout=self._config.timeout_seconds,
                isolation_level=None,  # autocommit; transactions are explicit savepoints
                check_same_thread=False,  # callers serialize access themselves
            )
        except sqlite3.Error as exc:
            self._notify(self._failure_event("open", _t0, exc))
            raise ConnectionError(f"Unable to open database {self._db_path}: {exc}") from exc

        try:
            conn.row_factory = sqlite3.Row
            for pragma in self._config.pragmas():
                conn.execute(pragma).fetchall()
        except sqlite3.Error as exc:
            conn.close()
            self._notify(self._failure_event("open", _t0, exc))
            raise ConnectionError(f"Unable to configure database {self._db_path}: {exc}") from exc

        self._connection = conn
        self._tx_depth = 0
        self._notify({"op": "open", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "success": True})
        self._logger.debug("Database connection opened", extra={**context, "create": create})

    def close(self) -> None:
        if self._connection is None:
            return
        conn, self._connection = self._connection, None
        self._tx_depth = 0
        try:
            conn.close()
        finally:
            self._logger.debug(
                "Database connection closed",
                extra={"operation": "close", "database": str(self._db_path)},
            )

    def __enter__(self) -> "SQLiteAdapter":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Statements ---------------------------------------------------------
    def execute(self, sql: str, params: Params = ()) -> int:
        """Run a statement that returns no rows; returns the affected row count.

        Text holding several statements and no parameters runs as a script
        (outside transaction() only).
        """
        conn = self._ensure_connection()
        self._log_statement("execute", sql)
        _t0 = time.perf_counter()
        try:
            cur = conn.execute(sql, params)
        except _ENGINE_ERRORS as exc:
            if not params and self._tx_depth == 0 and _is_multi_statement_error(exc):
                return self.execute_script(sql)
            self._notify(self._failure_event("execute", _t0, exc))
            raise map_sqlite_exception(exc, sql) from exc
        rc = cur.rowcount if cur.rowcount is not None and cur.rowcount >= 0 else 0
        cur.close()
        self._notify({"op": "execute", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "rowcount": rc, "success": True})
        return rc

    def execute_script(self, sql: str) -> int:
        """Run every statement in sql; returns the number of rows changed.

        Statements before a failing one stay applied.
        """
        conn = self._ensure_connection()
        self._log_statement("execute_script", sql)
        _t0 = time.perf_counter()
        before = conn.total_changes
        try:
            conn.executescript(sql)
        except _ENGINE_ERRORS as exc:
            self._notify(self._failure_event("execute_script", _t0, exc))
            raise map_sqlite_exception(exc, sql) from exc
        rc = conn.total_changes - before
        self._notify({"op": "execute_script", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "rowcount": rc, "success": True})
        return rc

    def query(self, sql: str, params: Params = ()) -> TabularResult:
        """Run a statement and return every row as a column-name keyed dict.

        Repeated column names are made unique the way a DataTable does: x, x1, x2.
        """
        conn = self._ensure_connection()
        self._log_statement("query", sql)
        _t0 = time.perf_counter()
        try:
            cur = conn.execute(sql, params)
            rows = cur.fetchall()
        except _ENGINE_ERRORS as exc:
            self._notify(self._failure_event("query", _t0, exc))
            raise map_sqlite_exception(exc, sql) from exc
        columns = _unique_column_names(cur.description)
        cur.close()
        out = [dict(zip(columns, row)) for row in rows]
        self._notify({"op": "query", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "rows": len(out), "success": True})
        return out

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._ensure_connection()
        _t0 = time.perf_counter()
        self._tx_depth += 1
        sp_name = f"sp_{self._tx_depth}"
        try:
            conn.execute(f"SAVEPOINT {sp_name}")
        except sqlite3.Error as exc:
            self._tx_depth -= 1
            self._notify(self._failure_event("transaction_start", _t0, exc))
            raise map_sqlite_exception(exc) from exc
        try:
            yield
        except Exception:
            try:
                conn.execute(f"ROLLBACK TO SAVEPOINT {sp_name}")
                conn.execute(f"RELEASE SAVEPOINT {sp_name}")
            except sqlite3.Error as exc:
                self._notify(self._failure_event("transaction_rollback", _t0, exc))
                raise map_sqlite_exception(exc) from exc
            finally:
                self._tx_depth -= 1
            self._notify({"op": "transaction_rollback", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "success": True})
            raise
        else:
            try:
                conn.execute(f"RELEASE SAVEPOINT {sp_name}")
            except sqlite3.Error as exc:
                self._notify(self._failure_event("transaction_commit", _t0, exc))
                raise map_sqlite_exception(exc) from exc
            finally:
                self._tx_depth -= 1
            self._notify({"op": "transaction_commit", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "success": True})

    def health_check(self) -> None:
        """Raise ConnectionError unless the file reads as a SQLite database."""
        conn = self._ensure_connection()
        _t0 = time.perf_counter()
        try:
            conn.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
        except sqlite3.Error as exc:
            self._notify(self._failure_event("health_check", _t0, exc))
            raise ConnectionError(f"Database {self._db_path} failed health check: {exc}") from exc
        self._notify({"op": "health_check", "backend": self.backend, "duration_ms": _elapsed_ms(_t0), "success": True})

    # Internal helpers ---------------------------------------------------
    def _ensure_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self.open()
        assert self._connection is not None
        return self._connection

    def _log_statement(self, op: str, sql: str) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "Running statement",
                extra={"operation": op, "database": str(self._db_path), "statement": sql},
            )

    def _failure_event(self, op: str, t0: float, exc: BaseException) -> dict:
        return {
            "op": op,
            "backend": self.backend,
            "duration_ms": _elapsed_ms(t0),
            "success": False,
            "error_class": exc.__class__.__name__,
            "error_message": str(exc)[:200],
        }


def _elapsed_ms(t0: float) -> float:
    return (time.perf_counter() - t0) * 1000


def _is_multi_statement_error(exc: BaseException) -> bool:
    return isinstance(exc, (sqlite3.ProgrammingError, sqlite3.Warning)) and "one statement at a time" in str(exc)


def _unique_column_names(description: Optional[Sequence[Sequence[Any]]]) -> list[str]:
    names: list[str] = []
    seen: set[str] = set()
    for column in description or ():
        base = column[0]
        name, n = base, 1
        while name in seen:
            name = f"{base}{n}"
            n += 1
        seen.add(name)
        names.append(name)
    return names


__all__ = ["SQLiteAdapter", "Params", "Row", "TabularResult"]
