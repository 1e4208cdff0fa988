from __future__ import annotations

import re
import sqlite3


class UserFacingError(Exception):
    """Base exception carrying user-presentable context."""

    def __init__(self, message: str, *, title: str, remediation: str | None = None) -> None:
        super().__init__(message)
        self.title = title
        self.remediation = remediation or ""


class SettingsStoreError(UserFacingError):
    """Base class for every error the settings store surfaces."""

    default_title = "Settings Store Error"
    default_remediation = ""

    def __init__(
        self,
        message: str,
        *,
        title: str | None = None,
        remediation: str | None = None,
    ) -> None:
        super().__init__(
            message,
            title=title or self.default_title,
            remediation=remediation if remediation is not None else self.default_remediation,
        )


class InvalidPathError(SettingsStoreError):
    default_title = "Invalid Database Path"
    default_remediation = "Choose an existing directory you can read from and write to."


class BootstrapError(SettingsStoreError):
    default_title = "Database Initialization Failed"
    default_remediation = "The partial database file was removed. Check disk space and permissions, then retry."


class ConnectionError(SettingsStoreError):  # type: ignore[override]
    """The engine could not open or reopen the database file (not Python's built-in)."""

    default_title = "Database Unavailable"
    default_remediation = "Ensure the database file exists, is a SQLite database and is not locked by another process."


class ClosedStoreError(SettingsStoreError):
    default_title = "Settings Store Closed"
    default_remediation = "Create a new settings store; a closed store cannot be reused."


class StatementError(SettingsStoreError):
    """A submitted statement failed engine-side. Carries the engine message and the SQL."""

    default_title = "Statement Failed"

    def __init__(
        self,
        message: str,
        *,
        sql: str | None = None,
        title: str | None = None,
        remediation: str | None = None,
    ) -> None:
        super().__init__(message, title=title, remediation=remediation)
        self.sql = sql


class ConflictError(StatementError):
    """Constraint violations (unique/not null/foreign key)."""


class NotFoundError(StatementError):
    """Missing table/column/index."""


class TransientError(StatementError):
    """Database locked or busy; the caller may retry."""


class ProgrammingError(StatementError):
    """Misuse of the engine API (several statements, wrong binding count)."""


_SQLITE_NOT_FOUND_PAT = re.compile(r"no such (?:table|column|index):", re.IGNORECASE)
_SQLITE_LOCKED_PAT = re.compile(r"database (?:table )?is (?:locked|busy)", re.IGNORECASE)


def map_sqlite_exception(exc: BaseException, sql: str | None = None) -> StatementError:
    msg = str(exc)
    if isinstance(exc, sqlite3.IntegrityError):
        return ConflictError(msg, sql=sql)
    if isinstance(exc, sqlite3.OperationalError):
        if _SQLITE_NOT_FOUND_PAT.search(msg):
            return NotFoundError(msg, sql=sql)
        if _SQLITE_LOCKED_PAT.search(msg):
            return TransientError(msg, sql=sql)
        return StatementError(msg, sql=sql)
    if isinstance(exc, (sqlite3.ProgrammingError, sqlite3.Warning)):
        return ProgrammingError(msg, sql=sql)
    return StatementError(msg, sql=sql)


__all__ = [
    "UserFacingError",
    "SettingsStoreError",
    "InvalidPathError",
    "BootstrapError",
    "ConnectionError",
    "ClosedStoreError",
    "StatementError",
    "ConflictError",
    "NotFoundError",
    "TransientError",
    "ProgrammingError",
    "map_sqlite_exception",
]
