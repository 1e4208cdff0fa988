"""Path utilities for the settings store

- Normalizes the directory a database lives in (trailing separators removed)
- Validates that the directory exists and is usable; the store never creates directories
- Composes the database file path from directory and file name
"""
from __future__ import annotations

import os
from pathlib import Path

from sqlite_settings.core.errors import InvalidPathError

_TRAILING_SEPARATORS = "\\/"


def strip_trailing_separators(p: str | os.PathLike[str]) -> str:
    """Remove trailing slashes and backslashes, keeping a bare root intact."""
    s = os.fspath(p)
    stripped = s.rstrip(_TRAILING_SEPARATORS)
    if not stripped and s:
        # "/" or "\\" on its own is the filesystem root
        return s[0]
    return stripped


def normalize_directory(p: str | os.PathLike[str]) -> Path:
    """Return the directory as a Path after validating it.

    Raises InvalidPathError when the directory does not exist, is not a
    directory, or cannot be both read and written by this process.
    """
    s = strip_trailing_separators(p)
    if not s:
        raise InvalidPathError("Path for database is invalid: empty directory path.")
    directory = Path(s).expanduser()
    if not directory.is_dir():
        raise InvalidPathError(f"Path for database is invalid: {directory} is not an existing directory.")
    if not os.access(directory, os.R_OK | os.W_OK | os.X_OK):
        raise InvalidPathError(f"Path for database is invalid: {directory} is not readable and writable.")
    return directory


def compose_database_path(directory: str | os.PathLike[str], file_name: str) -> Path:
    """Join directory and database file name.

    An absolute file name wins over the directory, matching Path semantics.
    A file name naming a subdirectory is accepted only if that subdirectory exists.
    """
    if not file_name:
        raise InvalidPathError("Database file name must not be empty.")
    db_path = Path(directory) / file_name
    if not db_path.parent.is_dir():
        raise InvalidPathError(f"Path for database is invalid: {db_path.parent} is not an existing directory.")
    return db_path
