from __future__ import annotations

from dataclasses import dataclass

_JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}
_SYNCHRONOUS_MODES = {"OFF", "NORMAL", "FULL", "EXTRA"}


@dataclass(frozen=True)
class AdapterConfig:
    """Engine settings applied when the SQLite connection is opened.

    journal_mode defaults to DELETE so the database stays a single file;
    WAL adds -wal/-shm siblings next to it.
    """

    timeout_seconds: float = 30.0
    busy_timeout_ms: int = 5000
    journal_mode: str = "DELETE"
    synchronous: str = "NORMAL"
    foreign_keys: bool = True

    def __post_init__(self) -> None:
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must not be negative")
        if self.busy_timeout_ms < 0:
            raise ValueError("busy_timeout_ms must not be negative")
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "journal_mode", self.journal_mode.upper())
        object.__setattr__(self, "synchronous", self.synchronous.upper())
        if self.journal_mode not in _JOURNAL_MODES:
            raise ValueError(f"Unsupported journal_mode: {self.journal_mode}")
        if self.synchronous not in _SYNCHRONOUS_MODES:
            raise ValueError(f"Unsupported synchronous mode: {self.synchronous}")

    def pragmas(self) -> list[str]:
        return [
            f"PRAGMA foreign_keys={'ON' if self.foreign_keys else 'OFF'}",
            f"PRAGMA journal_mode={self.journal_mode}",
            f"PRAGMA synchronous={self.synchronous}",
            f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}",
        ]


__all__ = ["AdapterConfig"]
