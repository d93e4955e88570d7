"""Shared dataclasses used across the driver and connection modules."""

from __future__ import annotations

from dataclasses import dataclass

ResultRow = tuple[str, ...]

# Keys and column values must fit a LINE_MAX buffer with its terminator.
LINE_MAX = 2048
MAX_KEY_LENGTH = LINE_MAX - 1
MAX_COLUMN_LENGTH = LINE_MAX - 1
MAX_RESULT_COLUMNS = 5


@dataclass(frozen=True, slots=True)
class ConnectionParams:
    """Parameters used to open the database session."""

    host: str | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None

    def describe(self) -> str:
        return f"{self.user or '-'}@{self.host or 'localhost'}/{self.database or '-'}"


__all__ = [
    "ConnectionParams",
    "LINE_MAX",
    "MAX_COLUMN_LENGTH",
    "MAX_KEY_LENGTH",
    "MAX_RESULT_COLUMNS",
    "ResultRow",
]
