"""Statement execution with a one-shot reconnect policy."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Sequence

from .connections import ConnectionManager
from .driver import Statement
from .errors import (
    ConnectionLostError,
    DatabaseConnectionError,
    EncodingError,
    QueryError,
    UnsupportedServiceError,
)
from .models import MAX_COLUMN_LENGTH, MAX_KEY_LENGTH, MAX_RESULT_COLUMNS, ResultRow
from .services import Service

LOG = logging.getLogger(__name__)


class RowCursor:
    """Forward-only view over the rows returned by one execution."""

    def __init__(self, rows: Sequence[Sequence[Any]]) -> None:
        self._rows = rows
        self._position = 0
        self._closed = False

    def fetchone(self) -> ResultRow | None:
        """Return the next row, or ``None`` once the result is exhausted."""

        if self._closed:
            raise QueryError("Cursor is closed")
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return _normalize_row(row)

    def close(self) -> None:
        self._closed = True
        self._rows = ()

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[ResultRow]:
        while True:
            row = self.fetchone()
            if row is None:
                return
            yield row

    def __enter__(self) -> RowCursor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class QueryExecutor:
    """Runs prepared statements, reconnecting once on connection loss."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    def execute(self, service: Service | str, key: str) -> RowCursor:
        """Execute the statement of ``service`` with ``key`` as its parameter."""

        resolved = Service.parse(service)
        self._ensure_configured(resolved)
        if len(key) > MAX_KEY_LENGTH:
            LOG.warning("Key too long", extra={"service": resolved.value, "length": len(key)})
            raise QueryError(f"Key exceeds {MAX_KEY_LENGTH} characters")
        rows = self._run_with_retry(lambda: self._statement_for(resolved), (key,))
        return RowCursor(rows)

    def execute_enumeration(self) -> RowCursor:
        """Execute the parameterless enumeration statement."""

        config = self._connections.config
        if config is None or config.fetch_source is None:
            raise UnsupportedServiceError("No fetch_source query configured")
        rows = self._run_with_retry(self._fetch_statement, ())
        return RowCursor(rows)

    def _run_with_retry(
        self,
        resolve: Callable[[], Statement],
        args: tuple[str, ...],
    ) -> Sequence[Sequence[Any]]:
        statement = resolve()
        try:
            return statement.fetch(*args)
        except ConnectionLostError as exc:
            LOG.warning("Trying to reconnect after error", extra={"error": str(exc)})
        self._connections.reconnect()
        try:
            return resolve().fetch(*args)
        except ConnectionLostError:
            LOG.warning("Too many retries")
            raise

    def _ensure_configured(self, service: Service) -> None:
        config = self._connections.config
        if config is None:
            raise DatabaseConnectionError("No configuration loaded")
        if not config.is_configured(service):
            raise UnsupportedServiceError(f"Service '{service.value}' has no configured query")

    def _statement_for(self, service: Service) -> Statement:
        statement = self._connections.statement(service)
        if statement is None:
            raise DatabaseConnectionError("Not connected")
        return statement

    def _fetch_statement(self) -> Statement:
        statement = self._connections.fetch_statement
        if statement is None:
            raise DatabaseConnectionError("Not connected")
        return statement


def _normalize_row(row: Sequence[Any]) -> ResultRow:
    if len(row) > MAX_RESULT_COLUMNS:
        raise QueryError(f"Result has {len(row)} columns, at most {MAX_RESULT_COLUMNS} supported")
    values = tuple("" if value is None else str(value) for value in row)
    for value in values:
        if len(value) > MAX_COLUMN_LENGTH:
            raise EncodingError(f"Column value exceeds {MAX_COLUMN_LENGTH} characters")
    return values


__all__ = [
    "QueryExecutor",
    "RowCursor",
]
