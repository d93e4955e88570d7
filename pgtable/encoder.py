"""Per-service encoding of query results."""

from __future__ import annotations

import logging

from .errors import EncodingError, UnsupportedServiceError
from .models import LINE_MAX, ResultRow
from .query import QueryExecutor, RowCursor
from .services import AGGREGATE_SERVICES, Service

LOG = logging.getLogger(__name__)

AGGREGATE_SEPARATOR = ", "


class ResultEncoder:
    """Turns query rows into the strings the mail process expects."""

    def __init__(self, executor: QueryExecutor) -> None:
        self._executor = executor

    def check(self, service: Service | str, key: str) -> bool:
        """Return whether ``key`` matches at least one row."""

        with self._executor.execute(service, key) as cursor:
            return cursor.fetchone() is not None

    def lookup(self, service: Service | str, key: str, *, max_size: int = LINE_MAX) -> str | None:
        """Return the encoded value for ``key``, or ``None`` when not found.

        ``max_size`` is the size of the caller's destination; a result that
        does not fit (including its terminator) raises ``EncodingError``.
        """

        resolved = Service.parse(service)
        with self._executor.execute(resolved, key) as cursor:
            first = cursor.fetchone()
            if first is None:
                return None
            value = self._encode(resolved, first, cursor, max_size)
        if len(value) >= max_size:
            LOG.warning("Result too large", extra={"service": resolved.value, "size": len(value)})
            raise EncodingError(f"Result of {len(value)} characters does not fit {max_size}")
        return value

    def _encode(self, service: Service, first: ResultRow, cursor: RowCursor, max_size: int) -> str:
        if service in AGGREGATE_SERVICES:
            return _join_rows(first, cursor, max_size)
        if service is Service.CREDENTIALS:
            return f"{first[0]}:{first[1]}"
        if service is Service.USERINFO:
            return f"{first[0]}:{first[1]}:{first[2]}"
        if service in (
            Service.DOMAIN,
            Service.NETADDR,
            Service.SOURCE,
            Service.MAILADDR,
            Service.ADDRNAME,
        ):
            return first[0]
        raise UnsupportedServiceError(f"Unknown service '{service}'")


def _join_rows(first: ResultRow, cursor: RowCursor, max_size: int) -> str:
    parts = [first[0]]
    size = len(first[0])
    for row in cursor:
        size += len(AGGREGATE_SEPARATOR) + len(row[0])
        if size >= max_size:
            LOG.warning("Result too large", extra={"size": size})
            raise EncodingError(f"Aggregated result does not fit {max_size}")
        parts.append(row[0])
    return AGGREGATE_SEPARATOR.join(parts)


__all__ = [
    "AGGREGATE_SEPARATOR",
    "ResultEncoder",
]
