"""Round-robin cache over the keys of the enumerable service."""

from __future__ import annotations

import logging
import time
from typing import Callable

from .config import DEFAULT_EXPIRE, DEFAULT_REFRESH, TableConfig
from .errors import EncodingError
from .models import LINE_MAX
from .query import QueryExecutor

LOG = logging.getLogger(__name__)


class EnumerationCache:
    """Serves enumeration keys one at a time, cycling through a snapshot.

    The snapshot is refreshed lazily once ``refresh_threshold`` calls were
    served from it or ``expire_seconds`` elapsed since it was taken. A new
    snapshot only replaces the old one after it was read completely, so a
    failed refresh keeps serving the previous keys on the next attempt.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        *,
        refresh_threshold: int = DEFAULT_REFRESH,
        expire_seconds: int = DEFAULT_EXPIRE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._refresh_threshold = refresh_threshold
        self._expire_seconds = expire_seconds
        self._clock = clock
        self._keys: tuple[str, ...] = ()
        self._cursor: int | None = None
        self._last_refresh: float | None = None
        self._calls = 0

    @classmethod
    def from_config(
        cls,
        executor: QueryExecutor,
        config: TableConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> EnumerationCache:
        return cls(
            executor,
            refresh_threshold=config.fetch_source_refresh,
            expire_seconds=config.fetch_source_expire,
            clock=clock,
        )

    @property
    def keys(self) -> tuple[str, ...]:
        """Current snapshot, in iteration order."""

        return self._keys

    @property
    def cursor(self) -> int | None:
        return self._cursor

    @property
    def calls_since_refresh(self) -> int:
        return self._calls

    def needs_refresh(self) -> bool:
        if self._last_refresh is None:
            return True
        if self._calls >= self._refresh_threshold:
            return True
        return self._clock() - self._last_refresh >= self._expire_seconds

    def refresh(self) -> None:
        """Re-read every key and swap the snapshot in one step."""

        with self._executor.execute_enumeration() as cursor:
            keys = tuple(sorted({row[0] for row in cursor}))
        self._keys = keys
        self._cursor = None
        self._calls = 0
        self._last_refresh = self._clock()
        LOG.debug("Enumeration cache refreshed", extra={"keys": len(keys)})

    def fetch_next(self, *, max_size: int = LINE_MAX) -> str | None:
        """Return the key after the cursor, wrapping around; ``None`` if empty."""

        if self.needs_refresh():
            self.refresh()
        self._calls += 1
        if not self._keys:
            return None
        position = 0
        if self._cursor is not None and self._cursor + 1 < len(self._keys):
            position = self._cursor + 1
        key = self._keys[position]
        if len(key) >= max_size:
            raise EncodingError(f"Key of {len(key)} characters does not fit {max_size}")
        self._cursor = position
        return key


__all__ = ["EnumerationCache"]
