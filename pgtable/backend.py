"""Table backend facade answering update/check/lookup/fetch requests."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from .config import TableConfig, load_config
from .connections import ConnectionManager, ConnectionState
from .driver import AsyncpgDriver, Driver
from .encoder import ResultEncoder
from .enumeration import EnumerationCache
from .errors import DatabaseConnectionError, TableError, UnsupportedServiceError
from .models import LINE_MAX
from .query import QueryExecutor
from .services import ENUMERABLE_SERVICE, Service

LOG = logging.getLogger(__name__)


class ReplyStatus(str, Enum):
    """Outcome reported back to the framework."""

    FOUND = "found"
    NOT_FOUND = "not-found"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TableReply:
    """Answer to a single check/lookup/fetch request."""

    status: ReplyStatus
    value: str | None = None
    error: str | None = None

    @classmethod
    def found(cls, value: str | None = None) -> TableReply:
        return cls(ReplyStatus.FOUND, value=value)

    @classmethod
    def not_found(cls) -> TableReply:
        return cls(ReplyStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: BaseException | str) -> TableReply:
        return cls(ReplyStatus.FAILED, error=str(error))

    @property
    def ok(self) -> bool:
        return self.status is not ReplyStatus.FAILED


class TableBackend:
    """Composes the connection, executor, encoder and enumeration cache.

    Every operation runs under one lock so the session, its statements and
    the enumeration cache are never touched by two requests at once.
    """

    def __init__(
        self,
        config_path: str | Path,
        *,
        driver: Driver | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config_path = Path(config_path)
        self._owns_driver = driver is None
        self._driver = driver or AsyncpgDriver()
        self._clock = clock
        self._lock = threading.RLock()
        self._connections = ConnectionManager(self._driver)
        self._executor = QueryExecutor(self._connections)
        self._encoder = ResultEncoder(self._executor)
        self._cache = EnumerationCache(self._executor, clock=clock)

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> TableConfig | None:
        return self._connections.config

    @property
    def state(self) -> ConnectionState:
        return self._connections.state

    @property
    def enumeration(self) -> EnumerationCache:
        return self._cache

    def start(self) -> None:
        """Load the configuration and connect; errors here are fatal to the caller."""

        with self._lock:
            config = load_config(self._config_path)
            self._connections.connect(config)
            self._cache = EnumerationCache.from_config(self._executor, config, clock=self._clock)

    def update(self) -> bool:
        """Reload the configuration file; keep serving the old one on failure."""

        with self._lock:
            try:
                config = self._connections.reload(self._config_path)
            except TableError as exc:
                LOG.warning("Configuration reload failed", extra={"error": str(exc)})
                return False
            self._cache = EnumerationCache.from_config(self._executor, config, clock=self._clock)
            return True

    def check(self, service: Service | str, key: str) -> TableReply:
        with self._lock:
            try:
                resolved = self._prepare_request(service)
                found = self._encoder.check(resolved, key)
            except TableError as exc:
                return self._failure("check", service, exc)
        return TableReply.found() if found else TableReply.not_found()

    def lookup(self, service: Service | str, key: str, *, max_size: int = LINE_MAX) -> TableReply:
        with self._lock:
            try:
                resolved = self._prepare_request(service)
                value = self._encoder.lookup(resolved, key, max_size=max_size)
            except TableError as exc:
                return self._failure("lookup", service, exc)
        return TableReply.not_found() if value is None else TableReply.found(value)

    def fetch(self, service: Service | str, *, max_size: int = LINE_MAX) -> TableReply:
        with self._lock:
            try:
                resolved = Service.parse(service)
                if resolved is not ENUMERABLE_SERVICE:
                    raise UnsupportedServiceError(f"Service '{resolved.value}' cannot be enumerated")
                config = self._connections.config
                if config is not None and config.fetch_source is None:
                    raise UnsupportedServiceError(f"Service '{resolved.value}' has no configured query")
                self._ensure_connected()
                value = self._cache.fetch_next(max_size=max_size)
            except TableError as exc:
                return self._failure("fetch", service, exc)
        return TableReply.not_found() if value is None else TableReply.found(value)

    def disconnect(self) -> None:
        """Drop the session; the next request reconnects lazily."""

        with self._lock:
            self._connections.reset()

    def close(self) -> None:
        """Drop the session and stop a driver created by this backend.

        Once an owned driver is stopped, later requests fail instead of reconnecting.
        """

        with self._lock:
            self._connections.reset()
            if self._owns_driver and isinstance(self._driver, AsyncpgDriver):
                self._driver.shutdown()

    def _prepare_request(self, service: Service | str) -> Service:
        resolved = Service.parse(service)
        config = self._connections.config
        if config is not None and not config.is_configured(resolved):
            raise UnsupportedServiceError(f"Service '{resolved.value}' has no configured query")
        self._ensure_connected()
        return resolved

    def _ensure_connected(self) -> None:
        if self._connections.is_connected:
            return
        if self._connections.config is None:
            raise DatabaseConnectionError("Backend was never started")
        self._connections.connect()

    @staticmethod
    def _failure(operation: str, service: Service | str, exc: TableError) -> TableReply:
        LOG.warning(
            "Request failed",
            extra={"operation": operation, "service": str(getattr(service, "value", service)), "error": str(exc)},
        )
        return TableReply.failed(exc)


__all__ = [
    "ReplyStatus",
    "TableBackend",
    "TableReply",
]
