"""Database drivers powering the connection manager."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine, Protocol, Sequence, TypeVar, runtime_checkable

import asyncpg

from .errors import ConnectionLostError, DatabaseConnectionError, QueryError, StatementError
from .models import ConnectionParams

LOG = logging.getLogger(__name__)

T = TypeVar("T")

_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.AdminShutdownError,
    asyncpg.exceptions.CrashShutdownError,
    asyncpg.exceptions.CannotConnectNowError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)


@runtime_checkable
class Statement(Protocol):
    """Prepared statement bound to one session."""

    @property
    def parameter_count(self) -> int:
        """Number of positional parameters the statement expects."""

    @property
    def column_count(self) -> int:
        """Number of columns in each result row."""

    def fetch(self, *args: str) -> Sequence[Sequence[Any]]:
        """Execute with ``args`` and return every row."""


@runtime_checkable
class Session(Protocol):
    """A live database session."""

    def prepare(self, query: str) -> Statement:
        """Prepare ``query`` on this session."""

    def close(self) -> None:
        """Release the session; safe to call more than once."""


@runtime_checkable
class Driver(Protocol):
    """Protocol implemented by database drivers."""

    def connect(self, params: ConnectionParams) -> Session:
        """Open a new session."""


class AsyncpgStatement:
    """Synchronous facade over an asyncpg prepared statement.

    Keys are always bound as ``str``. asyncpg takes the parameter type from
    the query, so a placeholder compared against a non-text column must be
    cast (``WHERE uid::text = $1`` or ``WHERE uid = $1::text::int``).
    """

    def __init__(self, session: AsyncpgSession, statement: Any) -> None:
        self._session = session
        self._statement = statement

    @property
    def parameter_count(self) -> int:
        return len(self._statement.get_parameters())

    @property
    def column_count(self) -> int:
        return len(self._statement.get_attributes())

    def fetch(self, *args: str) -> list[tuple[Any, ...]]:
        try:
            records = self._session.run(self._statement.fetch(*args))
        except Exception as exc:
            if self._session.is_connection_error(exc):
                raise ConnectionLostError(f"Connection lost while executing statement: {exc}") from exc
            raise QueryError(f"Statement execution failed: {exc}") from exc
        return [tuple(record) for record in records]


class AsyncpgSession:
    """Session wrapping one asyncpg connection living on the driver loop."""

    def __init__(self, driver: AsyncpgDriver, connection: Any) -> None:
        self._driver = driver
        self._connection = connection

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        return self._driver.run(coro)

    def prepare(self, query: str) -> AsyncpgStatement:
        try:
            statement = self.run(self._connection.prepare(query))
        except Exception as exc:
            if self.is_connection_error(exc):
                raise DatabaseConnectionError(f"Connection lost while preparing statement: {exc}") from exc
            raise StatementError(f"Failed to prepare statement '{query}': {exc}") from exc
        return AsyncpgStatement(self, statement)

    def is_connection_error(self, exc: BaseException) -> bool:
        if isinstance(exc, _CONNECTION_ERRORS):
            return True
        return bool(self._connection.is_closed())

    def close(self) -> None:
        if self._connection.is_closed():
            return
        try:
            self.run(self._connection.close())
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Ignoring error while closing session", exc_info=True)


class AsyncpgDriver:
    """Driver that talks to PostgreSQL via asyncpg on a private loop thread."""

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout
        self._closed = False
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name="pgtable-asyncpg-driver",
            daemon=True,
        )
        self._loop_thread.start()

    def connect(self, params: ConnectionParams) -> AsyncpgSession:
        try:
            connection = self.run(asyncpg.connect(**self._connect_kwargs(params)))
        except Exception as exc:
            raise DatabaseConnectionError(f"Failed to connect to {params.describe()}: {exc}") from exc
        return AsyncpgSession(self, connection)

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` on the driver loop and block for its result."""

        if self._closed:
            coro.close()
            raise DatabaseConnectionError("Driver has been shut down")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def shutdown(self) -> None:
        """Stop the background event loop; later calls raise ``DatabaseConnectionError``."""

        if self._closed:
            return
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._loop_thread.join(timeout=1)

    def __del__(self) -> None:
        try:
            self.shutdown()
        except Exception:
            LOG.debug("Ignoring error while stopping driver loop", exc_info=True)

    def _connect_kwargs(self, params: ConnectionParams) -> dict[str, object]:
        kwargs: dict[str, object] = {}
        if params.host:
            kwargs["host"] = params.host
        if params.user:
            kwargs["user"] = params.user
        if params.password:
            kwargs["password"] = params.password
        if params.database:
            kwargs["database"] = params.database
        kwargs["timeout"] = self._connect_timeout
        return kwargs


__all__ = [
    "AsyncpgDriver",
    "AsyncpgSession",
    "AsyncpgStatement",
    "Driver",
    "Session",
    "Statement",
]
