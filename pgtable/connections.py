"""Connection manager owning the database session and prepared statements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping

from .config import TableConfig, load_config
from .driver import Driver, Session, Statement
from .errors import DatabaseConnectionError, StatementError, TableError
from .models import ConnectionParams
from .services import FETCH_SHAPE, Service, StatementShape, shape_for

LOG = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle of the single database session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    RECONNECTING = "reconnecting"


@dataclass(slots=True)
class PreparedSession:
    """A session together with every statement prepared on it."""

    session: Session
    statements: Mapping[Service, Statement] = field(default_factory=dict)
    fetch_statement: Statement | None = None

    def close(self) -> None:
        self.statements = {}
        self.fetch_statement = None
        self.session.close()


class ConnectionManager:
    """Owns the database session and swaps it together with its config."""

    def __init__(self, driver: Driver, config: TableConfig | None = None) -> None:
        self._driver = driver
        self._config = config
        self._current: PreparedSession | None = None
        self._state = ConnectionState.DISCONNECTED

    @property
    def config(self) -> TableConfig | None:
        """Last configuration that produced a working session."""

        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._current is not None

    @property
    def fetch_statement(self) -> Statement | None:
        if self._current is None:
            return None
        return self._current.fetch_statement

    def statement(self, service: Service) -> Statement | None:
        """Prepared statement for ``service``, or ``None`` if unavailable."""

        if self._current is None:
            return None
        return self._current.statements.get(service)

    def connect(self, config: TableConfig | None = None) -> None:
        """(Re)open the session and prepare all configured statements."""

        self._establish(config, ConnectionState.CONNECTING)

    def reconnect(self) -> None:
        """Reopen the session with the last known good configuration."""

        self._establish(None, ConnectionState.RECONNECTING)

    def reset(self) -> None:
        """Release every statement and the session."""

        current, self._current = self._current, None
        self._state = ConnectionState.DISCONNECTED
        if current is not None:
            current.close()

    def reload(self, path: str | Path) -> TableConfig:
        """Load ``path`` and switch to it only once a new session is ready.

        Any failure leaves the current configuration and session in place.
        """

        config = load_config(path)
        prepared = self._open(config)
        previous = self._current
        self._current = prepared
        self._config = config
        self._state = ConnectionState.READY
        if previous is not None:
            previous.close()
        LOG.info("Configuration reloaded", extra={"path": str(path)})
        return config

    def _establish(self, config: TableConfig | None, transition: ConnectionState) -> None:
        target = config or self._config
        if target is None:
            raise DatabaseConnectionError("No configuration available to connect with")
        LOG.debug("(Re)connecting", extra={"state": transition.value})
        self.reset()
        self._state = transition
        try:
            prepared = self._open(target)
        except TableError:
            self._state = ConnectionState.DISCONNECTED
            raise
        self._current = prepared
        self._config = target
        self._state = ConnectionState.READY
        LOG.debug("Connected")

    def _open(self, config: TableConfig) -> PreparedSession:
        params = ConnectionParams(
            host=config.host,
            user=config.username,
            password=config.password,
            database=config.database,
        )
        session = self._driver.connect(params)
        try:
            statements = {
                service: self._prepare(session, query, shape_for(service), service.config_key)
                for service, query in config.queries.items()
            }
            fetch_statement = None
            if config.fetch_source is not None:
                fetch_statement = self._prepare(session, config.fetch_source, FETCH_SHAPE, "fetch_source")
        except BaseException:
            session.close()
            raise
        return PreparedSession(session=session, statements=statements, fetch_statement=fetch_statement)

    @staticmethod
    def _prepare(session: Session, query: str, shape: StatementShape, name: str) -> Statement:
        statement = session.prepare(query)
        if statement.parameter_count != shape.params:
            LOG.warning("Wrong number of params", extra={"query": name})
            raise StatementError(
                f"{name}: expected {shape.params} parameter(s), got {statement.parameter_count}"
            )
        if statement.column_count != shape.columns:
            LOG.warning("Wrong number of columns in resultset", extra={"query": name})
            raise StatementError(
                f"{name}: expected {shape.columns} column(s), got {statement.column_count}"
            )
        return statement


__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "PreparedSession",
]
