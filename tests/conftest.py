"""Shared fakes standing in for the asyncpg-backed driver."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable

import pytest

from pgtable.config import TableConfig, parse_config_text
from pgtable.errors import StatementError
from pgtable.models import ConnectionParams

_SELECT_LIST = re.compile(r"select\s+(.*?)\s+from\s", re.IGNORECASE | re.DOTALL)

BASE_CONFIG = """\
# test table
host localhost
username mail
password secret
database mail
query_alias SELECT destination FROM aliases WHERE alias = $1
query_domain SELECT domain FROM domains WHERE domain = $1
query_credentials SELECT username, password FROM users WHERE username = $1
query_userinfo SELECT uid, gid, home FROM accounts WHERE username = $1
query_mailaddrmap SELECT address FROM maps WHERE name = $1
fetch_source SELECT address FROM sources
fetch_source_expire 60
fetch_source_refresh 1000
"""


class FakeDatabase:
    """In-memory stand-in for the server: rows per query plus injected faults."""

    def __init__(self) -> None:
        self.rows: dict[str, Any] = {}
        self.connect_errors: list[Exception] = []
        self.execute_errors: list[Exception] = []
        self.bad_queries: set[str] = set()
        self.connects: list[ConnectionParams] = []
        self.executions: list[tuple[str, tuple[str, ...]]] = []
        self.sessions: list[FakeSession] = []

    def set_rows(self, table: str, rows: Any) -> None:
        """Register rows for every query reading ``FROM table``."""

        self.rows[table] = rows

    def rows_for(self, query: str, args: tuple[str, ...]) -> list[tuple[Any, ...]]:
        for table, rows in self.rows.items():
            if f"FROM {table}" in query:
                if callable(rows):
                    return list(rows(*args))
                if isinstance(rows, dict):
                    return list(rows.get(args[0], ()))
                return list(rows)
        return []

    @property
    def live_sessions(self) -> list[FakeSession]:
        return [session for session in self.sessions if not session.closed]


class FakeStatement:
    def __init__(self, session: FakeSession, query: str) -> None:
        self._session = session
        self.query = query

    @property
    def parameter_count(self) -> int:
        return len(set(re.findall(r"\$\d+", self.query)))

    @property
    def column_count(self) -> int:
        match = _SELECT_LIST.search(self.query)
        if not match:
            return 0
        return len(match.group(1).split(","))

    def fetch(self, *args: str) -> list[tuple[Any, ...]]:
        db = self._session.db
        db.executions.append((self.query, args))
        if db.execute_errors:
            raise db.execute_errors.pop(0)
        return db.rows_for(self.query, args)


class FakeSession:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.closed = False
        self.prepared: list[str] = []

    def prepare(self, query: str) -> FakeStatement:
        if query in self.db.bad_queries:
            raise StatementError(f"syntax error in {query}")
        self.prepared.append(query)
        return FakeStatement(self, query)

    def close(self) -> None:
        self.closed = True


class FakeDriver:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    def connect(self, params: ConnectionParams) -> FakeSession:
        self.db.connects.append(params)
        if self.db.connect_errors:
            raise self.db.connect_errors.pop(0)
        session = FakeSession(self.db)
        self.db.sessions.append(session)
        return session


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def driver(db: FakeDatabase) -> FakeDriver:
    return FakeDriver(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    def _write(text: str = BASE_CONFIG, name: str = "table.conf") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def base_config() -> str:
    return BASE_CONFIG


@pytest.fixture
def table_config() -> TableConfig:
    return TableConfig.from_entries(parse_config_text(BASE_CONFIG))
