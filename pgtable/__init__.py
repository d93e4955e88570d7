"""PostgreSQL lookup table backend for mail servers."""

from __future__ import annotations

from .backend import ReplyStatus, TableBackend, TableReply
from .config import TableConfig, load_config
from .connections import ConnectionManager, ConnectionState
from .encoder import ResultEncoder
from .enumeration import EnumerationCache
from .errors import (
    ConfigurationError,
    ConnectionLostError,
    DatabaseConnectionError,
    EncodingError,
    QueryError,
    StatementError,
    TableError,
    UnsupportedServiceError,
)
from .query import QueryExecutor, RowCursor
from .services import Service

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectionLostError",
    "ConnectionManager",
    "ConnectionState",
    "DatabaseConnectionError",
    "EncodingError",
    "EnumerationCache",
    "QueryError",
    "QueryExecutor",
    "ReplyStatus",
    "ResultEncoder",
    "RowCursor",
    "Service",
    "StatementError",
    "TableBackend",
    "TableConfig",
    "TableError",
    "TableReply",
    "UnsupportedServiceError",
    "__version__",
    "load_config",
]
