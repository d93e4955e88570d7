"""Exception taxonomy shared by the table backend layers."""

from __future__ import annotations


class TableError(RuntimeError):
    """Base class for every recoverable backend failure."""


class ConfigurationError(TableError):
    """Raised when the configuration file cannot be parsed or validated."""


class StatementError(ConfigurationError):
    """Raised when a configured query does not match its service contract."""


class DatabaseConnectionError(TableError):
    """Raised when a database session cannot be established."""


class QueryError(TableError):
    """Raised when a statement fails to execute."""


class ConnectionLostError(QueryError):
    """Raised when a statement fails because the session went away."""


class EncodingError(TableError):
    """Raised when a result does not fit the caller's destination."""


class UnsupportedServiceError(TableError):
    """Raised for unknown services or services without a configured query."""


__all__ = [
    "ConfigurationError",
    "ConnectionLostError",
    "DatabaseConnectionError",
    "EncodingError",
    "QueryError",
    "StatementError",
    "TableError",
    "UnsupportedServiceError",
]
