"""Lookup services understood by the table backend."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from .errors import UnsupportedServiceError


class Service(str, Enum):
    """Lookup categories a mail process may ask the table about."""

    ALIAS = "alias"
    DOMAIN = "domain"
    CREDENTIALS = "credentials"
    NETADDR = "netaddr"
    USERINFO = "userinfo"
    SOURCE = "source"
    MAILADDR = "mailaddr"
    ADDRNAME = "addrname"
    MAILADDRMAP = "mailaddrmap"

    @classmethod
    def parse(cls, value: "Service | str") -> "Service":
        """Resolve a service name, raising for anything outside the table."""

        if isinstance(value, Service):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedServiceError(f"Unknown service '{value}'") from None

    @property
    def config_key(self) -> str:
        return f"query_{self.value}"


@dataclass(frozen=True, slots=True)
class StatementShape:
    """Parameter and result column counts a prepared statement must have."""

    params: int
    columns: int


SERVICE_SHAPES: Mapping[Service, StatementShape] = {
    Service.ALIAS: StatementShape(params=1, columns=1),
    Service.DOMAIN: StatementShape(params=1, columns=1),
    Service.CREDENTIALS: StatementShape(params=1, columns=2),
    Service.NETADDR: StatementShape(params=1, columns=1),
    Service.USERINFO: StatementShape(params=1, columns=3),
    Service.SOURCE: StatementShape(params=1, columns=1),
    Service.MAILADDR: StatementShape(params=1, columns=1),
    Service.ADDRNAME: StatementShape(params=1, columns=1),
    Service.MAILADDRMAP: StatementShape(params=1, columns=1),
}

FETCH_SHAPE = StatementShape(params=0, columns=1)

ENUMERABLE_SERVICE = Service.SOURCE

AGGREGATE_SERVICES = frozenset({Service.ALIAS, Service.MAILADDRMAP})


def shape_for(service: Service) -> StatementShape:
    """Return the statement contract registered for ``service``."""

    return SERVICE_SHAPES[service]


__all__ = [
    "AGGREGATE_SERVICES",
    "ENUMERABLE_SERVICE",
    "FETCH_SHAPE",
    "SERVICE_SHAPES",
    "Service",
    "StatementShape",
    "shape_for",
]
