"""Table configuration loading helpers."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .services import Service

LOG = logging.getLogger(__name__)

INT_MAX = 2**31 - 1
DEFAULT_EXPIRE = 60
DEFAULT_REFRESH = 1000

_KEY_SEPARATORS = " \t:"
_SCALAR_KEYS = (
    "host",
    "username",
    "password",
    "database",
    "fetch_source",
    "fetch_source_expire",
    "fetch_source_refresh",
)


class TableConfig(BaseModel):
    """Validated view over the key/value entries of a table config file."""

    model_config = ConfigDict(frozen=True)

    entries: dict[str, str] = Field(default_factory=dict)
    host: str | None = None
    username: str | None = None
    password: str | None = None
    database: str | None = None
    queries: dict[Service, str] = Field(default_factory=dict)
    fetch_source: str | None = None
    fetch_source_expire: int = Field(default=DEFAULT_EXPIRE, ge=0, le=INT_MAX)
    fetch_source_refresh: int = Field(default=DEFAULT_REFRESH, ge=0, le=INT_MAX)

    @field_validator("fetch_source_expire", "fetch_source_refresh", mode="before")
    @classmethod
    def _plain_digits(cls, value: object) -> object:
        # Plain decimal digits only; no sign, padding or separators.
        if isinstance(value, bool) or (isinstance(value, str) and not re.fullmatch(r"[0-9]+", value)):
            raise ValueError("expected a non-negative decimal integer")
        return value

    @classmethod
    def from_entries(cls, entries: Mapping[str, str]) -> TableConfig:
        """Build a config from raw entries; unknown keys are kept but unused."""

        data: dict[str, object] = {"entries": dict(entries)}
        for key in _SCALAR_KEYS:
            if key in entries:
                data[key] = entries[key]
        data["queries"] = {
            service: entries[service.config_key]
            for service in Service
            if service.config_key in entries
        }
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
            raise ConfigurationError(f"Invalid configuration value(s): {fields or exc}") from exc

    def query_for(self, service: Service) -> str | None:
        """Query text configured for ``service``, if any."""

        return self.queries.get(service)

    def is_configured(self, service: Service) -> bool:
        return service in self.queries


def parse_config_text(text: str) -> dict[str, str]:
    """Parse ``key value`` lines into a mapping, rejecting duplicates."""

    entries: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, value = _split_line(line)
        if value is None:
            raise ConfigurationError(f"line {lineno}: missing value for key {key}")
        if key in entries:
            raise ConfigurationError(f"line {lineno}: duplicate key {key}")
        entries[key] = value
    return entries


def load_config(path: str | Path) -> TableConfig:
    """Read and validate the configuration file at ``path``."""

    config_path = Path(path)
    try:
        text = config_path.read_text()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read configuration '{config_path}': {exc}") from exc
    config = TableConfig.from_entries(parse_config_text(text))
    LOG.debug(
        "Loaded table configuration",
        extra={"path": str(config_path), "services": sorted(s.value for s in config.queries)},
    )
    return config


def _split_line(line: str) -> tuple[str, str | None]:
    cut = next((idx for idx, char in enumerate(line) if char in _KEY_SEPARATORS), None)
    if cut is None:
        return line, None
    key, rest = line[:cut], line[cut + 1 :]
    pos = 0
    while pos < len(rest):
        char = rest[pos]
        if char.isspace():
            pos += 1
        elif char == ":" and pos + 1 < len(rest) and rest[pos + 1].isspace():
            pos += 1
        else:
            break
    value = rest[pos:]
    return key, value or None


__all__ = [
    "DEFAULT_EXPIRE",
    "DEFAULT_REFRESH",
    "INT_MAX",
    "TableConfig",
    "load_config",
    "parse_config_text",
]
