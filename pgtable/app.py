"""Process entry point wiring the table backend into a dispatch framework."""

from __future__ import annotations

import argparse
import importlib.metadata as metadata
import inspect
import logging
import sys
from typing import Callable, Protocol, Sequence, runtime_checkable

from .backend import TableBackend, TableReply
from .driver import Driver
from .errors import ConfigurationError, DatabaseConnectionError, StatementError, TableError

LOG = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "pgtable.frameworks"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

UpdateHandler = Callable[[], bool]
CheckHandler = Callable[[str, str], TableReply]
LookupHandler = Callable[[str, str], TableReply]
FetchHandler = Callable[[str], TableReply]


class FrameworkNotFoundError(TableError):
    """Raised when no dispatch framework is installed."""


@runtime_checkable
class TableFramework(Protocol):
    """Request loop talking to the parent mail process."""

    def on_update(self, handler: UpdateHandler) -> None:
        """Register the configuration reload handler."""

    def on_check(self, handler: CheckHandler) -> None:
        """Register the existence check handler."""

    def on_lookup(self, handler: LookupHandler) -> None:
        """Register the single value lookup handler."""

    def on_fetch(self, handler: FetchHandler) -> None:
        """Register the enumeration handler."""

    def dispatch(self) -> None:
        """Serve requests until the parent process goes away."""


def discover_framework(entry_point_group: str = ENTRY_POINT_GROUP) -> TableFramework:
    """Load the first framework advertised through entry points."""

    group = metadata.entry_points().select(group=entry_point_group)
    for entry_point in sorted(group, key=lambda ep: ep.name):
        obj = entry_point.load()
        framework = obj() if inspect.isclass(obj) else obj
        LOG.debug("Using table framework", extra={"framework": entry_point.name})
        return framework
    raise FrameworkNotFoundError(f"No framework registered under '{entry_point_group}'")


def register(backend: TableBackend, framework: TableFramework) -> None:
    """Expose the four backend operations to ``framework``."""

    framework.on_update(backend.update)
    framework.on_check(backend.check)
    framework.on_lookup(backend.lookup)
    framework.on_fetch(backend.fetch)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgtable",
        description="PostgreSQL lookup table backend for a mail server.",
    )
    parser.add_argument("config", help="Path to the table configuration file.")
    return parser


def configure_logging(level: int = logging.DEBUG) -> None:
    logging.basicConfig(level=level, stream=sys.stderr, format=LOG_FORMAT)


def main(
    argv: Sequence[str] | None = None,
    *,
    framework: TableFramework | None = None,
    driver: Driver | None = None,
) -> int:
    """Run the backend; exits non-zero on any startup failure."""

    args = build_parser().parse_args(argv)
    configure_logging()

    if framework is None:
        try:
            framework = discover_framework()
        except FrameworkNotFoundError as exc:
            LOG.error(str(exc))
            raise SystemExit(1) from exc

    backend = TableBackend(args.config, driver=driver)
    try:
        backend.start()
    except (ConfigurationError, DatabaseConnectionError) as exc:
        if isinstance(exc, ConfigurationError) and not isinstance(exc, StatementError):
            LOG.error("error parsing config file: %s", exc)
        else:
            LOG.error("could not connect: %s", exc)
        backend.close()
        raise SystemExit(1) from exc

    register(backend, framework)
    try:
        framework.dispatch()
    finally:
        backend.close()
    return 0


__all__ = [
    "ENTRY_POINT_GROUP",
    "FrameworkNotFoundError",
    "TableFramework",
    "build_parser",
    "discover_framework",
    "main",
    "register",
]
