"""Tests for the process entry point and framework wiring."""

from __future__ import annotations

import importlib.metadata as metadata

import pytest

from pgtable import app as app_module
from pgtable.app import FrameworkNotFoundError, TableFramework, discover_framework, main
from pgtable.backend import ReplyStatus
from pgtable.errors import DatabaseConnectionError


class RecordingFramework:
    """Framework stub that records handlers and replays canned requests."""

    def __init__(self) -> None:
        self.handlers: dict[str, object] = {}
        self.replies: list[object] = []

    def on_update(self, handler) -> None:  # type: ignore[no-untyped-def]
        self.handlers["update"] = handler

    def on_check(self, handler) -> None:  # type: ignore[no-untyped-def]
        self.handlers["check"] = handler

    def on_lookup(self, handler) -> None:  # type: ignore[no-untyped-def]
        self.handlers["lookup"] = handler

    def on_fetch(self, handler) -> None:  # type: ignore[no-untyped-def]
        self.handlers["fetch"] = handler

    def dispatch(self) -> None:
        self.replies.append(self.handlers["lookup"]("credentials", "bob"))  # type: ignore[operator]
        self.replies.append(self.handlers["fetch"]("source"))  # type: ignore[operator]
        self.replies.append(self.handlers["update"]())  # type: ignore[operator]


def test_recording_framework_matches_protocol() -> None:
    assert isinstance(RecordingFramework(), TableFramework)


def test_main_registers_and_dispatches(driver, db, write_config) -> None:
    db.set_rows("users", {"bob": [("bob", "secret")]})
    db.set_rows("sources", [("10.0.0.1",)])
    framework = RecordingFramework()

    result = main([str(write_config())], framework=framework, driver=driver)

    assert result == 0
    assert set(framework.handlers) == {"update", "check", "lookup", "fetch"}
    lookup, fetch, update = framework.replies
    assert lookup.value == "bob:secret"  # type: ignore[attr-defined]
    assert fetch.status is ReplyStatus.FOUND  # type: ignore[attr-defined]
    assert update is True
    assert db.live_sessions == []


def test_main_requires_config_argument(driver) -> None:
    with pytest.raises(SystemExit) as info:
        main([], framework=RecordingFramework(), driver=driver)

    assert info.value.code != 0


def test_main_fails_on_bad_config(driver, write_config) -> None:
    path = write_config("host a\nhost b\n")

    with pytest.raises(SystemExit) as info:
        main([str(path)], framework=RecordingFramework(), driver=driver)

    assert info.value.code == 1


def test_main_fails_when_database_unreachable(driver, db, write_config) -> None:
    db.connect_errors.append(DatabaseConnectionError("refused"))

    with pytest.raises(SystemExit) as info:
        main([str(write_config())], framework=RecordingFramework(), driver=driver)

    assert info.value.code == 1


def test_discover_framework_loads_entry_point(monkeypatch: pytest.MonkeyPatch) -> None:
    entry_point = metadata.EntryPoint(
        name="recording",
        value=f"{__name__}:RecordingFramework",
        group=app_module.ENTRY_POINT_GROUP,
    )
    monkeypatch.setattr(metadata, "entry_points", lambda: metadata.EntryPoints((entry_point,)))

    framework = discover_framework()

    assert isinstance(framework, RecordingFramework)


def test_discover_framework_without_entry_points(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metadata, "entry_points", lambda: metadata.EntryPoints(()))

    with pytest.raises(FrameworkNotFoundError):
        discover_framework()


def test_main_exits_without_framework(monkeypatch: pytest.MonkeyPatch, driver, write_config) -> None:
    monkeypatch.setattr(metadata, "entry_points", lambda: metadata.EntryPoints(()))

    with pytest.raises(SystemExit) as info:
        main([str(write_config())], driver=driver)

    assert info.value.code == 1
