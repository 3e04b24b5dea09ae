"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pastereview.events import EventBus
from pastereview.regions.store import RegionStore
from pastereview.services.settings import ReviewSettings, SettingsProvider
from tests.helpers import FakeClock, ManualScheduler

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("PASTEREVIEW_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PASTEREVIEW_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store() -> RegionStore:
    return RegionStore()


@pytest.fixture
def settings(bus: EventBus) -> SettingsProvider:
    return SettingsProvider(ReviewSettings(), event_bus=bus)
