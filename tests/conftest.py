"""Pytest configuration - no path manipulation, rely on proper package installation."""

from __future__ import annotations

import os
import random

import pytest

from feedwatch.models.base import reset_engine
from feedwatch.orchestrator.service import ReliabilityOrchestrator
from feedwatch.orchestrator.upstreams import Upstream
from feedwatch.schemas.domains import DataDomain
from feedwatch.storage.base import NamespacedStore
from feedwatch.storage.memory import InMemoryKeyValueStore
from feedwatch.testing import FrozenClock, RecordingSleep, ScriptedFetch, weather_payload
from feedwatch.utils.config import ReliabilitySettings, get_settings


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Point the database at a throwaway SQLite file and reload settings per test."""

    if os.getenv("FEEDWATCH_DATABASE_URL") is None:
        db_path = tmp_path_factory.mktemp("sqlite-db") / "feedwatch.sqlite"
        monkeypatch.setenv("FEEDWATCH_DATABASE_URL", f"sqlite:///{db_path}")

    get_settings(reload=True)
    yield
    reset_engine()
    get_settings(reload=True)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def reliability_settings() -> ReliabilitySettings:
    """Default tunables with persistence disabled so cycles never write unexpectedly."""

    settings = ReliabilitySettings()
    settings.monitoring.persist_probability = 0.0
    return settings


@pytest.fixture
def memory_store() -> NamespacedStore:
    return NamespacedStore(InMemoryKeyValueStore(), "station_monitoring_")


@pytest.fixture
def make_orchestrator(clock, recording_sleep, reliability_settings, memory_store):
    """Factory building an orchestrator with injected time, sleep and storage."""

    def _make(*upstreams: Upstream, **kwargs) -> ReliabilityOrchestrator:
        kwargs.setdefault("settings", reliability_settings)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("sleep", recording_sleep)
        kwargs.setdefault("rng", random.Random(7))
        return ReliabilityOrchestrator(list(upstreams), memory_store, **kwargs)

    return _make


@pytest.fixture
def weather_upstream(clock) -> Upstream:
    """Weather upstream returning a fresh payload from the three anchor stations."""

    return Upstream(
        name="weather",
        domain=DataDomain.WEATHER,
        fetch=ScriptedFetch([weather_payload(timestamp=clock.now)]),
        data_types=["temperature", "humidity"],
    )
