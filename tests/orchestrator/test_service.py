"""Tests for monitoring cycles, persistence and reports of the orchestrator."""

from __future__ import annotations

import asyncio
from unittest.mock import Mock

import pytest
from prometheus_client import REGISTRY

from feedwatch.exceptions import FetchError, FetchErrorKind
from feedwatch.orchestrator import ReliabilityOrchestrator, Upstream
from feedwatch.orchestrator.service import (
    MONITORING_CONFIG_KEY,
    MONITORING_ERRORS_KEY,
    STATION_STATUS_KEY,
)
from feedwatch.schemas.reports import AlertType
from feedwatch.testing import ScriptedFetch, camera_payload, weather_payload
from feedwatch.tracking import SourceState
from feedwatch.utils.config import ReliabilitySettings


async def parked_sleep(delay: float) -> None:
    await asyncio.Event().wait()


async def _settle(orchestrator: ReliabilityOrchestrator, cycles: int = 1) -> None:
    for _ in range(200):
        if len(orchestrator.get_metrics_history()) >= cycles:
            break
        await asyncio.sleep(0)
    for _ in range(5):
        await asyncio.sleep(0)


def _failing_weather(clock) -> Upstream:
    return Upstream(
        name="weather",
        domain="weather",
        fetch=ScriptedFetch(
            [
                weather_payload(timestamp=clock.now),
                FetchError("bad request", kind=FetchErrorKind.CLIENT_ERROR),
            ]
        ),
        data_types=["temperature", "humidity"],
    )


class TestMonitoringCycle:
    """Test suite for run_cycle."""

    @pytest.mark.asyncio
    async def test_cycle_tracks_endpoint_and_stations(self, make_orchestrator, weather_upstream):
        orchestrator = make_orchestrator(weather_upstream)

        metrics = await orchestrator.run_cycle()

        assert metrics is not None
        assert metrics.total_sources == 4
        assert metrics.active_sources == 4
        assert metrics.average_reliability == 1.0
        assert metrics.upstream_results == {"weather": "live"}
        assert metrics.data_type_coverage == {"temperature": 3, "humidity": 3, "endpoint": 1}
        assert metrics.alerts_emitted == 0
        assert orchestrator.tracker.get_status("weather").data_types_observed == {"endpoint"}

    @pytest.mark.asyncio
    async def test_failed_upstream_marks_known_sources_failed(self, make_orchestrator, clock):
        orchestrator = make_orchestrator(_failing_weather(clock))
        await orchestrator.run_cycle()

        metrics = await orchestrator.run_cycle()

        assert metrics.upstream_results == {"weather": "cache_fallback"}
        station = orchestrator.tracker.get_status("S121")
        assert station.state is SourceState.DEGRADED
        assert station.reliability_score == 0.5
        assert station.consecutive_failures == 2
        assert metrics.alerts_emitted == 4
        assert {alert.type for alert in orchestrator.get_recent_alerts()} == {
            AlertType.LOW_RELIABILITY
        }

    @pytest.mark.asyncio
    async def test_repeated_failures_make_sources_inactive(self, make_orchestrator, clock):
        orchestrator = make_orchestrator(_failing_weather(clock))
        for _ in range(3):
            metrics = await orchestrator.run_cycle()

        assert orchestrator.tracker.get_status("S121").state is SourceState.INACTIVE
        assert metrics.inactive_sources == 3
        assert any(
            alert.type is AlertType.CONSECUTIVE_FAILURES
            for alert in orchestrator.get_recent_alerts()
        )

    @pytest.mark.asyncio
    async def test_camera_captures_without_image_count_as_failures(self, make_orchestrator, clock):
        upstream = Upstream(
            name="traffic_cameras",
            domain="camera",
            fetch=ScriptedFetch([camera_payload(timestamp=clock.now, complete=4, incomplete=1)]),
        )
        orchestrator = make_orchestrator(upstream)

        await orchestrator.run_cycle()

        assert orchestrator.tracker.get_status("1000").state is SourceState.ACTIVE
        assert orchestrator.tracker.get_status("1004").state is SourceState.UNKNOWN
        assert upstream.data_types == ["image"]

    @pytest.mark.asyncio
    async def test_concurrent_cycle_is_skipped(self, make_orchestrator, clock):
        upstream = Upstream(
            name="weather",
            domain="weather",
            fetch=ScriptedFetch([weather_payload(timestamp=clock.now)], delay=0.05),
        )
        orchestrator = make_orchestrator(upstream)
        before = REGISTRY.get_sample_value(
            "feedwatch_monitoring_cycles_total", {"status": "skipped"}
        ) or 0.0

        first, second = await asyncio.gather(orchestrator.run_cycle(), orchestrator.run_cycle())

        assert first is not None
        assert second is None
        assert upstream.fetch.calls == 1
        assert REGISTRY.get_sample_value(
            "feedwatch_monitoring_cycles_total", {"status": "skipped"}
        ) == before + 1

    @pytest.mark.asyncio
    async def test_cycle_failure_is_logged_and_persisted(
        self, make_orchestrator, weather_upstream, memory_store
    ):
        engine = Mock()
        engine.evaluate.side_effect = RuntimeError("boom")
        orchestrator = make_orchestrator(weather_upstream, alert_engine=engine)

        assert await orchestrator.run_cycle() is None

        errors = orchestrator.get_errors()
        assert len(errors) == 1
        assert errors[0].error_type == "RuntimeError"
        assert "cycle_id" in errors[0].context
        assert memory_store.read(MONITORING_ERRORS_KEY)[0]["error"] == "boom"
        assert not orchestrator.cycle_running

    @pytest.mark.asyncio
    async def test_state_is_persisted_when_sampled(
        self, make_orchestrator, weather_upstream, reliability_settings, memory_store
    ):
        reliability_settings.monitoring.persist_probability = 1.0
        orchestrator = make_orchestrator(weather_upstream)

        await orchestrator.run_cycle()

        assert set(memory_store.read(STATION_STATUS_KEY)) == {"weather", "S121", "S116", "S118"}

    @pytest.mark.asyncio
    async def test_state_is_not_persisted_when_not_sampled(
        self, make_orchestrator, weather_upstream, memory_store
    ):
        orchestrator = make_orchestrator(weather_upstream)

        await orchestrator.run_cycle()

        assert memory_store.read(STATION_STATUS_KEY) is None

    @pytest.mark.asyncio
    async def test_metrics_history_window(self, make_orchestrator, weather_upstream, clock):
        orchestrator = make_orchestrator(weather_upstream)
        await orchestrator.run_cycle()
        clock.advance(hours=2)
        await orchestrator.run_cycle()

        assert len(orchestrator.get_metrics_history(hours=1)) == 1
        assert len(orchestrator.get_metrics_history(hours=24)) == 2


class TestLifecycle:
    """Start/stop of the periodic loop."""

    @pytest.mark.asyncio
    async def test_start_runs_first_cycle_and_stop_persists(
        self, make_orchestrator, weather_upstream, memory_store
    ):
        orchestrator = make_orchestrator(weather_upstream, sleep=parked_sleep)

        await orchestrator.start()
        await _settle(orchestrator)

        assert orchestrator.monitoring_active is True
        assert len(orchestrator.get_metrics_history()) == 1

        await orchestrator.stop()

        assert orchestrator.monitoring_active is False
        assert "S121" in memory_store.read(STATION_STATUS_KEY)

    @pytest.mark.asyncio
    async def test_interval_change_restarts_loop_without_immediate_cycle(
        self, make_orchestrator, weather_upstream
    ):
        orchestrator = make_orchestrator(weather_upstream, sleep=parked_sleep)
        await orchestrator.start()
        await _settle(orchestrator)

        orchestrator.update_config(interval_seconds=30)
        await _settle(orchestrator)

        assert orchestrator.interval_seconds == 30
        assert len(orchestrator.get_metrics_history()) == 1
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_interval_change_lets_running_cycle_finish(self, make_orchestrator, clock):
        release = asyncio.Event()

        async def blocked_fetch():
            await release.wait()
            return weather_payload(timestamp=clock.now)

        upstream = Upstream(
            name="weather",
            domain="weather",
            fetch=blocked_fetch,
            data_types=["temperature", "humidity"],
        )
        orchestrator = make_orchestrator(upstream, sleep=parked_sleep)
        await orchestrator.start()
        for _ in range(5):
            await asyncio.sleep(0)
        assert orchestrator.cycle_running

        orchestrator.update_config(interval_seconds=120)
        release.set()
        await _settle(orchestrator)

        assert len(orchestrator.get_metrics_history()) == 1
        assert "S121" in orchestrator.tracker.source_ids()
        assert orchestrator.monitoring_active is True
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start_does_not_persist(self, make_orchestrator, memory_store):
        orchestrator = make_orchestrator()

        await orchestrator.stop()

        assert memory_store.read(STATION_STATUS_KEY) is None


class TestPersistence:
    """Round trips through the namespaced store."""

    @pytest.mark.asyncio
    async def test_round_trip_into_fresh_orchestrator(
        self, make_orchestrator, memory_store, clock
    ):
        orchestrator = make_orchestrator(_failing_weather(clock))
        await orchestrator.run_cycle()
        await orchestrator.run_cycle()
        orchestrator.persist_state()

        restored = ReliabilityOrchestrator([], memory_store, clock=clock)
        restored.load_state()

        assert sorted(restored.tracker.source_ids()) == sorted(orchestrator.tracker.source_ids())
        assert restored.tracker.get_status("S121").reliability_score == 0.5
        assert len(restored.get_recent_alerts()) == len(orchestrator.get_recent_alerts())

    @pytest.mark.asyncio
    async def test_first_cycle_merges_into_persisted_state(
        self, make_orchestrator, weather_upstream, reliability_settings, memory_store, clock
    ):
        earlier = ReliabilityOrchestrator([], memory_store, clock=clock)
        earlier.tracker.record_reading("S999", "temperature", None, success=False)
        earlier.persist_state()
        reliability_settings.monitoring.persist_probability = 1.0
        orchestrator = make_orchestrator(weather_upstream)

        await orchestrator.run_cycle()

        stored = memory_store.read(STATION_STATUS_KEY)
        assert {"S999", "S121", "weather"} <= set(stored)
        assert orchestrator.tracker.get_status("S999").reading_count == 2

    def test_corrupt_state_starts_fresh(self, make_orchestrator, memory_store):
        memory_store.backend.set("station_monitoring_station_status", "{not json")
        orchestrator = make_orchestrator()

        orchestrator.load_state()

        assert orchestrator.tracker.source_ids() == []

    def test_update_config_is_persisted_and_restored(self, make_orchestrator, memory_store, clock):
        orchestrator = make_orchestrator()

        stored = orchestrator.update_config(
            interval_seconds=120, thresholds={"reliability": 0.9}, auto_start=False
        )

        assert stored["interval_seconds"] == 120
        assert stored["alert_thresholds"]["reliability"] == 0.9
        assert orchestrator.tracker.thresholds.reliability == 0.9
        assert orchestrator.alert_engine.thresholds.reliability == 0.9
        assert memory_store.read(MONITORING_CONFIG_KEY) == stored

        restored = ReliabilityOrchestrator(
            [], memory_store, settings=ReliabilitySettings(), clock=clock
        )
        restored.load_state()
        assert restored.interval_seconds == 120
        assert restored.settings.monitoring.auto_start is False
        assert restored.settings.alerts.reliability == 0.9

    def test_invalid_config_update_is_rejected(self, make_orchestrator):
        orchestrator = make_orchestrator()

        with pytest.raises(ValueError):
            orchestrator.update_config(interval_seconds=-5)

    @pytest.mark.asyncio
    async def test_clear_monitoring_data_keeps_cache(
        self, make_orchestrator, weather_upstream, memory_store
    ):
        orchestrator = make_orchestrator(weather_upstream)
        await orchestrator.run_cycle()
        orchestrator.persist_state()
        orchestrator.record_error(RuntimeError("x"))

        orchestrator.clear_monitoring_data()

        assert orchestrator.tracker.source_ids() == []
        assert orchestrator.get_errors() == []
        assert orchestrator.get_metrics_history() == []
        assert memory_store.backend.data == {}
        assert orchestrator.cache.get_last_successful("weather") is not None

    def test_error_log_is_bounded(self, make_orchestrator, reliability_settings):
        reliability_settings.monitoring.error_log_size = 3
        orchestrator = make_orchestrator()

        for n in range(5):
            orchestrator.record_error(ValueError(str(n)))

        assert [error.error for error in orchestrator.get_errors()] == ["2", "3", "4"]

    def test_old_errors_expire(self, make_orchestrator, clock):
        orchestrator = make_orchestrator()
        orchestrator.record_error(ValueError("old"))
        clock.advance(hours=25)

        orchestrator.record_error(ValueError("new"))

        assert [error.error for error in orchestrator.get_errors()] == ["new"]


class TestReports:
    """Read-only views over tracked state."""

    @pytest.mark.asyncio
    async def test_monitoring_status(self, make_orchestrator, weather_upstream):
        orchestrator = make_orchestrator(weather_upstream)
        await orchestrator.run_cycle()

        status = orchestrator.get_monitoring_status()

        assert status["monitoring_active"] is False
        assert status["cycle_running"] is False
        assert status["total_sources"] == 4
        assert status["active_sources"] == 4
        assert status["inactive_sources"] == 0
        assert status["last_cycle_timestamp"] is not None
        assert status["thresholds"]["consecutive_failures"] == 3

    @pytest.mark.asyncio
    async def test_station_report_is_sorted_and_bucketed(self, make_orchestrator, clock):
        orchestrator = make_orchestrator()
        orchestrator.tracker.record_reading("good", "temperature", 28.0)
        orchestrator.tracker.record_reading("poor", "temperature", None, success=False)
        orchestrator.tracker.record_reading("fair", "temperature", 1.0)
        orchestrator.tracker.record_reading("fair", "temperature", 1.0)
        orchestrator.tracker.record_reading("fair", "temperature", None, success=False)

        report = orchestrator.get_station_reliability_report()

        assert [item["source_id"] for item in report["stations"]] == ["good", "fair", "poor"]
        assert report["summary"] == {"excellent": 1, "good": 0, "fair": 1, "poor": 1}
        assert report["stations"][1]["metrics"]["temperature"]["total_count"] == 3

    @pytest.mark.asyncio
    async def test_service_health(self, make_orchestrator, weather_upstream, memory_store):
        orchestrator = make_orchestrator(weather_upstream)
        await orchestrator.run_cycle()
        orchestrator.persist_state()

        health = orchestrator.get_service_health()

        assert health["stations_monitored"] == 4
        assert health["storage_usage"]["total_bytes"] > 0
        assert health["recent_alert_count_last_hour"] == len(orchestrator.get_recent_alerts(1))
        assert "recent_alerts" not in health
        assert health["storage_usage"]["estimated_records"] == 4 + 7

    @pytest.mark.asyncio
    async def test_domain_health(self, make_orchestrator, weather_upstream, clock):
        orchestrator = make_orchestrator(weather_upstream)

        assert orchestrator.assess_domain_health("weather")["score"] == 50

        await orchestrator.run_cycle()
        assert orchestrator.assess_domain_health("weather")["status"] == "healthy"

        clock.advance(minutes=20)
        health = orchestrator.assess_domain_health("weather")
        assert health["score"] == 70
        assert health["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_outstanding_retries_lower_domain_health(self, make_orchestrator):
        orchestrator = make_orchestrator()
        fetch = ScriptedFetch([FetchError("down", kind=FetchErrorKind.NETWORK)])

        await orchestrator.load_data_with_reliability("camera", fetch, {"max_retries": 2})

        health = orchestrator.assess_domain_health("camera")
        assert health["retry_attempts"] == 2
        assert health["score"] == 30
        assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_data_reliability_report(self, make_orchestrator, weather_upstream):
        orchestrator = make_orchestrator(weather_upstream)
        await orchestrator.run_cycle()

        report = orchestrator.get_data_reliability_report()

        assert report["domains"]["weather"]["score"] == 100
        assert report["domains"]["camera"]["score"] == 50
        assert report["overall_score"] == 75
        assert report["overall_status"] == "healthy"
        assert report["cache"]["weather"]["usable"] is True
        assert report["retry_states"] == {}

    @pytest.mark.asyncio
    async def test_reset_source(self, make_orchestrator, weather_upstream):
        orchestrator = make_orchestrator(weather_upstream)
        await orchestrator.run_cycle()

        assert orchestrator.reset_source("S121") is True
        assert orchestrator.tracker.get_status("S121") is None
        assert orchestrator.reset_source("S121") is False
