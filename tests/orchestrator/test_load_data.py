"""Tests for load_data_with_reliability provenance and fallback behaviour."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from prometheus_client import REGISTRY

from feedwatch.cache.placeholders import is_placeholder
from feedwatch.exceptions import FetchError, FetchErrorKind, UnknownDomainError
from feedwatch.schemas.domains import WeatherPayload
from feedwatch.schemas.reports import DataSourceTag
from feedwatch.testing import ScriptedFetch, camera_payload, weather_payload


def _outage(kind: FetchErrorKind = FetchErrorKind.SERVICE_UNAVAILABLE) -> ScriptedFetch:
    return ScriptedFetch([FetchError("upstream down", kind=kind)])


@pytest.mark.asyncio
async def test_accepted_payload_is_served_live(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    fetch = ScriptedFetch([weather_payload(timestamp=clock.now)])

    result = await orchestrator.load_data_with_reliability("weather", fetch)

    assert result.metadata.source is DataSourceTag.LIVE
    assert result.metadata.quality_score == 100
    assert result.metadata.cached is False
    assert result.metadata.data_age_ms == 0
    assert result.metadata.fallback_reason is None
    assert isinstance(result.data, WeatherPayload)
    assert orchestrator.cache.get_last_successful("weather") is not None
    assert orchestrator.get_latest("weather") is result


@pytest.mark.asyncio
async def test_exhausted_retries_without_cache_serve_placeholder(
    make_orchestrator, recording_sleep
):
    orchestrator = make_orchestrator()
    fetch = _outage()

    result = await orchestrator.load_data_with_reliability("weather", fetch)

    assert result.metadata.source is DataSourceTag.FALLBACK_GENERATED
    assert result.metadata.quality_score == 30
    assert is_placeholder(result.data)
    assert "service_unavailable" in result.metadata.fallback_reason
    assert fetch.calls == 4
    assert len(recording_sleep.delays) == 3


@pytest.mark.asyncio
async def test_recent_cache_entry_is_served_on_failure(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    payload = camera_payload(timestamp=clock.now)
    await orchestrator.load_data_with_reliability("camera", ScriptedFetch([payload]))
    clock.advance(minutes=2)

    result = await orchestrator.load_data_with_reliability(
        "camera", _outage(FetchErrorKind.CLIENT_ERROR)
    )

    assert result.metadata.source is DataSourceTag.CACHE_FALLBACK
    assert result.metadata.cached is True
    assert result.metadata.quality_score == 100
    assert result.metadata.data_age_ms == 120_000
    assert result.data.captures[0].camera_id == "1000"


@pytest.mark.asyncio
async def test_expired_cache_entry_is_not_served(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    await orchestrator.load_data_with_reliability(
        "camera", ScriptedFetch([camera_payload(timestamp=clock.now)])
    )
    clock.advance(minutes=10)

    result = await orchestrator.load_data_with_reliability(
        "camera", _outage(FetchErrorKind.CLIENT_ERROR)
    )

    assert result.metadata.source is DataSourceTag.FALLBACK_GENERATED


@pytest.mark.asyncio
async def test_cache_max_age_option(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    await orchestrator.load_data_with_reliability(
        "camera", ScriptedFetch([camera_payload(timestamp=clock.now)])
    )
    clock.advance(minutes=2)

    result = await orchestrator.load_data_with_reliability(
        "camera",
        _outage(FetchErrorKind.CLIENT_ERROR),
        {"cache_max_age_seconds": 60},
    )

    assert result.metadata.source is DataSourceTag.FALLBACK_GENERATED


@pytest.mark.asyncio
async def test_rejected_payload_falls_back(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    fetch = ScriptedFetch([{"timestamp": clock.now.isoformat(), "readings": {}}])

    result = await orchestrator.load_data_with_reliability("weather", fetch)

    assert result.metadata.source is DataSourceTag.FALLBACK_GENERATED
    assert result.metadata.fallback_reason.startswith("quality rejected")
    assert orchestrator.cache.get_last_successful("weather") is None
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_max_retries_option_is_honoured(make_orchestrator):
    orchestrator = make_orchestrator()
    fetch = _outage(FetchErrorKind.NETWORK)

    await orchestrator.load_data_with_reliability("weather", fetch, {"max_retries": 1})

    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_unexpected_fetch_exception_never_escapes(make_orchestrator):
    orchestrator = make_orchestrator()
    fetch = ScriptedFetch([RuntimeError("parser exploded")])

    result = await orchestrator.load_data_with_reliability("camera", fetch)

    assert result.metadata.source is DataSourceTag.FALLBACK_GENERATED
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_unknown_domain_raises(make_orchestrator, clock):
    orchestrator = make_orchestrator()

    with pytest.raises(UnknownDomainError):
        await orchestrator.load_data_with_reliability(
            "radar", ScriptedFetch([weather_payload(timestamp=clock.now)])
        )


@pytest.mark.asyncio
async def test_loads_are_counted_by_provenance(make_orchestrator):
    labels = {"domain": "camera", "source": "fallback_generated"}
    before = REGISTRY.get_sample_value("feedwatch_data_loads_total", labels) or 0.0
    orchestrator = make_orchestrator()

    await orchestrator.load_data_with_reliability(
        "camera", _outage(FetchErrorKind.CLIENT_ERROR)
    )

    assert REGISTRY.get_sample_value("feedwatch_data_loads_total", labels) == before + 1


@pytest.mark.asyncio
async def test_naive_datetime_timestamp_is_served_live(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    payload = weather_payload()
    payload["timestamp"] = clock.now.replace(tzinfo=None)

    result = await orchestrator.load_data_with_reliability("weather", ScriptedFetch([payload]))

    assert result.metadata.source is DataSourceTag.LIVE
    assert result.data.timestamp == clock.now


@pytest.mark.asyncio
async def test_validator_crash_falls_back_instead_of_raising(make_orchestrator, clock):
    orchestrator = make_orchestrator()
    orchestrator.validator.validate = Mock(side_effect=TypeError("bad comparison"))

    result = await orchestrator.load_data_with_reliability(
        "weather", ScriptedFetch([weather_payload(timestamp=clock.now)])
    )

    assert result.metadata.source is DataSourceTag.FALLBACK_GENERATED
    assert result.metadata.fallback_reason.startswith("validation failed (TypeError)")
