"""Clearly labelled placeholder payloads served when no usable cache exists."""

from __future__ import annotations

from datetime import datetime

from ..schemas.domains import (
    CameraCapture,
    CameraPayload,
    Coordinates,
    DataDomain,
    DomainPayload,
    StationReading,
    WeatherPayload,
)

FALLBACK_SOURCE = "fallback"
FALLBACK_STATUS = "service_degraded"
FALLBACK_QUALITY_SCORE = 30.0

_PLACEHOLDER_STATION = {
    "station_id": "fallback_station",
    "station_name": "Bukit Timah (placeholder)",
    "coordinates": Coordinates(lat=1.3520, lng=103.7767),
}


def _weather_placeholder(now: datetime) -> WeatherPayload:
    return WeatherPayload(
        timestamp=now,
        source=FALLBACK_SOURCE,
        status=FALLBACK_STATUS,
        notice="Weather data temporarily unavailable; showing placeholder values.",
        readings={
            "temperature": [StationReading(value=28.5, **_PLACEHOLDER_STATION)],
            "humidity": [StationReading(value=75.0, **_PLACEHOLDER_STATION)],
        },
    )


def _camera_placeholder(now: datetime) -> CameraPayload:
    return CameraPayload(
        timestamp=now,
        source=FALLBACK_SOURCE,
        status=FALLBACK_STATUS,
        notice="Traffic cameras temporarily unavailable.",
        captures=[
            CameraCapture(
                camera_id="fallback_001",
                name="Traffic camera unavailable",
                image_url=None,
                coordinates=Coordinates(lat=1.3521, lng=103.8198),
                area="Singapore",
            )
        ],
    )


def build_fallback_payload(domain: DataDomain | str, now: datetime) -> DomainPayload:
    """Return a minimal payload for ``domain`` flagged as degraded service."""

    resolved = DataDomain.coerce(domain)
    if resolved is DataDomain.WEATHER:
        return _weather_placeholder(now)
    return _camera_placeholder(now)


def is_placeholder(payload: object) -> bool:
    return getattr(payload, "source", None) == FALLBACK_SOURCE
