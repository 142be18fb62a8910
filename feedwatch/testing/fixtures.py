"""Payload builders and a controllable clock for tests and local experiments."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

DEFAULT_NOW = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
ANCHOR_STATIONS = ("S121", "S116", "S118")


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = DEFAULT_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


async def no_sleep(delay: float) -> None:
    """Sleep replacement that returns immediately."""
    return None


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def weather_payload(
    timestamp: datetime | str | None = DEFAULT_NOW,
    stations: Iterable[str] = ANCHOR_STATIONS,
    metrics: Iterable[str] = ("temperature", "humidity"),
    value: float = 28.0,
) -> dict[str, Any]:
    """Raw weather payload with one reading per station per metric."""

    station_ids = list(stations)
    payload: dict[str, Any] = {
        "readings": {
            metric: [
                {
                    "station_id": station_id,
                    "value": value,
                    "station_name": f"Station {station_id}",
                    "coordinates": {"lat": 1.35, "lng": 103.8},
                }
                for station_id in station_ids
            ]
            for metric in metrics
        }
    }
    if timestamp is not None:
        payload["timestamp"] = timestamp.isoformat() if isinstance(timestamp, datetime) else timestamp
    return payload


def camera_payload(
    timestamp: datetime | None = DEFAULT_NOW,
    complete: int = 3,
    incomplete: int = 0,
) -> dict[str, Any]:
    """Raw camera payload with ``complete`` full captures and ``incomplete`` imageless ones."""

    captures: list[dict[str, Any]] = []
    for index in range(complete + incomplete):
        captures.append(
            {
                "camera_id": str(1000 + index),
                "name": f"Camera {1000 + index}",
                "image_url": f"https://images.example/{1000 + index}.jpg" if index < complete else None,
                "coordinates": {"lat": 1.30, "lng": 103.85},
            }
        )
    payload: dict[str, Any] = {"captures": captures}
    if timestamp is not None:
        payload["timestamp"] = timestamp.isoformat()
    return payload


def datagov_metric_response(
    readings: dict[str, float],
    timestamp: str = "2024-06-01T16:00:00+08:00",
) -> dict[str, Any]:
    """Response body shaped like the data.gov.sg real-time weather endpoints."""

    return {
        "metadata": {
            "stations": [
                {
                    "id": station_id,
                    "device_id": station_id,
                    "name": f"Station {station_id}",
                    "location": {"latitude": 1.35, "longitude": 103.8},
                }
                for station_id in readings
            ],
            "reading_type": "DBT 1M F",
            "reading_unit": "deg C",
        },
        "items": [
            {
                "timestamp": timestamp,
                "readings": [
                    {"station_id": station_id, "value": value}
                    for station_id, value in readings.items()
                ],
            }
        ],
        "api_info": {"status": "healthy"},
    }


def datagov_traffic_response(
    camera_ids: Iterable[str],
    timestamp: str = "2024-06-01T16:00:00+08:00",
) -> dict[str, Any]:
    """Response body shaped like ``/transport/traffic-images``."""

    return {
        "items": [
            {
                "timestamp": timestamp,
                "cameras": [
                    {
                        "timestamp": timestamp,
                        "image": f"https://images.data.gov.sg/api/traffic-images/{camera_id}.jpg",
                        "location": {"latitude": 1.29, "longitude": 103.86},
                        "camera_id": camera_id,
                        "image_metadata": {"height": 240, "width": 320, "md5": "x"},
                    }
                    for camera_id in camera_ids
                ],
            }
        ],
        "api_info": {"status": "healthy"},
    }
