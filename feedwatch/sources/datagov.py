"""Weather and traffic-camera fetch targets for the data.gov.sg real-time APIs."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import httpx

from ..exceptions import FetchError, FetchErrorKind
from ..schemas.domains import (
    CameraCapture,
    CameraPayload,
    Coordinates,
    StationReading,
    WeatherPayload,
)
from ..utils.logging import setup_logger
from ..utils.timeutils import parse_timestamp
from .circuit_breaker import CircuitBreakerRegistry
from .http import HttpJsonSource

logger = setup_logger(__name__)


def _coordinates(location: Any) -> Coordinates | None:
    if not isinstance(location, Mapping):
        return None
    return Coordinates(lat=location.get("latitude"), lng=location.get("longitude"))


def _first_item(raw: Any, feed: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise FetchError(f"{feed} response is not an object", kind=FetchErrorKind.MALFORMED_PAYLOAD)
    items = raw.get("items")
    if not isinstance(items, list) or not items or not isinstance(items[0], Mapping):
        raise FetchError(f"{feed} response has no items", kind=FetchErrorKind.MALFORMED_PAYLOAD)
    return items[0]


def parse_weather_metric(raw: Any, metric: str) -> tuple[datetime | None, list[StationReading]]:
    """
    Convert one real-time weather metric response into station readings.

    Args:
        raw: Decoded JSON of e.g. ``/environment/air-temperature``
        metric: Metric name used in error messages

    Returns:
        Tuple of (item timestamp, readings joined with station metadata)

    Raises:
        FetchError: With kind ``malformed_payload`` when the document shape is wrong
    """
    item = _first_item(raw, metric)
    stations = {
        station.get("id") or station.get("device_id"): station
        for station in (raw.get("metadata") or {}).get("stations", [])
        if isinstance(station, Mapping)
    }

    readings: list[StationReading] = []
    for entry in item.get("readings") or []:
        if not isinstance(entry, Mapping) or not entry.get("station_id"):
            continue
        station = stations.get(entry["station_id"], {})
        readings.append(
            StationReading(
                station_id=str(entry["station_id"]),
                value=entry.get("value"),
                station_name=station.get("name"),
                coordinates=_coordinates(station.get("location")),
            )
        )
    return parse_timestamp(item.get("timestamp")), readings


def parse_traffic_images(
    raw: Any,
    camera_names: Mapping[str, str] | None = None,
) -> CameraPayload:
    """Convert the ``/transport/traffic-images`` response into a :class:`CameraPayload`."""

    item = _first_item(raw, "traffic-images")
    names = camera_names or {}
    captures: list[CameraCapture] = []
    for camera in item.get("cameras") or []:
        if not isinstance(camera, Mapping):
            continue
        camera_id = str(camera.get("camera_id")) if camera.get("camera_id") is not None else None
        captures.append(
            CameraCapture(
                camera_id=camera_id,
                name=names.get(camera_id or "", f"Camera {camera_id}" if camera_id else None),
                image_url=camera.get("image"),
                coordinates=_coordinates(camera.get("location")),
            )
        )
    return CameraPayload(timestamp=parse_timestamp(item.get("timestamp")), captures=captures)


class WeatherSource:
    """
    Fetch every configured weather metric concurrently and merge the results.

    Partial results are returned when at least one metric succeeds; the
    payload ``notice`` lists the metrics that failed. When every metric fails
    the first error is raised.
    """

    def __init__(
        self,
        name: str,
        endpoints: Mapping[str, str],
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreakerRegistry | None = None,
    ) -> None:
        if not endpoints:
            raise ValueError("WeatherSource requires at least one metric endpoint")
        self.name = name
        self._circuit_breaker = circuit_breaker
        self._metrics = {
            metric: HttpJsonSource(f"{name}.{metric}", url, timeout=timeout, client=client)
            for metric, url in endpoints.items()
        }

    async def __call__(self) -> WeatherPayload:
        return await self.fetch()

    async def fetch(self) -> WeatherPayload:
        if self._circuit_breaker is not None:
            self._circuit_breaker.ensure_available(self.name)

        names = list(self._metrics)
        results = await asyncio.gather(
            *(self._fetch_metric(metric) for metric in names),
            return_exceptions=True,
        )

        readings: dict[str, list[StationReading]] = {}
        timestamps: list[datetime] = []
        errors: dict[str, BaseException] = {}
        for metric, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                errors[metric] = result
                continue
            timestamp, metric_readings = result
            readings[metric] = metric_readings
            if timestamp is not None:
                timestamps.append(timestamp)

        if not readings:
            if self._circuit_breaker is not None:
                self._circuit_breaker.record_failure(self.name)
            raise errors[names[0]]

        if self._circuit_breaker is not None:
            self._circuit_breaker.record_success(self.name)

        notice = None
        if errors:
            notice = f"Unavailable metrics: {', '.join(sorted(errors))}"
            logger.warning(
                "Partial weather fetch: %s",
                notice,
                extra={"source_id": self.name, "status": "partial"},
            )
        return WeatherPayload(
            timestamp=max(timestamps) if timestamps else None,
            readings=readings,
            notice=notice,
        )

    async def _fetch_metric(self, metric: str) -> tuple[datetime | None, list[StationReading]]:
        raw = await self._metrics[metric].fetch()
        return parse_weather_metric(raw, metric)


class CameraSource:
    """Fetch the traffic camera feed as a :class:`CameraPayload`."""

    def __init__(
        self,
        name: str,
        url: str,
        *,
        timeout: float = 15.0,
        camera_names: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreakerRegistry | None = None,
    ) -> None:
        self.name = name
        self._camera_names = dict(camera_names or {})
        self._http = HttpJsonSource(
            name,
            url,
            timeout=timeout,
            client=client,
            circuit_breaker=circuit_breaker,
            parser=self._parse,
        )

    async def __call__(self) -> CameraPayload:
        return await self.fetch()

    async def fetch(self) -> CameraPayload:
        return await self._http.fetch()

    def _parse(self, raw: Any) -> CameraPayload:
        return parse_traffic_images(raw, self._camera_names)
