"""Upstream descriptors and the readings they contribute to source tracking."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from ..schemas.domains import CameraPayload, DataDomain, DomainPayload, WeatherPayload
from ..utils.retry import FetchFn, RetryConfig

ENDPOINT_DATA_TYPE = "endpoint"
CAMERA_DATA_TYPE = "image"


@dataclass(slots=True)
class Upstream:
    """
    One fetch target polled by the monitoring cycle.

    Attributes:
        name: Stable identifier, also used as the fetch operation id
        domain: Data domain of the payloads it returns
        fetch: Zero-argument callable returning a payload or awaitable
        data_types: Metrics whose sources are marked failed when this upstream fails
        retry: Optional retry overrides for this upstream
    """

    name: str
    domain: DataDomain
    fetch: FetchFn
    data_types: list[str] = field(default_factory=list)
    retry: RetryConfig | Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        self.domain = DataDomain.coerce(self.domain)
        if not self.data_types:
            self.data_types = [CAMERA_DATA_TYPE] if self.domain is DataDomain.CAMERA else []


class SourceReading(NamedTuple):
    source_id: str
    data_type: str
    value: Any
    success: bool


def iter_source_readings(payload: DomainPayload) -> Iterator[SourceReading]:
    """Yield one reading per (source, data type) found in an accepted payload."""

    if isinstance(payload, WeatherPayload):
        for metric, readings in payload.readings.items():
            for reading in readings:
                yield SourceReading(reading.station_id, metric, reading.value, reading.value is not None)
    elif isinstance(payload, CameraPayload):
        for capture in payload.captures:
            if not capture.camera_id:
                continue
            yield SourceReading(
                capture.camera_id,
                CAMERA_DATA_TYPE,
                capture.image_url,
                bool(capture.image_url),
            )
