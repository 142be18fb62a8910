"""Tagged payload schemas for the supported data domains."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import PayloadStructureError, UnknownDomainError
from ..utils.timeutils import parse_timestamp


class DataDomain(str, Enum):
    """Closed set of data domains served to the dashboard."""

    WEATHER = "weather"
    CAMERA = "camera"

    @classmethod
    def coerce(cls, value: DataDomain | str) -> DataDomain:
        """Return the enum member for ``value`` or raise :class:`UnknownDomainError`."""

        if isinstance(value, DataDomain):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise UnknownDomainError(value) from exc


class Coordinates(BaseModel):
    """Geographic position of a station or camera."""

    lat: float | None = None
    lng: float | None = None

    @property
    def is_complete(self) -> bool:
        return self.lat is not None and self.lng is not None


class _TimestampedPayload(BaseModel):
    timestamp: datetime | None = None
    source: str = "live"
    status: str = "ok"
    notice: str | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if value is None:
            return None
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"unparseable timestamp: {value!r}")
        return parsed


class StationReading(BaseModel):
    """A single metric value reported by one weather station."""

    model_config = ConfigDict(extra="ignore")

    station_id: str
    value: float | None = None
    station_name: str | None = None
    coordinates: Coordinates | None = None


class WeatherPayload(_TimestampedPayload):
    """Weather readings keyed by metric name (temperature, humidity, ...)."""

    model_config = ConfigDict(extra="ignore")

    domain: DataDomain = Field(default=DataDomain.WEATHER, frozen=True)
    readings: dict[str, list[StationReading]] = Field(default_factory=dict)

    @property
    def station_count(self) -> int:
        """Largest number of stations reporting any single metric."""

        return max((len(items) for items in self.readings.values()), default=0)

    def station_ids(self, metrics: Iterable[str] | None = None) -> set[str]:
        """Stations reporting any of ``metrics`` (every metric when None)."""

        names = self.readings.keys() if metrics is None else metrics
        return {reading.station_id for name in names for reading in self.readings.get(name, ())}

    def stations_reporting(self, metrics: Iterable[str]) -> int:
        """Largest number of stations reporting any one of ``metrics``."""

        return max((len(self.readings.get(name, ())) for name in metrics), default=0)


class CameraCapture(BaseModel):
    """One traffic camera image reference."""

    model_config = ConfigDict(extra="ignore")

    camera_id: str | None = None
    name: str | None = None
    image_url: str | None = None
    coordinates: Coordinates | None = None
    area: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(
            self.image_url
            and self.name
            and self.coordinates is not None
            and self.coordinates.is_complete
        )


class CameraPayload(_TimestampedPayload):
    """Traffic camera captures."""

    model_config = ConfigDict(extra="ignore")

    domain: DataDomain = Field(default=DataDomain.CAMERA, frozen=True)
    captures: list[CameraCapture]


DomainPayload = Union[WeatherPayload, CameraPayload]

_PAYLOAD_TYPES: dict[DataDomain, type[BaseModel]] = {
    DataDomain.WEATHER: WeatherPayload,
    DataDomain.CAMERA: CameraPayload,
}


def parse_payload(domain: DataDomain | str, raw: Any) -> DomainPayload:
    """
    Coerce a raw fetch result into the schema for ``domain``.

    Args:
        domain: Data domain the payload belongs to
        raw: Model instance or mapping returned by a fetch target

    Returns:
        Typed payload model

    Raises:
        UnknownDomainError: If the domain is not supported
        PayloadStructureError: If the payload does not match the schema
    """
    resolved = DataDomain.coerce(domain)
    model = _PAYLOAD_TYPES[resolved]
    if isinstance(raw, model):
        return raw  # type: ignore[return-value]
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        raise PayloadStructureError(
            f"{resolved.value} payload must be a mapping, got {type(raw).__name__}"
        )
    try:
        return model.model_validate(raw)  # type: ignore[return-value]
    except PydanticValidationError as exc:
        raise PayloadStructureError(f"Invalid {resolved.value} payload: {exc}") from exc


def payload_timestamp(payload: Any) -> datetime | None:
    """Best-effort timestamp lookup on a payload model or mapping."""

    if isinstance(payload, _TimestampedPayload):
        return payload.timestamp
    if isinstance(payload, dict):
        return parse_timestamp(payload.get("timestamp"))
    return None
