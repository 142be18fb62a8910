"""Schemas package initialization."""
from .domains import (
    CameraCapture,
    CameraPayload,
    Coordinates,
    DataDomain,
    DomainPayload,
    StationReading,
    WeatherPayload,
    parse_payload,
)
from .reports import (
    Alert,
    AlertSeverity,
    AlertType,
    CacheEntry,
    DataSourceTag,
    LoadMetadata,
    LoadResult,
    MonitoringCycleMetrics,
    MonitoringError,
    QualityReport,
)

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertType",
    "CacheEntry",
    "CameraCapture",
    "CameraPayload",
    "Coordinates",
    "DataDomain",
    "DataSourceTag",
    "DomainPayload",
    "LoadMetadata",
    "LoadResult",
    "MonitoringCycleMetrics",
    "MonitoringError",
    "QualityReport",
    "StationReading",
    "WeatherPayload",
    "parse_payload",
]
