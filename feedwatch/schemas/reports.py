"""Pydantic schemas for pipeline results exposed to consumers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..utils.timeutils import utc_now


class QualityReport(BaseModel):
    """Outcome of validating one fetched payload."""

    domain: str = Field(..., description="Data domain the payload belongs to")
    is_acceptable: bool = Field(..., description="Whether the payload may be served live")
    score: float = Field(..., ge=0, le=100, description="Heuristic quality score 0-100")
    issues: list[str] = Field(default_factory=list, description="Human-readable findings")
    data_point_count: int = Field(0, ge=0, description="Stations or captures found")


class CacheEntry(BaseModel):
    """A previously accepted payload kept for fallback. Replaced, never updated."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    domain: str
    payload: Any
    captured_at: datetime
    quality_score: float


class AlertType(str, Enum):
    LOW_RELIABILITY = "low_reliability"
    CONSECUTIVE_FAILURES = "consecutive_failures"
    STALE_DATA = "stale_data"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Alert(BaseModel):
    """A threshold crossing detected for one source."""

    model_config = ConfigDict(frozen=True)

    type: AlertType
    source_id: str
    severity: AlertSeverity
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)


class MonitoringCycleMetrics(BaseModel):
    """Snapshot of tracker state taken at the end of a monitoring cycle."""

    cycle_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    total_sources: int = 0
    active_sources: int = 0
    degraded_sources: int = 0
    inactive_sources: int = 0
    unknown_sources: int = 0
    average_reliability: float = 1.0
    data_type_coverage: dict[str, int] = Field(default_factory=dict)
    duration_ms: int = 0
    alerts_emitted: int = 0
    upstream_results: dict[str, str] = Field(
        default_factory=dict, description="Provenance tag served per upstream"
    )


class MonitoringError(BaseModel):
    """Entry of the bounded monitoring error log."""

    timestamp: datetime = Field(default_factory=utc_now)
    error: str
    error_type: str
    context: dict[str, Any] = Field(default_factory=dict)


class DataSourceTag(str, Enum):
    """Provenance of the data handed to consumers."""

    LIVE = "live"
    CACHE_FALLBACK = "cache_fallback"
    FALLBACK_GENERATED = "fallback_generated"


class LoadMetadata(BaseModel):
    """Context describing how a :class:`LoadResult` was produced."""

    load_time_ms: int = Field(0, ge=0)
    quality_score: float = Field(..., ge=0, le=100)
    data_age_ms: int | None = None
    source: DataSourceTag
    cached: bool = False
    fallback_reason: str | None = None


class LoadResult(BaseModel):
    """Payload plus provenance returned by ``load_data_with_reliability``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    domain: str
    data: Any
    metadata: LoadMetadata
