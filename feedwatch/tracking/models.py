"""In-memory health records kept per upstream source."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..utils.timeutils import parse_timestamp

DEFAULT_WINDOW_CAPACITY = 100


class SourceState(str, Enum):
    """Lifecycle state of a tracked source."""

    UNKNOWN = "unknown"
    ACTIVE = "active"
    DEGRADED = "degraded"
    INACTIVE = "inactive"


@dataclass(slots=True, frozen=True)
class Reading:
    """One observation of a source/metric pair."""

    timestamp: datetime
    value: Any
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "value": self.value,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reading:
        timestamp = parse_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"reading without timestamp: {data!r}")
        return cls(timestamp=timestamp, value=data.get("value"), success=bool(data.get("success")))


@dataclass
class ReliabilityRecord:
    """
    Rolling window of readings for one (source, data type) pair.

    The window holds at most ``capacity`` readings; appending to a full window
    drops the oldest reading.
    """

    source_id: str
    data_type: str
    capacity: int = DEFAULT_WINDOW_CAPACITY
    readings: deque[Reading] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.readings = deque(self.readings, maxlen=self.capacity)

    def append(self, reading: Reading) -> None:
        self.readings.append(reading)

    @property
    def success_count(self) -> int:
        return sum(1 for reading in self.readings if reading.success)

    @property
    def total_count(self) -> int:
        return len(self.readings)

    @property
    def reliability_score(self) -> float:
        total = self.total_count
        return self.success_count / total if total else 0.0

    @property
    def last_updated(self) -> datetime | None:
        return self.readings[-1].timestamp if self.readings else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "data_type": self.data_type,
            "capacity": self.capacity,
            "readings": [reading.to_dict() for reading in self.readings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], capacity: int | None = None) -> ReliabilityRecord:
        return cls(
            source_id=str(data["source_id"]),
            data_type=str(data["data_type"]),
            capacity=capacity or int(data.get("capacity", DEFAULT_WINDOW_CAPACITY)),
            readings=deque(Reading.from_dict(item) for item in data.get("readings", [])),
        )


@dataclass
class SourceStatus:
    """
    Aggregate health of one upstream source.

    ``consecutive_failures`` and ``consecutive_successes`` are never both
    non-zero. ``last_seen`` only advances on successful readings.
    """

    source_id: str
    first_seen: datetime
    state: SourceState = SourceState.UNKNOWN
    last_seen: datetime | None = None
    data_types_observed: set[str] = field(default_factory=set)
    reading_count: int = 0
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    reliability_score: float = 1.0

    def copy(self) -> SourceStatus:
        return SourceStatus(
            source_id=self.source_id,
            first_seen=self.first_seen,
            state=self.state,
            last_seen=self.last_seen,
            data_types_observed=set(self.data_types_observed),
            reading_count=self.reading_count,
            consecutive_failures=self.consecutive_failures,
            consecutive_successes=self.consecutive_successes,
            reliability_score=self.reliability_score,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "state": self.state.value,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "data_types_observed": sorted(self.data_types_observed),
            "reading_count": self.reading_count,
            "consecutive_failures": self.consecutive_failures,
            "consecutive_successes": self.consecutive_successes,
            "reliability_score": self.reliability_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceStatus:
        first_seen = parse_timestamp(data.get("first_seen"))
        if first_seen is None:
            raise ValueError(f"source status without first_seen: {data!r}")
        return cls(
            source_id=str(data["source_id"]),
            first_seen=first_seen,
            state=SourceState(data.get("state", SourceState.UNKNOWN.value)),
            last_seen=parse_timestamp(data.get("last_seen")),
            data_types_observed=set(data.get("data_types_observed", [])),
            reading_count=int(data.get("reading_count", 0)),
            consecutive_failures=int(data.get("consecutive_failures", 0)),
            consecutive_successes=int(data.get("consecutive_successes", 0)),
            reliability_score=float(data.get("reliability_score", 1.0)),
        )
