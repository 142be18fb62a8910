"""Per-source reliability tracking over rolling windows."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from ..utils.config import AlertThresholds, TrackingSettings
from ..utils.logging import setup_logger
from ..utils.timeutils import Clock, ensure_aware, utc_now
from .models import Reading, ReliabilityRecord, SourceState, SourceStatus

logger = setup_logger(__name__)


class SourceHealthTracker:
    """
    Track success/failure readings per (source, data type) and derive state.

    State rules:
        - ``unknown`` until the first successful reading, then ``active``
        - ``inactive`` once consecutive failures reach the alert ceiling or
          the source is swept as stale by :meth:`refresh_staleness`
        - an ``inactive`` source needs ``recovery_successes`` consecutive
          successes before it leaves that state
        - otherwise ``degraded`` when the reliability score is below the
          alert floor, ``active`` when it is not
    """

    def __init__(
        self,
        settings: TrackingSettings | None = None,
        thresholds: AlertThresholds | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings or TrackingSettings()
        self.thresholds = thresholds or AlertThresholds()
        self._clock = clock
        self._statuses: dict[str, SourceStatus] = {}
        self._records: dict[tuple[str, str], ReliabilityRecord] = {}

    def record_reading(
        self,
        source_id: str,
        data_type: str,
        value: Any = None,
        success: bool = True,
        timestamp: datetime | None = None,
    ) -> SourceStatus:
        """
        Record one reading and update the source's derived state.

        Args:
            source_id: Station, camera or endpoint identifier
            data_type: Metric the reading belongs to
            value: Observed value (ignored for scoring)
            success: Whether the source delivered this metric
            timestamp: Reading time; defaults to the injected clock

        Returns:
            Snapshot of the updated SourceStatus
        """
        when = ensure_aware(timestamp) if timestamp is not None else self._clock()

        status = self._statuses.get(source_id)
        if status is None:
            status = SourceStatus(source_id=source_id, first_seen=when)
            self._statuses[source_id] = status

        key = (source_id, data_type)
        record = self._records.get(key)
        if record is None:
            record = ReliabilityRecord(
                source_id=source_id,
                data_type=data_type,
                capacity=self.settings.window_capacity,
            )
            self._records[key] = record
        record.append(Reading(timestamp=when, value=value, success=success))

        status.data_types_observed.add(data_type)
        status.reading_count += 1
        if success:
            status.consecutive_successes += 1
            status.consecutive_failures = 0
            if status.last_seen is None or when > status.last_seen:
                status.last_seen = when
        else:
            status.consecutive_failures += 1
            status.consecutive_successes = 0

        status.reliability_score = self._mean_score(source_id, status.data_types_observed)
        previous = status.state
        status.state = self._next_state(status, success)
        if status.state is not previous:
            logger.info(
                "Source %s changed state %s -> %s",
                source_id,
                previous.value,
                status.state.value,
                extra={"source_id": source_id, "status": status.state.value},
            )
        return status.copy()

    def _mean_score(self, source_id: str, data_types: set[str]) -> float:
        scores = [
            self._records[(source_id, data_type)].reliability_score
            for data_type in data_types
            if (source_id, data_type) in self._records
        ]
        return sum(scores) / len(scores) if scores else 1.0

    def _next_state(self, status: SourceStatus, success: bool) -> SourceState:
        if status.consecutive_failures >= self.thresholds.consecutive_failures:
            return SourceState.INACTIVE
        if success:
            if status.state is SourceState.UNKNOWN:
                return SourceState.ACTIVE
            if (
                status.state is SourceState.INACTIVE
                and status.consecutive_successes < self.settings.recovery_successes
            ):
                return SourceState.INACTIVE
        elif status.state in (SourceState.UNKNOWN, SourceState.INACTIVE):
            return status.state
        if status.reliability_score < self.thresholds.reliability:
            return SourceState.DEGRADED
        return SourceState.ACTIVE

    def refresh_staleness(self, now: datetime | None = None, max_age: timedelta | None = None) -> list[str]:
        """Mark sources without a recent successful reading as inactive."""

        current = now or self._clock()
        limit = max_age or self.thresholds.data_age
        swept: list[str] = []
        for status in self._statuses.values():
            if status.last_seen is None or status.state is SourceState.INACTIVE:
                continue
            if current - status.last_seen > limit:
                status.state = SourceState.INACTIVE
                swept.append(status.source_id)
        if swept:
            logger.warning("Marked %d stale sources inactive: %s", len(swept), ", ".join(sorted(swept)))
        return swept

    def get_status(self, source_id: str) -> SourceStatus | None:
        status = self._statuses.get(source_id)
        return status.copy() if status is not None else None

    def statuses(self) -> list[SourceStatus]:
        return [status.copy() for status in self._statuses.values()]

    def source_ids(self) -> list[str]:
        return list(self._statuses)

    def sources_for_data_type(self, data_type: str) -> list[str]:
        """Source ids that have previously reported ``data_type``."""

        return [
            source_id
            for source_id, status in self._statuses.items()
            if data_type in status.data_types_observed
        ]

    def get_record(self, source_id: str, data_type: str) -> ReliabilityRecord | None:
        return self._records.get((source_id, data_type))

    def records_for(self, source_id: str) -> list[ReliabilityRecord]:
        return [record for (owner, _), record in self._records.items() if owner == source_id]

    def record_count(self) -> int:
        return len(self._records)

    def state_counts(self) -> dict[str, int]:
        counts = Counter(status.state.value for status in self._statuses.values())
        return {state.value: counts.get(state.value, 0) for state in SourceState}

    def average_reliability(self) -> float:
        if not self._statuses:
            return 1.0
        return sum(status.reliability_score for status in self._statuses.values()) / len(self._statuses)

    def data_type_coverage(self, data_types: list[str] | None = None) -> dict[str, int]:
        """Number of sources that have reported each data type."""

        observed = {
            data_type
            for status in self._statuses.values()
            for data_type in status.data_types_observed
        }
        names = list(data_types or [])
        names.extend(sorted(observed - set(names)))
        return {name: len(self.sources_for_data_type(name)) for name in names}

    def reset_source(self, source_id: str) -> bool:
        """Forget one source and its records. Returns False when it was unknown."""

        if self._statuses.pop(source_id, None) is None:
            return False
        for key in [key for key in self._records if key[0] == source_id]:
            del self._records[key]
        return True

    def clear(self) -> None:
        self._statuses.clear()
        self._records.clear()

    def to_state(self) -> tuple[dict[str, Any], dict[str, Any]]:
        """Serialize statuses and records for the key/value store."""

        statuses = {source_id: status.to_dict() for source_id, status in self._statuses.items()}
        records = {
            f"{source_id}::{data_type}": record.to_dict()
            for (source_id, data_type), record in self._records.items()
        }
        return statuses, records

    def load_state(self, statuses: dict[str, Any], records: dict[str, Any]) -> None:
        """Replace in-memory state with previously persisted maps."""

        loaded_statuses = {
            source_id: SourceStatus.from_dict(data) for source_id, data in (statuses or {}).items()
        }
        loaded_records: dict[tuple[str, str], ReliabilityRecord] = {}
        for data in (records or {}).values():
            record = ReliabilityRecord.from_dict(data, capacity=self.settings.window_capacity)
            loaded_records[(record.source_id, record.data_type)] = record

        self._statuses = loaded_statuses
        self._records = loaded_records
        logger.info(
            "Loaded tracker state: %d sources, %d reliability records",
            len(loaded_statuses),
            len(loaded_records),
        )
