"""Time-bounded retention of emitted alerts."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from ..schemas.reports import Alert
from ..utils.timeutils import Clock, utc_now


class AlertHistory:
    """Keep alerts from the last ``retention`` window, oldest first."""

    def __init__(self, retention: timedelta = timedelta(hours=24), *, clock: Clock = utc_now) -> None:
        self.retention = retention
        self._clock = clock
        self._alerts: list[Alert] = []

    def __len__(self) -> int:
        return len(self._alerts)

    def extend(self, alerts: Iterable[Alert]) -> None:
        self._alerts.extend(alerts)

    def prune(self, now: datetime | None = None) -> int:
        """Drop alerts older than the retention window. Returns how many were dropped."""

        cutoff = (now or self._clock()) - self.retention
        before = len(self._alerts)
        self._alerts = [alert for alert in self._alerts if alert.timestamp > cutoff]
        return before - len(self._alerts)

    def recent(self, hours: float = 24, now: datetime | None = None) -> list[Alert]:
        cutoff = (now or self._clock()) - timedelta(hours=hours)
        return [alert for alert in self._alerts if alert.timestamp > cutoff]

    def all(self) -> list[Alert]:
        return list(self._alerts)

    def clear(self) -> None:
        self._alerts.clear()

    def to_state(self) -> list[dict[str, Any]]:
        return [alert.model_dump(mode="json") for alert in self._alerts]

    def load_state(self, items: Iterable[dict[str, Any]] | None) -> None:
        self._alerts = [Alert.model_validate(item) for item in items or []]
