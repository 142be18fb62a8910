"""Threshold checks that turn source state into alerts."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ..monitoring.metrics import record_alert
from ..schemas.reports import Alert, AlertSeverity, AlertType
from ..tracking.models import SourceStatus
from ..utils.config import AlertThresholds
from ..utils.logging import setup_logger
from ..utils.timeutils import Clock, utc_now

logger = setup_logger(__name__)


class AlertEngine:
    """Evaluate every tracked source against reliability, failure and staleness limits."""

    def __init__(self, thresholds: AlertThresholds | None = None, *, clock: Clock = utc_now) -> None:
        self.thresholds = thresholds or AlertThresholds()
        self._clock = clock

    def evaluate(
        self,
        statuses: Iterable[SourceStatus],
        thresholds: AlertThresholds | None = None,
        now: datetime | None = None,
    ) -> list[Alert]:
        """
        Run the three independent checks for each source.

        A source can produce several alerts in one call. No de-duplication is
        applied across calls.
        """
        limits = thresholds or self.thresholds
        current = now or self._clock()
        alerts: list[Alert] = []

        for status in statuses:
            if status.reliability_score < limits.reliability:
                alerts.append(
                    Alert(
                        type=AlertType.LOW_RELIABILITY,
                        source_id=status.source_id,
                        severity=AlertSeverity.WARNING,
                        message=(
                            f"Source {status.source_id} reliability dropped to "
                            f"{status.reliability_score * 100:.1f}%"
                        ),
                        timestamp=current,
                        data={
                            "reliability_score": status.reliability_score,
                            "threshold": limits.reliability,
                        },
                    )
                )

            if status.consecutive_failures >= limits.consecutive_failures:
                alerts.append(
                    Alert(
                        type=AlertType.CONSECUTIVE_FAILURES,
                        source_id=status.source_id,
                        severity=AlertSeverity.ERROR,
                        message=(
                            f"Source {status.source_id} has "
                            f"{status.consecutive_failures} consecutive failures"
                        ),
                        timestamp=current,
                        data={
                            "consecutive_failures": status.consecutive_failures,
                            "threshold": limits.consecutive_failures,
                        },
                    )
                )

            if status.last_seen is not None:
                age = current - status.last_seen
                if age > limits.data_age:
                    alerts.append(
                        Alert(
                            type=AlertType.STALE_DATA,
                            source_id=status.source_id,
                            severity=AlertSeverity.WARNING,
                            message=(
                                f"Source {status.source_id} has not reported for "
                                f"{round(age.total_seconds() / 60)} minutes"
                            ),
                            timestamp=current,
                            data={
                                "last_seen": status.last_seen.isoformat(),
                                "data_age_seconds": age.total_seconds(),
                                "threshold_seconds": limits.data_age_seconds,
                            },
                        )
                    )

        for alert in alerts:
            record_alert(alert.type.value, alert.severity.value)
        if alerts:
            logger.warning(
                "Generated %d alerts for %d sources",
                len(alerts),
                len({alert.source_id for alert in alerts}),
            )
        return alerts
