"""Per-domain payload quality scoring."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..exceptions import PayloadStructureError, UnknownDomainError
from ..monitoring.metrics import observe_quality_score
from ..schemas.domains import CameraPayload, DataDomain, WeatherPayload, parse_payload
from ..schemas.reports import QualityReport
from ..utils.config import QualitySettings
from ..utils.logging import setup_logger
from ..utils.timeutils import Clock, utc_now

logger = setup_logger(__name__)


class _Scorecard:
    """Mutable accumulator used while a single payload is being scored."""

    def __init__(self) -> None:
        self.score = 100.0
        self.issues: list[str] = []

    def deduct(self, points: float, issue: str) -> None:
        self.score -= points
        self.issues.append(issue)


class DataQualityValidator:
    """Score fetched payloads and decide whether they may be served live."""

    def __init__(self, settings: QualitySettings | None = None, *, clock: Clock = utc_now) -> None:
        self.settings = settings or QualitySettings()
        self._clock = clock
        self._validators: dict[DataDomain, Callable[[Any], QualityReport]] = {
            DataDomain.WEATHER: self._validate_weather,
            DataDomain.CAMERA: self._validate_camera,
        }

    def validate(self, domain: DataDomain | str, payload: Any) -> QualityReport:
        """
        Produce a quality report for ``payload``.

        Args:
            domain: Data domain of the payload
            payload: Typed payload model or raw mapping

        Returns:
            QualityReport; unknown domains and malformed payloads score 0
        """
        try:
            resolved = DataDomain.coerce(domain)
        except UnknownDomainError as exc:
            return _rejected(str(domain), str(exc))

        if payload is None:
            report = _rejected(resolved.value, "Invalid data structure")
        else:
            try:
                parsed = parse_payload(resolved, payload)
            except PayloadStructureError as exc:
                report = _rejected(resolved.value, f"Invalid data structure: {exc}")
            else:
                report = self._validators[resolved](parsed)

        observe_quality_score(resolved.value, report.score)
        if not report.is_acceptable:
            logger.warning(
                "Payload rejected: %s",
                "; ".join(report.issues),
                extra={"domain": resolved.value, "quality": f"{report.score:.0f}"},
            )
        return report

    def _check_freshness(self, card: _Scorecard, payload: Any, penalty: float, label: str) -> None:
        if payload.timestamp is None:
            return
        age = self._clock() - payload.timestamp
        if age > self.settings.freshness:
            minutes = round(age.total_seconds() / 60)
            card.deduct(penalty, f"{label} too old: {minutes} minutes")

    def _validate_weather(self, payload: WeatherPayload) -> QualityReport:
        settings = self.settings
        if not payload.readings:
            return _rejected(DataDomain.WEATHER.value, "Missing weather readings")

        card = _Scorecard()
        if payload.timestamp is None:
            card.deduct(30, "Missing timestamp")
        else:
            self._check_freshness(card, payload, 20, "Data")

        station_count = payload.stations_reporting(settings.primary_metrics)
        if station_count < settings.weather_min_stations:
            card.deduct(
                25,
                f"Insufficient weather stations: {station_count} < {settings.weather_min_stations}",
            )

        available = payload.station_ids([settings.anchor_metric])
        missing = [station for station in settings.anchor_stations if station not in available]
        if missing:
            card.deduct(10 * len(missing), f"Missing key stations: {', '.join(missing)}")

        score = max(card.score, 0.0)
        return QualityReport(
            domain=DataDomain.WEATHER.value,
            is_acceptable=score >= settings.weather_acceptance,
            score=score,
            issues=card.issues,
            data_point_count=station_count,
        )

    def _validate_camera(self, payload: CameraPayload) -> QualityReport:
        settings = self.settings
        card = _Scorecard()
        captures = payload.captures
        count = len(captures)

        if count < settings.camera_min_captures:
            card.deduct(
                30,
                f"Insufficient camera captures: {count} < {settings.camera_min_captures}",
            )

        complete = sum(1 for capture in captures if capture.is_complete)
        ratio = complete / count if count else 0.0
        if ratio < settings.capture_completeness:
            deduction = round((1 - ratio) * settings.camera_completeness_max_deduction)
            card.deduct(deduction, f"Low quality captures: {round(ratio * 100)}%")

        self._check_freshness(card, payload, 15, "Camera data")

        score = max(card.score, 0.0)
        return QualityReport(
            domain=DataDomain.CAMERA.value,
            is_acceptable=score >= settings.camera_acceptance,
            score=score,
            issues=card.issues,
            data_point_count=count,
        )


def _rejected(domain: str, issue: str) -> QualityReport:
    return QualityReport(domain=domain, is_acceptable=False, score=0, issues=[issue])
