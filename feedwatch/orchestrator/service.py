"""Coordinating service that runs monitoring cycles and serves reliability views."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..alerts.engine import AlertEngine
from ..alerts.history import AlertHistory
from ..cache.fallback import FallbackCache
from ..cache.placeholders import FALLBACK_QUALITY_SCORE, build_fallback_payload
from ..exceptions import StateStoreError
from ..monitoring.metrics import record_data_load, record_monitoring_cycle, set_source_counts
from ..monitoring.tracing import cycle_scope, trace_span
from ..quality.validator import DataQualityValidator
from ..schemas.domains import DataDomain, DomainPayload, parse_payload, payload_timestamp
from ..schemas.reports import (
    Alert,
    DataSourceTag,
    LoadMetadata,
    LoadResult,
    MonitoringCycleMetrics,
    MonitoringError,
)
from ..storage.base import NamespacedStore
from ..storage.memory import InMemoryKeyValueStore
from ..tracking.models import SourceState
from ..tracking.tracker import SourceHealthTracker
from ..utils.config import AlertThresholds, ReliabilitySettings
from ..utils.logging import log_data_load, setup_logger
from ..utils.retry import FetchFn, ResilientFetcher, RetryConfig, classify_exception
from ..utils.timeutils import Clock, elapsed_ms, utc_now
from .upstreams import ENDPOINT_DATA_TYPE, Upstream, iter_source_readings

logger = setup_logger(__name__, context={"status": "orchestrator"})

STATION_STATUS_KEY = "station_status"
RELIABILITY_HISTORY_KEY = "reliability_history"
MONITORING_CONFIG_KEY = "monitoring_config"
STATION_ALERTS_KEY = "station_alerts"
MONITORING_ERRORS_KEY = "monitoring_errors"

STORAGE_KEYS = (
    STATION_STATUS_KEY,
    RELIABILITY_HISTORY_KEY,
    MONITORING_CONFIG_KEY,
    STATION_ALERTS_KEY,
    MONITORING_ERRORS_KEY,
)

_RETRY_OPTION_KEYS = frozenset(RetryConfig.model_fields)


class ReliabilityOrchestrator:
    """
    Sequence fetch, validation, caching, tracking and alerting for every upstream.

    Only one monitoring cycle runs at a time; a cycle requested while another is
    in flight is skipped. Read accessors return snapshots and never mutate state.
    """

    def __init__(
        self,
        upstreams: Iterable[Upstream] = (),
        store: NamespacedStore | None = None,
        *,
        settings: ReliabilitySettings | None = None,
        fetcher: ResilientFetcher | None = None,
        validator: DataQualityValidator | None = None,
        cache: FallbackCache | None = None,
        tracker: SourceHealthTracker | None = None,
        alert_engine: AlertEngine | None = None,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or ReliabilitySettings()
        self.upstreams = list(upstreams)
        self.store = store or NamespacedStore(InMemoryKeyValueStore())
        self._clock = clock
        self._rng = rng or random.Random()
        self._sleep = sleep

        self.fetcher = fetcher or ResilientFetcher(
            self.settings.retry, sleep=sleep, rng=self._rng, clock=clock
        )
        self.validator = validator or DataQualityValidator(self.settings.quality, clock=clock)
        self.cache = cache or FallbackCache(self.settings.cache, clock=clock)
        self.tracker = tracker or SourceHealthTracker(
            self.settings.tracking, self.settings.alerts, clock=clock
        )
        self.alert_engine = alert_engine or AlertEngine(self.settings.alerts, clock=clock)
        self.alerts = AlertHistory(
            timedelta(hours=self.settings.monitoring.alert_retention_hours), clock=clock
        )

        self._cycle_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._interval_changed = asyncio.Event()
        self._monitoring_active = False
        self._state_loaded = False
        self._metrics_history: list[MonitoringCycleMetrics] = []
        self._errors: list[MonitoringError] = []
        self._latest: dict[str, LoadResult] = {}
        self._last_success: dict[str, datetime] = {}
        self._operation_domains: dict[str, str] = {
            upstream.name: upstream.domain.value for upstream in self.upstreams
        }

    @property
    def monitoring_active(self) -> bool:
        return self._monitoring_active

    @property
    def cycle_running(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def interval_seconds(self) -> float:
        return self.settings.monitoring.interval_seconds

    async def start(self) -> None:
        """Load persisted state once and start the periodic monitoring loop."""

        if self._monitoring_active:
            logger.debug("Monitoring already active")
            return
        if not self._state_loaded:
            self.load_state()
        self._monitoring_active = True
        self._task = asyncio.create_task(self._run_loop(run_immediately=True))
        logger.info(
            "Monitoring started for %d upstreams every %.0fs",
            len(self.upstreams),
            self.interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the loop and persist the current state."""

        task, self._task = self._task, None
        was_active = self._monitoring_active
        self._monitoring_active = False
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if was_active:
            self._persist_safely()
            logger.info("Monitoring stopped")

    async def _run_loop(self, *, run_immediately: bool) -> None:
        if not run_immediately:
            await self._wait_interval()
        while True:
            await self.run_cycle()
            await self._wait_interval()

    async def _wait_interval(self) -> None:
        """Sleep one interval; an interval change restarts the wait with the new value."""

        while True:
            self._interval_changed.clear()
            sleeper = asyncio.ensure_future(self._sleep(self.interval_seconds))
            changed = asyncio.ensure_future(self._interval_changed.wait())
            try:
                done, _ = await asyncio.wait(
                    {sleeper, changed}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                sleeper.cancel()
                changed.cancel()
            if sleeper in done:
                return
            logger.info("Monitoring interval changed to %.0fs", self.interval_seconds)

    async def run_cycle(self) -> MonitoringCycleMetrics | None:
        """
        Run one monitoring cycle unless another is already in flight.

        Returns:
            The cycle's metrics snapshot, or None when the cycle was skipped or failed
        """
        if self._cycle_lock.locked():
            logger.info("Monitoring cycle already running; skipping")
            record_monitoring_cycle("skipped")
            return None

        async with self._cycle_lock:
            if not self._state_loaded:
                self.load_state()
            with cycle_scope() as cycle_id:
                started = time.perf_counter()
                try:
                    metrics = await self._execute_cycle(cycle_id, started)
                except Exception as exc:
                    logger.exception("Monitoring cycle failed: %s", exc)
                    self.record_error(exc, {"cycle_id": cycle_id})
                    record_monitoring_cycle("failed", time.perf_counter() - started)
                    return None
                record_monitoring_cycle("completed", time.perf_counter() - started)
                return metrics

    async def _execute_cycle(self, cycle_id: str, started: float) -> MonitoringCycleMetrics:
        upstream_results: dict[str, str] = {}
        for upstream in self.upstreams:
            with trace_span("upstream", upstream=upstream.name):
                result, accepted = await self._load(
                    upstream.domain,
                    upstream.fetch,
                    operation_id=upstream.name,
                    retry_options=upstream.retry,
                )
            upstream_results[upstream.name] = result.metadata.source.value
            with trace_span("track", upstream=upstream.name):
                self._track_upstream(upstream, accepted)

        now = self._clock()
        with trace_span("alert"):
            self.tracker.refresh_staleness(now)
            alerts = self.alert_engine.evaluate(self.tracker.statuses(), now=now)
            self.alerts.extend(alerts)
            self.alerts.prune(now)
        self.cache.prune_expired()

        metrics = self._snapshot_metrics(cycle_id, now, started, len(alerts), upstream_results)
        self._metrics_history.append(metrics)
        retention = timedelta(hours=self.settings.monitoring.metrics_retention_hours)
        self._metrics_history = [m for m in self._metrics_history if now - m.timestamp <= retention]

        if self._rng.random() < self.settings.monitoring.persist_probability:
            with trace_span("persist"):
                self._persist_safely()

        logger.info(
            "Monitoring cycle completed: %d sources, %d active, %d alerts",
            metrics.total_sources,
            metrics.active_sources,
            len(alerts),
            extra={"duration_ms": metrics.duration_ms},
        )
        return metrics

    def _track_upstream(self, upstream: Upstream, accepted: DomainPayload | None) -> None:
        now = self._clock()
        self.tracker.record_reading(
            upstream.name, ENDPOINT_DATA_TYPE, None, accepted is not None, now
        )

        seen: dict[str, set[str]] = {}
        if accepted is not None:
            for reading in iter_source_readings(accepted):
                self.tracker.record_reading(
                    reading.source_id, reading.data_type, reading.value, reading.success, now
                )
                seen.setdefault(reading.data_type, set()).add(reading.source_id)

        for data_type in upstream.data_types:
            for source_id in self.tracker.sources_for_data_type(data_type):
                if source_id in seen.get(data_type, ()):
                    continue
                self.tracker.record_reading(source_id, data_type, None, False, now)

    def _snapshot_metrics(
        self,
        cycle_id: str,
        now: datetime,
        started: float,
        alert_count: int,
        upstream_results: dict[str, str],
    ) -> MonitoringCycleMetrics:
        counts = self.tracker.state_counts()
        average = self.tracker.average_reliability()
        set_source_counts(counts, average)
        return MonitoringCycleMetrics(
            cycle_id=cycle_id,
            timestamp=now,
            total_sources=sum(counts.values()),
            active_sources=counts[SourceState.ACTIVE.value],
            degraded_sources=counts[SourceState.DEGRADED.value],
            inactive_sources=counts[SourceState.INACTIVE.value],
            unknown_sources=counts[SourceState.UNKNOWN.value],
            average_reliability=average,
            data_type_coverage=self.tracker.data_type_coverage(self._configured_data_types()),
            duration_ms=int((time.perf_counter() - started) * 1000),
            alerts_emitted=alert_count,
            upstream_results=upstream_results,
        )

    def _configured_data_types(self) -> list[str]:
        names: list[str] = []
        for upstream in self.upstreams:
            names.extend(name for name in upstream.data_types if name not in names)
        return names

    async def load_data_with_reliability(
        self,
        domain: DataDomain | str,
        fetch_fn: FetchFn,
        options: Mapping[str, Any] | None = None,
    ) -> LoadResult:
        """
        Fetch, validate and serve data for ``domain`` without ever raising fetch errors.

        Args:
            domain: Data domain to load
            fetch_fn: Zero-argument fetch target
            options: ``max_retries`` and other retry overrides, ``operation_id``,
                ``cache_max_age_seconds``

        Returns:
            LoadResult tagged ``live``, ``cache_fallback`` or ``fallback_generated``

        Raises:
            UnknownDomainError: If ``domain`` is not supported
        """
        opts = dict(options or {})
        resolved = DataDomain.coerce(domain)
        retry_options = {key: value for key, value in opts.items() if key in _RETRY_OPTION_KEYS}
        max_age = opts.get("cache_max_age_seconds")
        result, _ = await self._load(
            resolved,
            fetch_fn,
            operation_id=str(opts.get("operation_id") or f"load:{resolved.value}"),
            retry_options=retry_options or None,
            cache_max_age=timedelta(seconds=float(max_age)) if max_age is not None else None,
        )
        return result

    async def _load(
        self,
        domain: DataDomain,
        fetch_fn: FetchFn,
        *,
        operation_id: str,
        retry_options: RetryConfig | Mapping[str, Any] | None = None,
        cache_max_age: timedelta | None = None,
    ) -> tuple[LoadResult, DomainPayload | None]:
        self._operation_domains[operation_id] = domain.value
        started = time.perf_counter()

        try:
            raw = await self.fetcher.execute(operation_id, fetch_fn, retry_options)
        except Exception as exc:
            kind = classify_exception(exc)
            reason = f"fetch failed ({kind.value}): {exc}"
        else:
            try:
                report = self.validator.validate(domain, raw)
                payload = parse_payload(domain, raw) if report.is_acceptable else None
            except Exception as exc:
                logger.exception(
                    "Validating %s payload failed: %s",
                    domain.value,
                    exc,
                    extra={"domain": domain.value, "operation_id": operation_id},
                )
                reason = f"validation failed ({type(exc).__name__}): {exc}"
            else:
                if payload is not None:
                    now = self._clock()
                    self.cache.put(domain, payload, report.score)
                    self._last_success[domain.value] = now
                    timestamp = payload_timestamp(payload)
                    result = self._finish_load(
                        domain,
                        payload,
                        LoadMetadata(
                            load_time_ms=_elapsed_since(started),
                            quality_score=report.score,
                            data_age_ms=elapsed_ms(timestamp, now) if timestamp else None,
                            source=DataSourceTag.LIVE,
                            cached=False,
                        ),
                    )
                    return result, payload
                reason = f"quality rejected (score {report.score:.0f}): {'; '.join(report.issues)}"

        entry = self.cache.get_usable(domain, cache_max_age)
        if entry is not None:
            metadata = LoadMetadata(
                load_time_ms=_elapsed_since(started),
                quality_score=entry.quality_score,
                data_age_ms=elapsed_ms(entry.captured_at, self._clock()),
                source=DataSourceTag.CACHE_FALLBACK,
                cached=True,
                fallback_reason=reason,
            )
            return self._finish_load(domain, entry.payload, metadata), None

        placeholder = build_fallback_payload(domain, self._clock())
        metadata = LoadMetadata(
            load_time_ms=_elapsed_since(started),
            quality_score=FALLBACK_QUALITY_SCORE,
            data_age_ms=0,
            source=DataSourceTag.FALLBACK_GENERATED,
            cached=False,
            fallback_reason=reason,
        )
        return self._finish_load(domain, placeholder, metadata), None

    def _finish_load(self, domain: DataDomain, data: Any, metadata: LoadMetadata) -> LoadResult:
        result = LoadResult(domain=domain.value, data=data, metadata=metadata)
        self._latest[domain.value] = result
        record_data_load(domain.value, metadata.source.value)
        log_data_load(
            logger,
            domain.value,
            metadata.source.value,
            metadata.load_time_ms,
            metadata.quality_score,
            fallback_reason=metadata.fallback_reason,
        )
        return result

    def get_latest(self, domain: DataDomain | str) -> LoadResult | None:
        return self._latest.get(DataDomain.coerce(domain).value)

    def get_monitoring_status(self) -> dict[str, Any]:
        """Snapshot of the monitoring loop and aggregate source health."""

        counts = self.tracker.state_counts()
        last_cycle = self._metrics_history[-1].timestamp if self._metrics_history else None
        return {
            "monitoring_active": self._monitoring_active,
            "cycle_running": self.cycle_running,
            "monitoring_interval_seconds": self.interval_seconds,
            "total_sources": sum(counts.values()),
            "active_sources": counts[SourceState.ACTIVE.value],
            "degraded_sources": counts[SourceState.DEGRADED.value],
            "inactive_sources": counts[SourceState.INACTIVE.value],
            "unknown_sources": counts[SourceState.UNKNOWN.value],
            "average_reliability": self.tracker.average_reliability(),
            "data_type_coverage": self.tracker.data_type_coverage(self._configured_data_types()),
            "last_cycle_timestamp": last_cycle.isoformat() if last_cycle else None,
            "recent_alerts": [alert.model_dump(mode="json") for alert in self.get_recent_alerts()],
            "recent_errors": len(self._errors),
            "thresholds": self.settings.alerts.model_dump(),
        }

    def get_station_reliability_report(self) -> dict[str, Any]:
        """Per-source detail sorted by reliability plus excellent/good/fair/poor buckets."""

        stations = []
        for status in self.tracker.statuses():
            detail = status.to_dict()
            detail["metrics"] = {
                record.data_type: {
                    "reliability_score": record.reliability_score,
                    "success_count": record.success_count,
                    "total_count": record.total_count,
                }
                for record in self.tracker.records_for(status.source_id)
            }
            stations.append(detail)
        stations.sort(key=lambda item: item["reliability_score"], reverse=True)

        scores = [item["reliability_score"] for item in stations]
        return {
            "timestamp": self._clock().isoformat(),
            "total_stations": len(stations),
            "stations": stations,
            "summary": {
                "excellent": sum(1 for score in scores if score >= 0.95),
                "good": sum(1 for score in scores if 0.8 <= score < 0.95),
                "fair": sum(1 for score in scores if 0.6 <= score < 0.8),
                "poor": sum(1 for score in scores if score < 0.6),
            },
        }

    def get_service_health(self) -> dict[str, Any]:
        last_cycle = self._metrics_history[-1].timestamp if self._metrics_history else None
        return {
            "service_active": self._monitoring_active,
            "last_cycle": last_cycle.isoformat() if last_cycle else None,
            "stations_monitored": len(self.tracker.source_ids()),
            "average_reliability": self.tracker.average_reliability(),
            "recent_alert_count_last_hour": len(self.get_recent_alerts(1)),
            "storage_usage": self.get_storage_usage(),
        }

    def get_storage_usage(self) -> dict[str, Any]:
        try:
            total = sum(self.store.size_of(key) for key in STORAGE_KEYS)
        except StateStoreError as exc:
            return {"error": str(exc)}
        return {
            "total_bytes": total,
            "total_kb": round(total / 1024),
            "estimated_records": len(self.tracker.source_ids()) + self.tracker.record_count(),
        }

    def get_recent_alerts(self, hours: float = 24) -> list[Alert]:
        return self.alerts.recent(hours)

    def get_metrics_history(self, hours: float = 24) -> list[MonitoringCycleMetrics]:
        cutoff = self._clock() - timedelta(hours=hours)
        return [metrics for metrics in self._metrics_history if metrics.timestamp > cutoff]

    def get_errors(self) -> list[MonitoringError]:
        return list(self._errors)

    def assess_domain_health(self, domain: DataDomain | str) -> dict[str, Any]:
        """
        Score one domain from its last success time and outstanding retries.

        Starts at 100: -50 when the domain never loaded live data, -30 when the
        last live load is older than the freshness window, -10 per retry attempt
        still outstanding. Healthy at 75 and above, degraded at 50 and above.
        """
        resolved = DataDomain.coerce(domain)
        now = self._clock()
        score = 100
        issues: list[str] = []

        last_success = self._last_success.get(resolved.value)
        if last_success is None:
            score -= 50
            issues.append("No successful load recorded")
        elif now - last_success > self.settings.quality.freshness:
            score -= 30
            minutes = round((now - last_success).total_seconds() / 60)
            issues.append(f"Last successful load {minutes} minutes ago")

        retries = sum(
            state.retry_count
            for operation_id, state in self.fetcher.retry_states().items()
            if self._operation_domains.get(operation_id) == resolved.value
        )
        if retries:
            score -= 10 * retries
            issues.append(f"{retries} retry attempts outstanding")

        score = max(score, 0)
        if score >= 75:
            status = "healthy"
        elif score >= 50:
            status = "degraded"
        else:
            status = "unhealthy"
        return {
            "domain": resolved.value,
            "score": score,
            "status": status,
            "issues": issues,
            "last_success": last_success.isoformat() if last_success else None,
            "retry_attempts": retries,
        }

    def get_data_reliability_report(self) -> dict[str, Any]:
        """Cache state, outstanding retries and per-domain health in one document."""

        domains = {domain.value: self.assess_domain_health(domain) for domain in DataDomain}
        overall_score = sum(item["score"] for item in domains.values()) / len(domains)
        if overall_score >= 75:
            overall = "healthy"
        elif overall_score >= 50:
            overall = "degraded"
        else:
            overall = "unhealthy"
        return {
            "timestamp": self._clock().isoformat(),
            "overall_status": overall,
            "overall_score": overall_score,
            "cache": self.cache.describe(),
            "retry_states": {
                operation_id: {
                    "retry_count": state.retry_count,
                    "last_attempt_at": state.last_attempt_at.isoformat(),
                    "last_error_kind": state.last_error_kind.value if state.last_error_kind else None,
                }
                for operation_id, state in self.fetcher.retry_states().items()
            },
            "domains": domains,
        }

    def update_config(
        self,
        *,
        interval_seconds: float | None = None,
        thresholds: AlertThresholds | Mapping[str, Any] | None = None,
        auto_start: bool | None = None,
    ) -> dict[str, Any]:
        """Apply and persist new monitoring settings. Returns the stored config."""

        monitoring = self.settings.monitoring
        interval_changed = (
            interval_seconds is not None and interval_seconds != monitoring.interval_seconds
        )
        updates: dict[str, Any] = {}
        if interval_seconds is not None:
            updates["interval_seconds"] = interval_seconds
        if auto_start is not None:
            updates["auto_start"] = auto_start
        if updates:
            self.settings.monitoring = type(monitoring).model_validate(
                {**monitoring.model_dump(), **updates}
            )

        if thresholds is not None:
            if not isinstance(thresholds, AlertThresholds):
                thresholds = AlertThresholds.model_validate(
                    {**self.settings.alerts.model_dump(), **dict(thresholds)}
                )
            self._apply_thresholds(thresholds)

        stored = self._config_document()
        try:
            self.store.write(MONITORING_CONFIG_KEY, stored)
        except StateStoreError as exc:
            logger.error("Failed to persist monitoring config: %s", exc)

        if interval_changed:
            self._interval_changed.set()
        return stored

    def _apply_thresholds(self, thresholds: AlertThresholds) -> None:
        self.settings.alerts = thresholds
        self.tracker.thresholds = thresholds
        self.alert_engine.thresholds = thresholds

    def _config_document(self) -> dict[str, Any]:
        monitoring = self.settings.monitoring
        return {
            "interval_seconds": monitoring.interval_seconds,
            "auto_start": monitoring.auto_start,
            "alert_thresholds": self.settings.alerts.model_dump(),
        }

    def reset_source(self, source_id: str) -> bool:
        return self.tracker.reset_source(source_id)

    def clear_monitoring_data(self) -> None:
        """Wipe tracked sources, alerts, errors and metrics, in memory and in the store."""

        self.tracker.clear()
        self.alerts.clear()
        self._errors.clear()
        self._metrics_history.clear()
        for key in STORAGE_KEYS:
            self.store.delete(key)
        logger.info("Cleared all monitoring data")

    def record_error(self, exc: BaseException, context: Mapping[str, Any] | None = None) -> None:
        """Append to the bounded monitoring error log and persist it."""

        now = self._clock()
        monitoring = self.settings.monitoring
        self._errors.append(
            MonitoringError(
                timestamp=now,
                error=str(exc),
                error_type=type(exc).__name__,
                context=dict(context or {}),
            )
        )
        cutoff = now - timedelta(hours=monitoring.error_retention_hours)
        self._errors = [error for error in self._errors if error.timestamp > cutoff]
        self._errors = self._errors[-monitoring.error_log_size :]
        try:
            self.store.write(
                MONITORING_ERRORS_KEY, [error.model_dump(mode="json") for error in self._errors]
            )
        except StateStoreError as store_exc:
            logger.error("Failed to persist monitoring errors: %s", store_exc)

    def persist_state(self) -> None:
        """Write tracker maps and alerts to the store."""

        statuses, records = self.tracker.to_state()
        self.store.write(STATION_STATUS_KEY, statuses)
        self.store.write(RELIABILITY_HISTORY_KEY, records)
        self.store.write(STATION_ALERTS_KEY, self.alerts.to_state())
        logger.info(
            "Saved monitoring data: %d sources, %d reliability records",
            len(statuses),
            len(records),
        )

    def _persist_safely(self) -> None:
        try:
            self.persist_state()
        except StateStoreError as exc:
            logger.error("Failed to persist monitoring data: %s", exc)
            self.record_error(exc, {"operation": "persist_state"})

    def load_state(self) -> None:
        """Restore tracker maps, alerts, errors and config from the store."""

        self._state_loaded = True
        try:
            statuses = self.store.read(STATION_STATUS_KEY, {})
            records = self.store.read(RELIABILITY_HISTORY_KEY, {})
            alerts = self.store.read(STATION_ALERTS_KEY, [])
            errors = self.store.read(MONITORING_ERRORS_KEY, [])
            config = self.store.read(MONITORING_CONFIG_KEY, {})
            self.tracker.load_state(statuses, records)
            self.alerts.load_state(alerts)
            self._errors = [MonitoringError.model_validate(item) for item in errors]
            self._apply_stored_config(config)
        except (StateStoreError, PydanticValidationError, KeyError, ValueError) as exc:
            logger.warning("Failed to load monitoring data; starting fresh: %s", exc)

    def _apply_stored_config(self, config: Mapping[str, Any]) -> None:
        if not config:
            return
        updates = {
            key: config[key] for key in ("interval_seconds", "auto_start") if key in config
        }
        if updates:
            self.settings.monitoring = type(self.settings.monitoring).model_validate(
                {**self.settings.monitoring.model_dump(), **updates}
            )
        if config.get("alert_thresholds"):
            self._apply_thresholds(AlertThresholds.model_validate(config["alert_thresholds"]))


def _elapsed_since(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
