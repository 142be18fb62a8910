"""Prometheus metrics definitions for FeedWatch."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

FETCH_ATTEMPTS = Counter(
    "feedwatch_fetch_attempts_total",
    "Total upstream fetch attempts by operation and outcome.",
    labelnames=("operation", "outcome"),
)

FETCH_RETRIES = Counter(
    "feedwatch_fetch_retries_total",
    "Total scheduled fetch retries grouped by error kind.",
    labelnames=("error_kind",),
)

QUALITY_SCORE = Histogram(
    "feedwatch_quality_score",
    "Distribution of payload quality scores by data domain.",
    labelnames=("domain",),
    buckets=(0, 20, 40, 50, 60, 70, 80, 90, 100),
)

DATA_LOADS = Counter(
    "feedwatch_data_loads_total",
    "Data loads served to consumers by domain and provenance.",
    labelnames=("domain", "source"),
)

ALERTS_EMITTED = Counter(
    "feedwatch_alerts_total",
    "Alerts emitted by type and severity.",
    labelnames=("type", "severity"),
)

MONITORING_CYCLES = Counter(
    "feedwatch_monitoring_cycles_total",
    "Monitoring cycles by completion status.",
    labelnames=("status",),
)

CYCLE_DURATION = Histogram(
    "feedwatch_monitoring_cycle_duration_seconds",
    "Distribution of monitoring cycle durations in seconds.",
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)

SOURCES_BY_STATE = Gauge(
    "feedwatch_sources",
    "Tracked upstream sources by lifecycle state.",
    labelnames=("state",),
)

AVERAGE_RELIABILITY = Gauge(
    "feedwatch_average_reliability",
    "Mean reliability score across all tracked sources.",
)


def record_fetch_attempt(operation: str, outcome: str) -> None:
    """Increment the fetch attempts counter with the supplied labels."""

    FETCH_ATTEMPTS.labels(operation=operation, outcome=outcome).inc()


def record_fetch_retry(error_kind: str) -> None:
    """Increment the retry counter for the error kind that triggered it."""

    FETCH_RETRIES.labels(error_kind=error_kind).inc()


def observe_quality_score(domain: str, score: float) -> None:
    """Record the quality score assigned to one payload."""

    QUALITY_SCORE.labels(domain=domain).observe(min(max(score, 0.0), 100.0))


def record_data_load(domain: str, source: str) -> None:
    """Count a data load by provenance tag (live, cache_fallback, fallback_generated)."""

    DATA_LOADS.labels(domain=domain, source=source).inc()


def record_alert(alert_type: str, severity: str) -> None:
    """Count one emitted alert."""

    ALERTS_EMITTED.labels(type=alert_type, severity=severity).inc()


def record_monitoring_cycle(status: str, duration_seconds: float | None = None) -> None:
    """
    Record the outcome of a monitoring cycle.

    Args:
        status: completed, failed or skipped
        duration_seconds: Wall time of the cycle, when it ran
    """
    MONITORING_CYCLES.labels(status=status).inc()
    if duration_seconds is not None:
        CYCLE_DURATION.observe(max(duration_seconds, 0.0))


def set_source_counts(counts: dict[str, int], average_reliability: float) -> None:
    """Publish the current per-state source counts and mean reliability."""

    for state, count in counts.items():
        SOURCES_BY_STATE.labels(state=state).set(count)
    AVERAGE_RELIABILITY.set(average_reliability)
