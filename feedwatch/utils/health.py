"""Readiness checks for the API: state store reachability and monitoring health."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from .. import __version__
from .timeutils import utc_now

if TYPE_CHECKING:
    from ..orchestrator.service import ReliabilityOrchestrator
    from ..storage.base import NamespacedStore

HealthCheck = Callable[[], Any]


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


def worst_status(statuses: Iterable[HealthStatus]) -> HealthStatus:
    """Most severe status in ``statuses``; healthy when empty."""

    return max(statuses, key=lambda s: s.severity, default=HealthStatus.HEALTHY)


class ComponentHealth(BaseModel):
    """Result of one component check."""

    name: str
    status: HealthStatus
    message: str | None = None
    checked_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def unhealthy(cls, name: str, message: str) -> ComponentHealth:
        return cls(name=name, status=HealthStatus.UNHEALTHY, message=message)


class SystemHealth(BaseModel):
    """Folded readiness result returned by ``/ready``."""

    status: HealthStatus
    service: str = "feedwatch"
    version: str = __version__
    checked_at: datetime = Field(default_factory=utc_now)
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    uptime_seconds: float | None = None


class HealthChecker:
    """Named component checks, run concurrently with a shared deadline.

    A check may be sync (run in a worker thread) or async, and returns a
    ``ComponentHealth``. Exceptions and timeouts become unhealthy results.
    """

    def __init__(self) -> None:
        self._checks: dict[str, HealthCheck] = {}
        self._started_at = utc_now()

    def register_check(self, component_name: str, check_fn: HealthCheck) -> None:
        self._checks[component_name] = check_fn

    async def check_component(self, component_name: str) -> ComponentHealth:
        check_fn = self._checks.get(component_name)
        if check_fn is None:
            return ComponentHealth.unhealthy(
                component_name, f"Component '{component_name}' not registered"
            )
        try:
            if asyncio.iscoroutinefunction(check_fn):
                return await check_fn()
            return await asyncio.to_thread(check_fn)
        except Exception as e:
            return ComponentHealth.unhealthy(component_name, f"Health check failed: {e}")

    async def _bounded(self, name: str, timeout: float) -> ComponentHealth:
        try:
            return await asyncio.wait_for(self.check_component(name), timeout)
        except asyncio.TimeoutError:
            return ComponentHealth.unhealthy(name, "Health check timed out")

    async def check_all(
        self, timeout: float = 5.0, required_components: list[str] | None = None
    ) -> SystemHealth:
        """
        Run every registered check.

        Args:
            timeout: Per-check deadline in seconds
            required_components: Components whose status decides the overall
                status. Every component counts when None.

        Returns:
            SystemHealth; unhealthy when nothing is registered
        """
        names = list(self._checks)
        results = await asyncio.gather(*(self._bounded(name, timeout) for name in names))
        components = dict(zip(names, results))

        if not components:
            overall = HealthStatus.UNHEALTHY
        else:
            required = set(required_components or names)
            overall = worst_status(c.status for n, c in components.items() if n in required)

        return SystemHealth(
            status=overall,
            components=components,
            uptime_seconds=(utc_now() - self._started_at).total_seconds(),
        )


def orchestrator_check(orchestrator: ReliabilityOrchestrator) -> HealthCheck:
    """Domain health from the reliability report; degraded while the loop is stopped."""

    def _check() -> ComponentHealth:
        report = orchestrator.get_data_reliability_report()
        running = orchestrator.monitoring_active
        status = HealthStatus(report["overall_status"])
        if not running:
            status = worst_status([status, HealthStatus.DEGRADED])
        return ComponentHealth(
            name="orchestrator",
            status=status,
            message=None if running else "Monitoring loop is not running",
            metadata={"monitoring_active": running, "overall_score": report["overall_score"]},
        )

    return _check


def store_check(store: NamespacedStore) -> HealthCheck:
    """Read the persisted monitoring config; any store error fails the check."""

    def _check() -> ComponentHealth:
        store.read("monitoring_config", {})
        return ComponentHealth(name="state_store", status=HealthStatus.HEALTHY)

    return _check
