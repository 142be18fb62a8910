"""Liveness and readiness endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response, status

from ... import __version__
from ...orchestrator.service import ReliabilityOrchestrator
from ...utils.health import HealthChecker, HealthStatus, SystemHealth
from ..dependencies import get_health_checker, get_orchestrator

router = APIRouter()


@router.get("/health")
async def health_check(
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Liveness check with a summary of the monitoring service."""

    return {
        "status": "healthy",
        "service": "feedwatch",
        "version": __version__,
        "monitoring": orchestrator.get_service_health(),
    }


@router.get("/ready", response_model=SystemHealth)
async def readiness_check(
    response: Response,
    checker: HealthChecker = Depends(get_health_checker),
) -> SystemHealth:
    """Readiness check; 503 when any component is unhealthy."""

    health = await checker.check_all()
    if health.status is HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health
