"""Read API over monitoring state plus cycle and config controls."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...orchestrator.service import ReliabilityOrchestrator
from ...schemas.domains import DataDomain
from ...schemas.reports import Alert, LoadResult, MonitoringCycleMetrics
from ..dependencies import get_orchestrator

router = APIRouter()


class ThresholdUpdate(BaseModel):
    reliability: float | None = Field(None, ge=0, le=1)
    consecutive_failures: int | None = Field(None, ge=1)
    data_age_seconds: float | None = Field(None, gt=0)


class ConfigUpdate(BaseModel):
    """Body of ``PUT /api/v1/config``."""

    interval_seconds: float | None = Field(None, gt=0)
    auto_start: bool | None = None
    thresholds: ThresholdUpdate | None = None


@router.get("/status")
async def monitoring_status(
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return orchestrator.get_monitoring_status()


@router.get("/stations/reliability")
async def station_reliability(
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return orchestrator.get_station_reliability_report()


@router.get("/alerts", response_model=list[Alert])
async def recent_alerts(
    hours: float = Query(24, gt=0, le=24 * 7),
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> list[Alert]:
    return orchestrator.get_recent_alerts(hours)


@router.get("/reliability")
async def data_reliability(
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Cache state, retry states and per-domain health."""

    return orchestrator.get_data_reliability_report()


@router.get("/history", response_model=list[MonitoringCycleMetrics])
async def metrics_history(
    hours: float = Query(24, gt=0, le=24 * 7),
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> list[MonitoringCycleMetrics]:
    return orchestrator.get_metrics_history(hours)


@router.get("/data/{domain}")
async def latest_data(
    domain: str,
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Most recent load result for ``domain`` with its provenance metadata."""

    result: LoadResult | None = orchestrator.get_latest(DataDomain.coerce(domain))
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No data loaded yet for domain '{domain}'",
        )
    return result.model_dump(mode="json")


@router.post("/cycles", response_model=MonitoringCycleMetrics)
async def trigger_cycle(
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> MonitoringCycleMetrics:
    """Run one monitoring cycle now."""

    if orchestrator.cycle_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A monitoring cycle is already running",
        )
    metrics = await orchestrator.run_cycle()
    if metrics is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Monitoring cycle failed; see the monitoring error log",
        )
    return metrics


@router.put("/config")
async def update_config(
    body: ConfigUpdate,
    orchestrator: ReliabilityOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    thresholds = body.thresholds.model_dump(exclude_none=True) if body.thresholds else None
    return orchestrator.update_config(
        interval_seconds=body.interval_seconds,
        thresholds=thresholds or None,
        auto_start=body.auto_start,
    )
