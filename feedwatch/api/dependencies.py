"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from ..orchestrator.service import ReliabilityOrchestrator
from ..utils.health import HealthChecker


def get_orchestrator(request: Request) -> ReliabilityOrchestrator:
    """Return the orchestrator bound to the running application."""

    return request.app.state.orchestrator


def get_health_checker(request: Request) -> HealthChecker:
    return request.app.state.health_checker
