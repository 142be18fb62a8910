"""FastAPI application exposing FeedWatch reliability views."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .. import __version__
from ..exceptions import FeedWatchError, UnknownDomainError
from ..orchestrator.factory import build_orchestrator
from ..orchestrator.service import ReliabilityOrchestrator
from ..utils.config import get_settings
from ..utils.health import HealthChecker, orchestrator_check, store_check
from ..utils.logging import setup_logger
from .routes import health, metrics, reliability

logger = setup_logger(__name__, context={"status": "api"})


def create_app(
    orchestrator: ReliabilityOrchestrator | None = None,
    *,
    start_monitoring: bool | None = None,
) -> FastAPI:
    """
    Build the API application around an orchestrator.

    Args:
        orchestrator: Pre-built orchestrator; built from settings when omitted
        start_monitoring: Start the monitoring loop on startup; defaults to the
            configured ``auto_start``
    """
    settings = get_settings()
    orchestrator = orchestrator or build_orchestrator(settings)
    should_start = (
        orchestrator.settings.monitoring.auto_start if start_monitoring is None else start_monitoring
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("FeedWatch API starting up...")
        if should_start:
            await orchestrator.start()
        yield
        await orchestrator.stop()
        logger.info("FeedWatch API shutting down...")

    app = FastAPI(
        title=settings.api_title,
        description="Reliability and source-health views over monitored data feeds",
        version=__version__,
        lifespan=lifespan,
    )

    checker = HealthChecker()
    checker.register_check("orchestrator", orchestrator_check(orchestrator))
    checker.register_check("state_store", store_check(orchestrator.store))
    app.state.orchestrator = orchestrator
    app.state.health_checker = checker

    @app.exception_handler(UnknownDomainError)
    async def unknown_domain_handler(request: Request, exc: UnknownDomainError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": "error", "message": str(exc), "error_type": "UnknownDomainError"},
        )

    @app.exception_handler(FeedWatchError)
    async def feedwatch_exception_handler(request: Request, exc: FeedWatchError) -> JSONResponse:
        logger.error(
            "FeedWatchError on %s: %s",
            request.url.path,
            exc,
            extra={"status": "error"},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": str(exc), "error_type": exc.__class__.__name__},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(reliability.router, prefix="/api/v1", tags=["reliability"])
    app.include_router(metrics.router, tags=["monitoring"])
    return app
