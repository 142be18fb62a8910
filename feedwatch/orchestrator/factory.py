"""Build a fully wired orchestrator from runtime configuration."""

from __future__ import annotations

import httpx

from ..schemas.domains import DataDomain
from ..sources.circuit_breaker import CircuitBreakerRegistry
from ..sources.datagov import CameraSource, WeatherSource
from ..storage.base import KeyValueStore, NamespacedStore
from ..storage.sql import SqlKeyValueStore
from ..utils.config import (
    GlobalSettings,
    ServiceConfiguration,
    UpstreamConfig,
    get_service_configuration,
    get_settings,
)
from ..utils.logging import setup_logger
from .service import ReliabilityOrchestrator
from .upstreams import Upstream

logger = setup_logger(__name__)


def build_upstream(
    config: UpstreamConfig,
    *,
    client: httpx.AsyncClient | None = None,
    circuit_breaker: CircuitBreakerRegistry | None = None,
) -> Upstream:
    """Create the fetch target for one configured upstream."""

    if config.domain is DataDomain.WEATHER:
        fetch = WeatherSource(
            config.name,
            config.endpoints,
            timeout=config.timeout,
            client=client,
            circuit_breaker=circuit_breaker,
        )
    else:
        url = next(iter(config.endpoints.values()))
        fetch = CameraSource(
            config.name,
            url,
            timeout=config.timeout,
            client=client,
            circuit_breaker=circuit_breaker,
        )
    return Upstream(
        name=config.name,
        domain=config.domain,
        fetch=fetch,
        data_types=list(config.data_types),
        retry=config.retry,
    )


def build_orchestrator(
    settings: GlobalSettings | None = None,
    *,
    service_config: ServiceConfiguration | None = None,
    backend: KeyValueStore | None = None,
    client: httpx.AsyncClient | None = None,
) -> ReliabilityOrchestrator:
    """
    Assemble an orchestrator for the active configuration profile.

    Args:
        settings: Global settings; defaults to the cached environment settings
        service_config: Merged YAML configuration; loaded from ``settings`` when omitted
        backend: Key/value backend; defaults to the SQL ``pipeline_state`` table
        client: Shared httpx client for all fetch targets

    Returns:
        ReliabilityOrchestrator ready to ``start``
    """
    settings = settings or get_settings()
    config = service_config or get_service_configuration(settings)
    reliability = config.reliability.model_copy(deep=True)

    circuit_breaker = CircuitBreakerRegistry(reliability.circuit_breaker)
    upstreams = [
        build_upstream(upstream, client=client, circuit_breaker=circuit_breaker)
        for upstream in config.upstreams
        if upstream.enabled
    ]
    store = NamespacedStore(backend or SqlKeyValueStore(), settings.state_namespace)

    logger.info(
        "Configured %d upstreams for environment %s",
        len(upstreams),
        config.environment,
    )
    return ReliabilityOrchestrator(upstreams, store, settings=reliability)
