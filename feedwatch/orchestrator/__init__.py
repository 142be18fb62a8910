"""Reliability orchestration."""
from .factory import build_orchestrator, build_upstream
from .service import ReliabilityOrchestrator
from .upstreams import Upstream

__all__ = ["ReliabilityOrchestrator", "Upstream", "build_orchestrator", "build_upstream"]
