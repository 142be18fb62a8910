"""Cycle correlation and stage timing for monitoring runs.

Every monitoring cycle gets a short identifier stored in a context variable so
that log lines emitted by the fetcher, validator and tracker during that cycle
can be correlated.
"""

from __future__ import annotations

import contextvars
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_cycle_id_context: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cycle_id", default=None
)


@dataclass
class TraceSpan:
    """
    Timing record for one named stage of a cycle.

    Attributes:
        operation: Stage name (fetch, validate, track, alert, persist)
        cycle_id: Cycle the stage belongs to
        start_time: Monotonic start time in seconds
        duration_ms: Duration in milliseconds once finished
        metadata: Additional structured context
    """

    operation: str
    cycle_id: str | None
    start_time: float
    duration_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def finish(self) -> None:
        """Mark the span as complete and calculate duration."""
        if self.duration_ms is None:
            self.duration_ms = int((time.perf_counter() - self.start_time) * 1000)


def get_cycle_id() -> str | None:
    """Return the identifier of the cycle running in the current context."""

    return _cycle_id_context.get()


def generate_cycle_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def cycle_scope(cycle_id: str | None = None) -> Iterator[str]:
    """Bind a cycle identifier to the current context for the duration of a cycle."""

    resolved = cycle_id or generate_cycle_id()
    token = _cycle_id_context.set(resolved)
    try:
        yield resolved
    finally:
        _cycle_id_context.reset(token)


@contextmanager
def trace_span(operation: str, **metadata: Any) -> Iterator[TraceSpan]:
    """
    Time a named stage and log its duration at debug level.

    Example:
        with trace_span("fetch", upstream="weather") as span:
            span.metadata["attempts"] = 2
    """
    span = TraceSpan(
        operation=operation,
        cycle_id=get_cycle_id(),
        start_time=time.perf_counter(),
        metadata=dict(metadata),
    )
    try:
        yield span
    finally:
        span.finish()
        logger.debug(
            "Stage %s completed in %dms",
            operation,
            span.duration_ms or 0,
            extra={"duration_ms": span.duration_ms, "status": operation},
        )


__all__ = [
    "TraceSpan",
    "cycle_scope",
    "generate_cycle_id",
    "get_cycle_id",
    "trace_span",
]
