"""Per-upstream circuit breaker for fetch targets."""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Lock
from typing import Any

from ..exceptions import CircuitBreakerOpenError
from ..utils.config import CircuitBreakerSettings
from ..utils.logging import setup_logger
from ..utils.timeutils import Clock, utc_now

logger = setup_logger(__name__, context={"status": "circuit"})


@dataclass(slots=True)
class CircuitState:
    """Recent failures of one upstream and, while tripped, when it may be retried."""

    failures: deque[datetime] = field(default_factory=deque)
    open_until: datetime | None = None

    def note_failure(self, at: datetime, window: timedelta) -> int:
        self.failures.append(at)
        while self.failures and at - self.failures[0] > window:
            self.failures.popleft()
        return len(self.failures)

    def is_open_at(self, now: datetime) -> bool:
        return self.open_until is not None and self.open_until > now

    def close(self) -> None:
        self.failures.clear()
        self.open_until = None


class CircuitBreakerRegistry:
    """
    Circuit per upstream name, shared by every source built from one config.

    ``failure_threshold`` failures inside ``window_seconds`` open the circuit
    for ``reset_seconds``; the first check after that closes it again and a
    successful fetch always closes it.
    """

    def __init__(self, settings: CircuitBreakerSettings | None = None, *, clock: Clock = utc_now) -> None:
        self.settings = settings or CircuitBreakerSettings()
        self._clock = clock
        self._states: dict[str, CircuitState] = defaultdict(CircuitState)
        self._lock = Lock()

    def ensure_available(self, upstream: str) -> None:
        """Raise :class:`CircuitBreakerOpenError` while the upstream's circuit is open."""

        if not self.settings.enabled:
            return
        now = self._clock()
        with self._lock:
            state = self._states[upstream]
            if state.is_open_at(now):
                raise CircuitBreakerOpenError(upstream, reopen_at=state.open_until)
            if state.open_until is not None:
                state.close()
                logger.info("Circuit closed after cooldown", extra={"source_id": upstream})

    def record_failure(self, upstream: str) -> None:
        if not self.settings.enabled:
            return
        now = self._clock()
        window = timedelta(seconds=self.settings.window_seconds)
        with self._lock:
            state = self._states[upstream]
            recent = state.note_failure(now, window)
            if recent >= self.settings.failure_threshold:
                state.open_until = now + timedelta(seconds=self.settings.reset_seconds)
                logger.error(
                    "Circuit opened after %s failures in %ss",
                    recent,
                    self.settings.window_seconds,
                    extra={"source_id": upstream, "status": "open"},
                )

    def record_success(self, upstream: str) -> None:
        with self._lock:
            if upstream in self._states:
                self._states[upstream].close()

    def is_open(self, upstream: str) -> bool:
        now = self._clock()
        with self._lock:
            state = self._states.get(upstream)
            return state is not None and state.is_open_at(now)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Failure counts and reopen times, keyed by upstream."""

        with self._lock:
            return {
                name: {
                    "recent_failures": len(state.failures),
                    "open_until": state.open_until.isoformat() if state.open_until else None,
                }
                for name, state in self._states.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._states.clear()
