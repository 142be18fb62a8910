"""Resilient async fetch execution with bounded retries and jittered backoff."""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from ..exceptions import FetchError, FetchErrorKind
from ..monitoring.metrics import record_fetch_attempt, record_fetch_retry
from .timeutils import Clock, utc_now

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Union[Awaitable[Any], Any]]

RETRYABLE_KINDS: frozenset[FetchErrorKind] = frozenset(
    {
        FetchErrorKind.NETWORK,
        FetchErrorKind.TIMEOUT,
        FetchErrorKind.CONNECTION,
        FetchErrorKind.TEMPORARY,
        FetchErrorKind.SERVICE_UNAVAILABLE,
        FetchErrorKind.RATE_LIMITED,
        FetchErrorKind.BAD_GATEWAY,
        FetchErrorKind.GATEWAY_TIMEOUT,
    }
)

_STATUS_KINDS: dict[int, FetchErrorKind] = {
    429: FetchErrorKind.RATE_LIMITED,
    502: FetchErrorKind.BAD_GATEWAY,
    503: FetchErrorKind.SERVICE_UNAVAILABLE,
    504: FetchErrorKind.GATEWAY_TIMEOUT,
}


def kind_for_status(status_code: int) -> FetchErrorKind:
    """Map an HTTP status code to a fetch error kind."""

    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code >= 500:
        return FetchErrorKind.SERVER_ERROR
    return FetchErrorKind.CLIENT_ERROR


def classify_exception(exc: BaseException) -> FetchErrorKind:
    """Return the fetch error kind describing ``exc``."""

    if isinstance(exc, FetchError):
        return exc.kind
    if isinstance(exc, httpx.HTTPStatusError):
        return kind_for_status(exc.response.status_code)
    if isinstance(exc, httpx.TimeoutException):
        return FetchErrorKind.TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        return FetchErrorKind.CONNECTION
    if isinstance(exc, httpx.TransportError):
        return FetchErrorKind.NETWORK
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return FetchErrorKind.TIMEOUT
    if isinstance(exc, ConnectionError):
        return FetchErrorKind.CONNECTION
    return FetchErrorKind.UNKNOWN


def is_retryable(kind: FetchErrorKind) -> bool:
    """Return True when failures of ``kind`` are worth another attempt."""

    return kind in RETRYABLE_KINDS


class RetryConfig(BaseModel):
    """Retry budget, backoff and per-attempt timeout for one fetch operation."""

    model_config = ConfigDict(extra="forbid")

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, gt=0)
    max_delay: float = Field(default=30.0, gt=0)
    jitter: float = Field(default=1.0, ge=0)
    attempt_timeout: float | None = Field(default=10.0, gt=0)

    @classmethod
    def from_mapping(cls, value: Any) -> RetryConfig:
        """Parse retry configuration from a user-provided mapping."""

        if value is None:
            return cls()
        if isinstance(value, RetryConfig):
            return value
        if not isinstance(value, Mapping):
            raise ValueError("retry configuration must be a mapping of options")
        return cls.model_validate(dict(value))

    def with_overrides(self, options: RetryConfig | Mapping[str, Any] | None) -> RetryConfig:
        """Return a copy with the supplied option overrides applied."""

        if options is None:
            return self
        if isinstance(options, RetryConfig):
            return options
        overrides = {key: value for key, value in options.items() if value is not None}
        return RetryConfig.model_validate({**self.model_dump(), **overrides})

    def compute_delay(self, retry_number: int, jitter_value: float = 0.0) -> float:
        """Delay in seconds before retry ``retry_number`` (1 for the first retry)."""

        exponent = max(retry_number, 1) - 1
        delay = self.base_delay * (2**exponent) + max(jitter_value, 0.0)
        return min(delay, self.max_delay)


class AttemptOutcome(str, Enum):
    """Outcome of a single fetch attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(slots=True)
class FetchAttempt:
    """One try of a fetch operation. Never persisted."""

    operation_id: str
    attempt_number: int
    started_at: datetime
    outcome: AttemptOutcome
    error_kind: FetchErrorKind | None = None


@dataclass(slots=True)
class RetryState:
    """Observability snapshot of an operation that has not yet succeeded."""

    retry_count: int
    last_attempt_at: datetime
    last_error_kind: FetchErrorKind | None = None


def _should_retry(exc: BaseException) -> bool:
    return is_retryable(classify_exception(exc))


class ResilientFetcher:
    """Execute fetch callables with bounded, jittered exponential backoff."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self._retry_state: dict[str, RetryState] = {}

    def get_retry_state(self, operation_id: str) -> RetryState | None:
        state = self._retry_state.get(operation_id)
        return replace(state) if state is not None else None

    def get_retry_count(self, operation_id: str) -> int:
        state = self._retry_state.get(operation_id)
        return state.retry_count if state is not None else 0

    def retry_states(self) -> dict[str, RetryState]:
        return {key: replace(value) for key, value in self._retry_state.items()}

    def clear(self) -> None:
        self._retry_state.clear()

    async def execute(
        self,
        operation_id: str,
        fetch_fn: FetchFn,
        options: RetryConfig | Mapping[str, Any] | None = None,
    ) -> Any:
        """Run ``fetch_fn`` until it succeeds, fails permanently or exhausts retries.

        Args:
            operation_id: Key used for retry-state bookkeeping and logging.
            fetch_fn: Zero-argument callable returning a result or awaitable.
            options: Optional overrides such as ``{"max_retries": 5}``.

        Returns:
            The first successful result.

        Raises:
            Exception: The most recent error once the operation cannot be retried.
        """

        config = self.config.with_overrides(options)
        result: Any = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(config.max_retries + 1),
            wait=self._wait_strategy(config),
            retry=retry_if_exception(_should_retry),
            before_sleep=self._before_sleep(operation_id, config),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await self._attempt(
                    operation_id,
                    attempt.retry_state.attempt_number,
                    fetch_fn,
                    config,
                )

        self._retry_state.pop(operation_id, None)
        return result

    async def _attempt(
        self,
        operation_id: str,
        attempt_number: int,
        fetch_fn: FetchFn,
        config: RetryConfig,
    ) -> Any:
        started_at = self._clock()
        state = RetryState(retry_count=attempt_number - 1, last_attempt_at=started_at)
        self._retry_state[operation_id] = state

        try:
            outcome = fetch_fn()
            if inspect.isawaitable(outcome):
                if config.attempt_timeout is not None:
                    outcome = await asyncio.wait_for(outcome, timeout=config.attempt_timeout)
                else:
                    outcome = await outcome
        except asyncio.TimeoutError as exc:
            self._finish(
                FetchAttempt(
                    operation_id,
                    attempt_number,
                    started_at,
                    AttemptOutcome.TIMEOUT,
                    FetchErrorKind.TIMEOUT,
                ),
                state,
            )
            raise FetchError(
                f"Attempt {attempt_number} for '{operation_id}' timed out "
                f"after {config.attempt_timeout}s",
                kind=FetchErrorKind.TIMEOUT,
            ) from exc
        except Exception as exc:
            kind = classify_exception(exc)
            self._finish(
                FetchAttempt(
                    operation_id,
                    attempt_number,
                    started_at,
                    AttemptOutcome.TIMEOUT if kind is FetchErrorKind.TIMEOUT else AttemptOutcome.FAILURE,
                    kind,
                ),
                state,
            )
            raise

        self._finish(
            FetchAttempt(operation_id, attempt_number, started_at, AttemptOutcome.SUCCESS),
            state,
        )
        return outcome

    def _finish(self, attempt: FetchAttempt, state: RetryState) -> None:
        state.last_error_kind = attempt.error_kind
        record_fetch_attempt(attempt.operation_id, attempt.outcome.value)
        if attempt.outcome is not AttemptOutcome.SUCCESS:
            logger.debug(
                "Fetch attempt %d for %s failed (%s)",
                attempt.attempt_number,
                attempt.operation_id,
                attempt.error_kind.value if attempt.error_kind else "unknown",
            )

    def _wait_strategy(self, config: RetryConfig) -> Callable[[RetryCallState], float]:
        def _wait(retry_state: RetryCallState) -> float:
            jitter_value = self._rng.uniform(0, config.jitter) if config.jitter > 0 else 0.0
            return config.compute_delay(retry_state.attempt_number, jitter_value)

        return _wait

    def _before_sleep(
        self, operation_id: str, config: RetryConfig
    ) -> Callable[[RetryCallState], None]:
        def _log(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            exc = outcome.exception() if outcome is not None else None
            kind = classify_exception(exc) if exc is not None else FetchErrorKind.UNKNOWN
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            record_fetch_retry(kind.value)
            logger.warning(
                "Retry %d/%d for %s after %.2fs (%s: %s)",
                retry_state.attempt_number,
                config.max_retries,
                operation_id,
                delay,
                kind.value,
                exc,
            )

        return _log
