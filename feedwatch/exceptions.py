"""Custom exceptions for FeedWatch."""

from __future__ import annotations

from datetime import datetime
from enum import Enum


class FeedWatchError(Exception):
    """Base exception for all FeedWatch errors."""

    pass


class ConfigurationError(FeedWatchError):
    """Raised when configuration is invalid or missing."""

    pass


class UnknownDomainError(FeedWatchError):
    """Raised when a data domain outside the supported set is requested."""

    def __init__(self, domain: object) -> None:
        super().__init__(f"Unknown data domain: {domain!r}")
        self.domain = domain


class PayloadStructureError(FeedWatchError):
    """Raised when a fetched payload does not match its domain schema."""

    pass


class StateStoreError(FeedWatchError):
    """Raised when the persistent key/value store cannot be read or written."""

    pass


class FetchErrorKind(str, Enum):
    """Closed set of failure tags produced by the fetch layer."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    TEMPORARY = "temporary"
    SERVICE_UNAVAILABLE = "service_unavailable"
    RATE_LIMITED = "rate_limited"
    BAD_GATEWAY = "bad_gateway"
    GATEWAY_TIMEOUT = "gateway_timeout"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    MALFORMED_PAYLOAD = "malformed_payload"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


class FetchError(FeedWatchError):
    """Raised by fetch targets when an upstream request fails."""

    def __init__(
        self,
        message: str,
        *,
        kind: FetchErrorKind = FetchErrorKind.UNKNOWN,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class CircuitBreakerOpenError(FetchError):
    """Raised when an upstream's circuit breaker is open due to recent failures."""

    def __init__(self, upstream: str, reopen_at: datetime | None = None) -> None:
        message = (
            f"Circuit breaker open for upstream '{upstream}'. "
            "Requests are temporarily rejected."
        )
        if reopen_at is not None:
            message = f"{message} Retry after {reopen_at.isoformat()}"
        super().__init__(message, kind=FetchErrorKind.CIRCUIT_OPEN)
        self.upstream = upstream
        self.reopen_at = reopen_at
