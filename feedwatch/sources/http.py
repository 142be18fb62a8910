"""httpx-based JSON fetch target."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx

from ..exceptions import FetchError, FetchErrorKind
from ..utils.logging import setup_logger
from ..utils.retry import classify_exception, kind_for_status
from .circuit_breaker import CircuitBreakerRegistry

logger = setup_logger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json", "User-Agent": "feedwatch/0.1"}


class HttpJsonSource:
    """
    Fetch one JSON document over HTTP GET.

    Transport failures and error statuses surface as :class:`FetchError`
    tagged with a :class:`FetchErrorKind`, so the retry layer never has to
    inspect messages. An optional ``parser`` runs on the decoded body before
    the fetch counts as a circuit success; a :class:`FetchError` it raises
    counts as a failure.
    """

    def __init__(
        self,
        name: str,
        url: str,
        *,
        timeout: float = 10.0,
        params: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreakerRegistry | None = None,
        parser: Callable[[Any], Any] | None = None,
    ) -> None:
        self.name = name
        self.url = url
        self.timeout = timeout
        self.params = dict(params or {})
        self._client = client
        self._circuit_breaker = circuit_breaker
        self._parser = parser

    async def __call__(self) -> Any:
        return await self.fetch()

    async def fetch(self) -> Any:
        if self._circuit_breaker is not None:
            self._circuit_breaker.ensure_available(self.name)
        try:
            payload = await self._request()
            if self._parser is not None:
                payload = self._parser(payload)
        except FetchError:
            if self._circuit_breaker is not None:
                self._circuit_breaker.record_failure(self.name)
            raise
        if self._circuit_breaker is not None:
            self._circuit_breaker.record_success(self.name)
        return payload

    async def _request(self) -> Any:
        try:
            if self._client is not None:
                response = await self._client.get(
                    self.url, params=self.params, headers=DEFAULT_HEADERS, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout, headers=DEFAULT_HEADERS) as client:
                    response = await client.get(self.url, params=self.params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise FetchError(
                f"{self.name}: HTTP {status_code} from {self.url}",
                kind=kind_for_status(status_code),
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            kind = classify_exception(exc)
            raise FetchError(f"{self.name}: {kind.value} error calling {self.url}: {exc}", kind=kind) from exc

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FetchError(
                f"{self.name}: response from {self.url} is not valid JSON",
                kind=FetchErrorKind.MALFORMED_PAYLOAD,
                status_code=response.status_code,
            ) from exc
