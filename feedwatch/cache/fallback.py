"""Bounded per-domain history of accepted payloads."""

from __future__ import annotations

from collections import deque
from datetime import timedelta
from typing import Any

from ..schemas.domains import DataDomain
from ..schemas.reports import CacheEntry
from ..utils.config import CacheSettings
from ..utils.logging import setup_logger
from ..utils.timeutils import Clock, utc_now

logger = setup_logger(__name__)


class FallbackCache:
    """
    Keep the last few accepted payloads per domain for fallback serving.

    Each domain holds at most ``capacity`` entries, oldest evicted first. The
    ``last_successful`` pointer always tracks the most recent ``put`` even
    after the history entry it refers to has been pruned.
    """

    def __init__(self, settings: CacheSettings | None = None, *, clock: Clock = utc_now) -> None:
        self.settings = settings or CacheSettings()
        self._clock = clock
        self._history: dict[str, deque[CacheEntry]] = {}
        self._last_successful: dict[str, CacheEntry] = {}

    @staticmethod
    def _key(domain: DataDomain | str) -> str:
        return DataDomain.coerce(domain).value

    def put(self, domain: DataDomain | str, payload: Any, quality_score: float) -> CacheEntry:
        """Store an accepted payload and make it the domain's last successful entry."""

        key = self._key(domain)
        entry = CacheEntry(
            domain=key,
            payload=payload,
            captured_at=self._clock(),
            quality_score=quality_score,
        )
        history = self._history.setdefault(key, deque(maxlen=self.settings.capacity))
        history.append(entry)
        self._last_successful[key] = entry
        logger.debug(
            "Cached %s payload (%d/%d)",
            key,
            len(history),
            self.settings.capacity,
            extra={"domain": key, "quality": f"{quality_score:.0f}"},
        )
        return entry

    def get_last_successful(self, domain: DataDomain | str) -> CacheEntry | None:
        return self._last_successful.get(self._key(domain))

    def is_usable(self, entry: CacheEntry | None, max_age: timedelta | None = None) -> bool:
        """Return True when ``entry`` is younger than ``max_age`` (default from settings)."""

        if entry is None:
            return False
        limit = max_age if max_age is not None else self.settings.max_age
        return self._clock() - entry.captured_at < limit

    def get_usable(self, domain: DataDomain | str, max_age: timedelta | None = None) -> CacheEntry | None:
        entry = self.get_last_successful(domain)
        return entry if self.is_usable(entry, max_age) else None

    def entries(self, domain: DataDomain | str) -> list[CacheEntry]:
        """History for ``domain``, oldest first."""

        return list(self._history.get(self._key(domain), ()))

    def prune_expired(self, max_age: timedelta | None = None) -> int:
        """Drop history entries older than ``max_age``. Returns how many were removed."""

        limit = max_age if max_age is not None else self.settings.max_age
        now = self._clock()
        removed = 0
        for key, history in self._history.items():
            kept = [entry for entry in history if now - entry.captured_at < limit]
            removed += len(history) - len(kept)
            self._history[key] = deque(kept, maxlen=self.settings.capacity)
        if removed:
            logger.debug("Pruned %d expired cache entries", removed)
        return removed

    def describe(self) -> dict[str, dict[str, Any]]:
        """Per-domain cache summary used by the reliability report."""

        now = self._clock()
        summary: dict[str, dict[str, Any]] = {}
        for domain in DataDomain:
            entry = self._last_successful.get(domain.value)
            summary[domain.value] = {
                "entries": len(self._history.get(domain.value, ())),
                "has_last_successful": entry is not None,
                "last_captured_at": entry.captured_at.isoformat() if entry else None,
                "age_seconds": (now - entry.captured_at).total_seconds() if entry else None,
                "quality_score": entry.quality_score if entry else None,
                "usable": self.is_usable(entry),
            }
        return summary

    def clear(self) -> None:
        self._history.clear()
        self._last_successful.clear()
