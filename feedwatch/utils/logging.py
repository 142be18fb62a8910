"""Structured logging for FeedWatch.

Every record carries the same set of context fields (cycle, domain, source,
status, ...) so pipeline logs can be grepped or parsed line by line. Fields
not supplied by the caller are rendered as ``-``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from threading import Lock
from typing import Any, Final

from ..monitoring.tracing import get_cycle_id
from .config import get_settings

CONTEXT_FIELDS: Final[tuple[str, ...]] = (
    "cycle_id",
    "domain",
    "source_id",
    "operation_id",
    "status",
    "duration_ms",
    "quality",
)

DEFAULT_CONTEXT: Final[dict[str, str]] = {field: "-" for field in CONTEXT_FIELDS}

LOG_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)s | %(name)s | "
    + " | ".join(f"{field}=%({field})s" for field in CONTEXT_FIELDS)
    + " | %(message)s"
)

_configured = False
_lock: Final = Lock()


class ContextualFormatter(logging.Formatter):
    """Formatter that fills in context fields a record does not carry."""

    def __init__(self, fmt: str, defaults: Mapping[str, str] | None = None) -> None:
        super().__init__(fmt)
        self._defaults = dict(defaults or {})

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        for key, value in self._defaults.items():
            record.__dict__.setdefault(key, value)
        return super().format(record)


def configure_logging(level: str | None = None, *, force: bool = False) -> None:
    """Attach the structured formatter to the root logger.

    Runs once per process unless ``force`` is set. Existing root handlers
    (pytest's capture handler, for one) keep their stream and only get the
    formatter swapped.
    """

    global _configured
    with _lock:
        if _configured and not force:
            return

        level_name = (level or get_settings().log_level).upper()
        root = logging.getLogger()
        root.setLevel(getattr(logging, level_name, logging.INFO))

        formatter = ContextualFormatter(LOG_FORMAT, DEFAULT_CONTEXT)
        if not root.handlers:
            root.addHandler(logging.StreamHandler(sys.stdout))
        for handler in root.handlers:
            handler.setFormatter(formatter)

        _configured = True


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Merge adapter defaults, the active cycle id and per-call extras."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:  # type: ignore[override]
        merged = {**(self.extra or {})}
        cycle_id = get_cycle_id()
        if cycle_id is not None:
            merged["cycle_id"] = cycle_id
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = merged
        return msg, kwargs


def setup_logger(
    name: str,
    *,
    level: str | None = None,
    context: Mapping[str, Any] | None = None,
) -> StructuredLoggerAdapter:
    """Return a structured logger for ``name``.

    Args:
        name: Logger name, normally ``__name__``.
        level: Optional level for this logger only.
        context: Context fields attached to every record from this logger.
    """

    configure_logging()
    logger = logging.getLogger(name)
    logger.setLevel(level.upper() if level else logging.NOTSET)
    return StructuredLoggerAdapter(logger, {**DEFAULT_CONTEXT, **(context or {})})


def log_data_load(
    logger: logging.Logger | logging.LoggerAdapter,
    domain: str,
    source: str,
    duration_ms: int,
    quality_score: float,
    **extra_context: Any,
) -> None:
    """
    Log the outcome of one data load.

    Live loads log at INFO; cache and generated fallbacks log at WARNING with
    the fallback reason appended to the message.

    Args:
        logger: Logger instance
        domain: Data domain that was loaded
        source: Provenance tag (live, cache_fallback, fallback_generated)
        duration_ms: Load duration in milliseconds
        quality_score: Quality score attached to the served payload
        **extra_context: Additional context fields
    """
    reason = extra_context.pop("fallback_reason", None)
    context: dict[str, Any] = {**extra_context}
    context.update(
        domain=domain,
        status=source,
        duration_ms=duration_ms,
        quality=f"{quality_score:.0f}",
    )

    message = f"Data load for {domain} served from {source}"
    if reason:
        message += f" | reason={reason}"

    level = logging.INFO if source == "live" else logging.WARNING
    logger.log(level, message, extra=context)
