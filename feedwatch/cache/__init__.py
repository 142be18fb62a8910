"""Fallback cache and placeholder payloads."""
from .fallback import FallbackCache
from .placeholders import FALLBACK_QUALITY_SCORE, build_fallback_payload

__all__ = ["FALLBACK_QUALITY_SCORE", "FallbackCache", "build_fallback_payload"]
