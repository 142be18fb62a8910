"""Alert evaluation and retention."""
from .engine import AlertEngine
from .history import AlertHistory

__all__ = ["AlertEngine", "AlertHistory"]
