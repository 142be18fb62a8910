"""Source health tracking."""
from .models import Reading, ReliabilityRecord, SourceState, SourceStatus
from .tracker import SourceHealthTracker

__all__ = [
    "Reading",
    "ReliabilityRecord",
    "SourceHealthTracker",
    "SourceState",
    "SourceStatus",
]
