"""Testing utilities for FeedWatch."""

from .chaos import (
    ChaosScenario,
    FlakyFetch,
    NetworkFailure,
    ScriptedFetch,
    UpstreamOutage,
    intermittent_upstream,
    network_partition,
)
from .fixtures import (
    DEFAULT_NOW,
    FrozenClock,
    RecordingSleep,
    camera_payload,
    datagov_metric_response,
    datagov_traffic_response,
    no_sleep,
    weather_payload,
)

__all__ = [
    "DEFAULT_NOW",
    "ChaosScenario",
    "FlakyFetch",
    "FrozenClock",
    "NetworkFailure",
    "RecordingSleep",
    "ScriptedFetch",
    "UpstreamOutage",
    "camera_payload",
    "datagov_metric_response",
    "datagov_traffic_response",
    "intermittent_upstream",
    "network_partition",
    "no_sleep",
    "weather_payload",
]
