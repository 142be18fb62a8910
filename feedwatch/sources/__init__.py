"""Fetch targets for upstream data providers."""
from .circuit_breaker import CircuitBreakerRegistry
from .datagov import CameraSource, WeatherSource, parse_traffic_images, parse_weather_metric
from .http import HttpJsonSource

__all__ = [
    "CameraSource",
    "CircuitBreakerRegistry",
    "HttpJsonSource",
    "WeatherSource",
    "parse_traffic_images",
    "parse_weather_metric",
]
