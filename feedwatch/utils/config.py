"""Configuration loader and settings helpers for FeedWatch."""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic import (
    ValidationError as PydanticValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError
from ..schemas.domains import DataDomain
from .retry import RetryConfig

logger = logging.getLogger(__name__)

DATA_GOV_BASE_URL = "https://api.data.gov.sg/v1"


def load_yaml_config(config_path: str | Path) -> dict[str, Any]:
    """Read one YAML template; an empty file yields ``{}``.

    Raises:
        ConfigurationError: If the file is missing, unparsable or not a mapping
    """
    path = Path(config_path)
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return document


class DatabasePoolSettings(BaseModel):
    """Connection pooling configuration for the SQLAlchemy engine."""

    model_config = ConfigDict(extra="forbid")

    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    recycle_seconds: int = Field(default=1800, ge=0)
    pre_ping: bool = True


class QualitySettings(BaseModel):
    """Per-domain payload quality heuristics."""

    model_config = ConfigDict(extra="forbid")

    freshness_minutes: float = Field(default=15.0, gt=0)
    weather_min_stations: int = Field(default=3, ge=0)
    anchor_stations: list[str] = Field(default_factory=lambda: ["S121", "S116", "S118"])
    primary_metrics: list[str] = Field(default_factory=lambda: ["temperature", "humidity"])
    anchor_metric: str = "temperature"
    weather_acceptance: float = Field(default=50.0, ge=0, le=100)
    camera_min_captures: int = Field(default=2, ge=0)
    capture_completeness: float = Field(default=0.8, ge=0, le=1)
    camera_completeness_max_deduction: float = Field(default=40.0, ge=0, le=100)
    camera_acceptance: float = Field(default=40.0, ge=0, le=100)

    @property
    def freshness(self) -> timedelta:
        return timedelta(minutes=self.freshness_minutes)


class CacheSettings(BaseModel):
    """Fallback cache sizing and usability window."""

    model_config = ConfigDict(extra="forbid")

    capacity: int = Field(default=5, ge=1)
    max_age_seconds: float = Field(default=600.0, gt=0)

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.max_age_seconds)


class TrackingSettings(BaseModel):
    """Rolling-window sizing and recovery rules for source tracking."""

    model_config = ConfigDict(extra="forbid")

    window_capacity: int = Field(default=100, ge=1)
    recovery_successes: int = Field(default=2, ge=1)


class AlertThresholds(BaseModel):
    """Limits that turn source state into alerts."""

    model_config = ConfigDict(extra="forbid")

    reliability: float = Field(default=0.8, ge=0, le=1)
    consecutive_failures: int = Field(default=3, ge=1)
    data_age_seconds: float = Field(default=3600.0, gt=0)

    @property
    def data_age(self) -> timedelta:
        return timedelta(seconds=self.data_age_seconds)


class MonitoringSettings(BaseModel):
    """Cadence, persistence and retention of the monitoring loop."""

    model_config = ConfigDict(extra="forbid")

    interval_seconds: float = Field(default=300.0, gt=0)
    auto_start: bool = True
    persist_probability: float = Field(default=0.1, ge=0, le=1)
    metrics_retention_hours: float = Field(default=168.0, gt=0)
    alert_retention_hours: float = Field(default=24.0, gt=0)
    error_log_size: int = Field(default=100, ge=1)
    error_retention_hours: float = Field(default=24.0, gt=0)


class CircuitBreakerSettings(BaseModel):
    """Per-upstream circuit breaker thresholds."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    failure_threshold: int = Field(default=5, ge=1)
    window_seconds: float = Field(default=300.0, gt=0)
    reset_seconds: float = Field(default=60.0, gt=0)


class ReliabilitySettings(BaseModel):
    """All tunables of the reliability pipeline in one place."""

    model_config = ConfigDict(extra="forbid")

    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    alerts: AlertThresholds = Field(default_factory=AlertThresholds)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)


class UpstreamConfig(BaseModel):
    """One upstream data provider polled by the monitoring cycle."""

    model_config = ConfigDict(extra="forbid")

    name: str
    domain: DataDomain
    endpoints: dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(default=10.0, gt=0)
    data_types: list[str] = Field(default_factory=list)
    enabled: bool = True
    retry: dict[str, Any] | None = None

    @field_validator("domain", mode="before")
    @classmethod
    def _coerce_domain(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @field_validator("retry")
    @classmethod
    def _validate_retry(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is None:
            return value
        RetryConfig.from_mapping(value)
        return value

    @model_validator(mode="after")
    def _require_endpoints(self) -> "UpstreamConfig":
        if not self.endpoints:
            raise ValueError(f"upstream '{self.name}' must declare at least one endpoint")
        if not self.data_types:
            if self.domain is DataDomain.WEATHER:
                self.data_types = list(self.endpoints)
            else:
                self.data_types = ["image"]
        return self


def _default_upstreams() -> list[UpstreamConfig]:
    return [
        UpstreamConfig(
            name="weather",
            domain=DataDomain.WEATHER,
            endpoints={
                "temperature": f"{DATA_GOV_BASE_URL}/environment/air-temperature",
                "humidity": f"{DATA_GOV_BASE_URL}/environment/relative-humidity",
                "rainfall": f"{DATA_GOV_BASE_URL}/environment/rainfall",
                "wind_speed": f"{DATA_GOV_BASE_URL}/environment/wind-speed",
                "wind_direction": f"{DATA_GOV_BASE_URL}/environment/wind-direction",
            },
            timeout=10.0,
        ),
        UpstreamConfig(
            name="traffic_cameras",
            domain=DataDomain.CAMERA,
            endpoints={"image": f"{DATA_GOV_BASE_URL}/transport/traffic-images"},
            timeout=15.0,
        ),
    ]


class ServiceConfiguration(BaseModel):
    """Validated runtime configuration merged from base and profile templates."""

    version: int = Field(default=1, ge=1)
    environment: str = "development"
    upstreams: list[UpstreamConfig] = Field(default_factory=_default_upstreams)
    reliability: ReliabilitySettings = Field(default_factory=ReliabilitySettings)

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        return value.lower()

    @field_validator("upstreams")
    @classmethod
    def _unique_names(cls, value: list[UpstreamConfig]) -> list[UpstreamConfig]:
        names = [upstream.name for upstream in value]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate upstream names: {duplicates}")
        return value


class GlobalSettings(BaseSettings):
    """Global application settings sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDWATCH_",
        env_nested_delimiter="__",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    config_profile: str | None = None
    log_level: str = "INFO"
    database_url: str | None = None
    database: DatabasePoolSettings = DatabasePoolSettings()
    config_dir: Path = Path("config")
    state_namespace: str = "station_monitoring_"
    api_title: str = "FeedWatch API"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("config_dir")
    @classmethod
    def _expand_config_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("config_profile")
    @classmethod
    def _profile_name(cls, value: str | None) -> str | None:
        """Profiles select ``settings.<profile>.yaml``; blank names are rejected."""

        if value is None:
            return None
        if not value.strip():
            raise ValueError("config_profile must be a non-empty string if provided")
        return value.strip().lower()


def merge_templates(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold template layers left to right; nested mappings merge, other values replace."""

    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = merge_templates(current, value)
            else:
                merged[key] = value
    return merged


def _optional_template(path: Path) -> dict[str, Any]:
    if not path.is_file():
        logger.debug("No configuration template at '%s'", path)
        return {}
    return load_yaml_config(path)


@lru_cache(maxsize=8)
def _service_configuration(config_dir: Path, profile: str) -> ServiceConfiguration:
    merged = merge_templates(
        {"environment": profile},
        _optional_template(config_dir / "settings.base.yaml"),
        _optional_template(config_dir / f"settings.{profile}.yaml"),
    )
    try:
        return ServiceConfiguration.model_validate(merged)
    except PydanticValidationError as exc:
        raise ConfigurationError(
            f"Invalid configuration template for profile '{profile}': {exc}"
        ) from exc


def get_service_configuration(
    settings: GlobalSettings | None = None,
    *,
    reload: bool = False,
) -> ServiceConfiguration:
    """Validated base template merged with the active profile's overrides.

    The profile is ``config_profile`` when set, otherwise ``environment``.
    Results are cached per directory and profile until ``reload``.
    """

    settings = settings or get_settings()
    if reload:
        _service_configuration.cache_clear()
    profile = (settings.config_profile or settings.environment).lower()
    return _service_configuration(settings.config_dir, profile)


@lru_cache(maxsize=1)
def _settings() -> GlobalSettings:
    return GlobalSettings()


def get_settings(*, reload: bool = False) -> GlobalSettings:
    """Process-wide settings from ``FEEDWATCH_*`` variables and ``.env`` files."""

    if reload:
        _settings.cache_clear()
    return _settings()
