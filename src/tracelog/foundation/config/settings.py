"""Environment-based configuration using pydantic-settings.

One settings object describes every logger variant; each backend has its own
section. Values load from environment variables and an optional .env file.

Example:
    >>> from tracelog.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.level
    'info'
    >>> settings.loki.push_url
    'http://localhost:3100/loki/api/v1/push'

    # Or with environment variables:
    # TRACELOG_SERVICE_NAME=billing
    # TRACELOG_LEVEL=debug
    # TRACELOG_LOKI_ENABLED=true
    # TRACELOG_LOKI_LABELS=team=payments,region=eu
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

import orjson
from pydantic import (
    ByteSize,
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

LevelName = Literal["error", "warn", "info", "http", "debug"]
LoggerTypeName = Literal["console", "file", "memory", "central"]


class ConsoleSettings(BaseSettings):
    """Console output configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACELOG_CONSOLE_", extra="ignore")

    enabled: bool = True
    colors: bool | None = Field(default=None, description="None = auto-detect TTY")
    include_timestamp: bool = True
    include_meta: bool = True


class FileSettings(BaseSettings):
    """Rotating file output configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACELOG_FILE_", extra="ignore")

    enabled: bool = False
    path: str = "./logs"
    max_bytes: ByteSize | None = Field(default=None, description="Rotate by size instead of daily")
    max_files: PositiveInt = Field(default=14, description="Rotated files to keep")
    include_console: bool = False


class LokiSettings(BaseSettings):
    """Loki aggregation backend configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACELOG_LOKI_", extra="ignore")

    enabled: bool = False
    host: str = "localhost"
    port: Annotated[int, Field(ge=1, le=65535)] = 3100
    protocol: Literal["http", "https"] = "http"
    labels: Annotated[dict[str, str], NoDecode] = Field(default_factory=dict)
    username: str | None = None
    password: SecretStr | None = None
    batch_size: PositiveInt = 100
    interval: PositiveFloat = Field(default=5.0, description="Flush interval in seconds")
    timeout: PositiveFloat = Field(default=10.0, description="Push timeout in seconds")
    max_buffer: PositiveInt = Field(default=10_000, description="Records held while the backend is down")

    @field_validator("labels", mode="before")
    @classmethod
    def _parse_labels(cls, v: object) -> object:
        """Accept a JSON object or comma-separated key=value pairs."""
        if not isinstance(v, str):
            return v
        if not v.strip():
            return {}
        try:
            return orjson.loads(v)
        except orjson.JSONDecodeError:
            pairs = (p.split("=", 1) for p in v.split(",") if "=" in p)
            return {k.strip(): val.strip() for k, val in pairs if k.strip() and val.strip()}

    @computed_field
    @property
    def push_url(self) -> str:
        """Loki push API endpoint."""
        return f"{self.protocol}://{self.host}:{self.port}/loki/api/v1/push"


class RetrySettings(BaseSettings):
    """Retry configuration for backend pushes."""

    model_config = SettingsConfigDict(env_prefix="TRACELOG_RETRY_", extra="ignore")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    initial_delay: PositiveFloat = Field(default=0.1, description="First delay in seconds")
    max_delay: PositiveFloat = Field(default=10.0, description="Delay cap in seconds")
    multiplier: Annotated[float, Field(ge=1.0)] = 2.0


class BreakerSettings(BaseSettings):
    """Circuit breaker configuration for backend pushes."""

    model_config = SettingsConfigDict(env_prefix="TRACELOG_BREAKER_", extra="ignore")

    failure_threshold: PositiveInt = 5
    reset_timeout: PositiveFloat = Field(default=60.0, description="Cooldown in seconds")


class TracelogSettings(BaseSettings):
    """Root settings for tracelog.

    Example environment variables:
        TRACELOG_SERVICE_NAME=api
        TRACELOG_ENVIRONMENT=production
        TRACELOG_LOGGER_TYPE=central
        TRACELOG_FILE_ENABLED=true
        TRACELOG_LOKI__BATCH_SIZE=50
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACELOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    service_name: str = "default-service"
    environment: Literal["development", "staging", "production"] = "development"
    level: LevelName = "info"
    logger_type: LoggerTypeName = "console"
    memory_max_size: PositiveInt = 10_000

    console: ConsoleSettings = Field(default_factory=ConsoleSettings)
    file: FileSettings = Field(default_factory=FileSettings)
    loki: LokiSettings = Field(default_factory=LokiSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    breaker: BreakerSettings = Field(default_factory=BreakerSettings)

    @field_validator("environment", "logger_type", mode="before")
    @classmethod
    def _lower(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: object) -> object:
        """Lowercase and accept 'warning' as an alias of 'warn'."""
        if isinstance(v, str):
            v = v.lower()
            return "warn" if v == "warning" else v
        return v

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> TracelogSettings:
    """Get the process-wide settings instance (cached)."""
    return TracelogSettings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
