"""Configuration management using pydantic-settings.

Provides environment-based configuration with type safety and validation.
"""

from .settings import (
    BreakerSettings,
    ConsoleSettings,
    FileSettings,
    LokiSettings,
    RetrySettings,
    TracelogSettings,
    clear_settings_cache,
    get_settings,
)
from .validation import ValidationResult, require_valid_settings, validate_settings

__all__ = [
    "BreakerSettings",
    "ConsoleSettings",
    "FileSettings",
    "LokiSettings",
    "RetrySettings",
    "TracelogSettings",
    "ValidationResult",
    "clear_settings_cache",
    "get_settings",
    "require_valid_settings",
    "validate_settings",
]
