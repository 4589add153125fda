"""Cross-field validation for TracelogSettings.

Field-level constraints live on the pydantic models. The checks here depend on
which backends are enabled, so they run when a logger is constructed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tracelog.foundation.errors import ConfigurationError

from .settings import TracelogSettings

logger = logging.getLogger("tracelog.config")

_MAX_SERVICE_NAME = 255


@dataclass(slots=True)
class ValidationResult:
    """Outcome of validate_settings: blocking errors plus advisory warnings."""

    errors: list[ConfigurationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_settings(settings: TracelogSettings) -> ValidationResult:
    """Check settings for combinations that cannot produce a working logger."""
    result = ValidationResult()
    err, warn = result.errors.append, result.warnings.append

    name = settings.service_name.strip()
    if not name:
        err(ConfigurationError("service_name", "Service name cannot be empty"))
    elif len(name) > _MAX_SERVICE_NAME:
        err(ConfigurationError("service_name", f"Service name must be less than {_MAX_SERVICE_NAME} characters"))

    if settings.is_production and settings.level == "debug":
        warn("Debug level in production may emit sensitive or excessive output")

    if settings.file.enabled or settings.logger_type == "file":
        if not settings.file.path.strip():
            err(ConfigurationError("file.path", "File log path cannot be empty when file output is enabled"))
        if settings.file.max_files > 100:
            warn("max_files set to more than 100, which may impact performance")

    if settings.loki.enabled:
        loki = settings.loki
        if not loki.host.strip():
            err(ConfigurationError("loki.host", "Loki host cannot be empty"))
        if bool(loki.username) != bool(loki.password):
            err(ConfigurationError("loki.username", "Loki basic auth requires both username and password"))
        if loki.batch_size > 1000:
            warn("Loki batch_size above 1000 may exceed push size limits")
        if loki.interval < 1.0:
            warn("Loki interval below 1s may cause excessive network traffic")
        if loki.max_buffer < loki.batch_size:
            err(ConfigurationError("loki.max_buffer", "max_buffer must be at least batch_size"))

    return result


def require_valid_settings(settings: TracelogSettings) -> TracelogSettings:
    """Raise the first ConfigurationError; log warnings on the internal logger."""
    result = validate_settings(settings)
    for message in result.warnings:
        logger.warning(message)
    if result.errors:
        raise result.errors[0]
    return settings
