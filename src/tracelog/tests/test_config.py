"""Tests for settings, cross-field validation, the logger factory and the global accessor."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from tracelog.foundation.config import (
    FileSettings,
    LokiSettings,
    TracelogSettings,
    clear_settings_cache,
    get_settings,
    require_valid_settings,
    validate_settings,
)
from tracelog.foundation.errors import ConfigurationError, ErrorCode, LoggerNotInitializedError
from tracelog.loggers import (
    CentralLogger,
    ConsoleLogger,
    FileLogger,
    InMemoryLogger,
    Level,
    create_logger,
    get_logger,
    init_logger,
    is_initialized,
    shutdown_logger,
)
from tracelog.loggers.factory import LoggerKind, parse_kind


# ═════════════════════════════════════════════════════════════════════════════
# Settings
# ═════════════════════════════════════════════════════════════════════════════


def test_defaults() -> None:
    settings = TracelogSettings()
    assert (settings.service_name, settings.environment, settings.level, settings.logger_type) == (
        "default-service", "development", "info", "console")
    assert settings.loki.push_url == "http://localhost:3100/loki/api/v1/push"
    assert not settings.is_production
    assert settings.file.enabled is False


def test_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACELOG_SERVICE_NAME", "billing")
    monkeypatch.setenv("TRACELOG_LEVEL", "WARNING")
    monkeypatch.setenv("TRACELOG_ENVIRONMENT", "Production")
    monkeypatch.setenv("TRACELOG_LOKI_ENABLED", "true")
    monkeypatch.setenv("TRACELOG_LOKI_PORT", "3200")
    monkeypatch.setenv("TRACELOG_LOKI_PROTOCOL", "https")
    settings = TracelogSettings()
    assert (settings.service_name, settings.level, settings.environment) == ("billing", "warn", "production")
    assert settings.is_production
    assert settings.loki.enabled and settings.loki.push_url == "https://localhost:3200/loki/api/v1/push"


@pytest.mark.parametrize(("raw", "labels"), [
    ("team=payments, region=eu", {"team": "payments", "region": "eu"}),
    ('{"team": "core"}', {"team": "core"}),
    ("", {}),
    ("broken,team=ok", {"team": "ok"}),
])
def test_loki_labels_from_environment(monkeypatch: pytest.MonkeyPatch, raw: str, labels: dict[str, str]) -> None:
    monkeypatch.setenv("TRACELOG_LOKI_LABELS", raw)
    assert LokiSettings().labels == labels


def test_file_size_accepts_units() -> None:
    assert FileSettings(max_bytes="10MiB").max_bytes == 10 * 1024 * 1024


@pytest.mark.parametrize("kwargs", [
    {"level": "verbose"},
    {"environment": "qa"},
    {"logger_type": "syslog"},
    {"memory_max_size": 0},
])
def test_invalid_values_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        TracelogSettings(**kwargs)  # type: ignore[arg-type]


def test_invalid_section_values_rejected() -> None:
    with pytest.raises(ValidationError):
        LokiSettings(port=70000)
    with pytest.raises(ValidationError):
        LokiSettings(batch_size=0)


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("TRACELOG_SERVICE_NAME", "changed")
    assert get_settings() is first
    clear_settings_cache()
    assert get_settings().service_name == "changed"


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════


def test_valid_defaults() -> None:
    result = validate_settings(TracelogSettings())
    assert result.valid and result.warnings == []


def test_empty_service_name() -> None:
    result = validate_settings(TracelogSettings(service_name="  "))
    assert not result.valid
    assert result.errors[0].field == "service_name"


def test_loki_auth_requires_both_parts() -> None:
    result = validate_settings(TracelogSettings(loki=LokiSettings(enabled=True, username="u")))
    assert [e.field for e in result.errors] == ["loki.username"]


def test_loki_buffer_smaller_than_batch() -> None:
    result = validate_settings(TracelogSettings(loki=LokiSettings(enabled=True, batch_size=500, max_buffer=100)))
    assert [e.field for e in result.errors] == ["loki.max_buffer"]


def test_warnings_do_not_block() -> None:
    settings = TracelogSettings(environment="production", level="debug",
                                loki=LokiSettings(enabled=True, interval=0.5, batch_size=2000, max_buffer=5000))
    result = validate_settings(settings)
    assert result.valid
    assert len(result.warnings) == 3


def test_require_valid_settings_raises_first_error() -> None:
    with pytest.raises(ConfigurationError) as info:
        require_valid_settings(TracelogSettings(service_name=""))
    assert str(info.value) == "Configuration error in field 'service_name': Service name cannot be empty"
    assert info.value.code is ErrorCode.CONFIG_INVALID


# ═════════════════════════════════════════════════════════════════════════════
# Factory & Global Accessor
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(("kind", "cls"), [
    ("console", ConsoleLogger),
    ("memory", InMemoryLogger),
    (LoggerKind.CENTRAL, CentralLogger),
])
def test_create_logger_variants(kind: str, cls: type) -> None:
    log = create_logger(TracelogSettings(service_name="api", level="debug"), kind=kind)
    assert isinstance(log, cls)
    assert (log.service_name, log.level) == ("api", Level.DEBUG)


@pytest.mark.asyncio
async def test_create_file_logger_from_settings_type(tmp_path: Path) -> None:
    log = create_logger(TracelogSettings(logger_type="file", file=FileSettings(path=str(tmp_path))))
    assert isinstance(log, FileLogger)
    await log.close()


def test_create_logger_uses_cached_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACELOG_LOGGER_TYPE", "memory")
    monkeypatch.setenv("TRACELOG_MEMORY_MAX_SIZE", "5")
    log = create_logger()
    assert isinstance(log, InMemoryLogger)
    assert log.store.max_size == 5


def test_create_logger_rejects_invalid_settings() -> None:
    with pytest.raises(ConfigurationError):
        create_logger(TracelogSettings(service_name=""), kind="memory")


def test_unknown_kind() -> None:
    assert parse_kind(" Memory ") is LoggerKind.MEMORY
    with pytest.raises(ConfigurationError, match="Unknown logger type 'syslog'"):
        parse_kind("syslog")


def test_get_logger_before_init() -> None:
    assert not is_initialized()
    with pytest.raises(LoggerNotInitializedError, match="Call init_logger"):
        get_logger()


@pytest.mark.asyncio
async def test_global_lifecycle() -> None:
    log = init_logger(TracelogSettings(service_name="global"), kind="memory")
    assert is_initialized() and get_logger() is log
    replacement = init_logger(logger=InMemoryLogger("other"))
    assert get_logger() is replacement
    await shutdown_logger()
    assert not is_initialized()
    await shutdown_logger()
