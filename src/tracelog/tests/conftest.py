"""Shared fixtures: isolated environment, fresh metrics and no global logger per test."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from tracelog.foundation.config import clear_settings_cache
from tracelog.loggers import InMemoryLogger, factory
from tracelog.runtime.metrics import reset_metrics


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Strip TRACELOG_* variables, zero the metrics and uninstall the global logger."""
    for key in [k for k in os.environ if k.startswith("TRACELOG_")]:
        monkeypatch.delenv(key)
    reset_metrics()
    clear_settings_cache()
    factory._global = None
    yield
    factory._global = None
    clear_settings_cache()


@pytest.fixture
def memory_logger() -> InMemoryLogger:
    """Debug-level in-memory logger."""
    return InMemoryLogger("test-service", "debug")
