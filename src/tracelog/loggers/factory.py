"""Logger construction from settings, plus the process-wide accessor.

Application code should receive a logger explicitly. The global accessor
exists for the edges that cannot (module-level helpers, error classes).

Example:
    >>> log = create_logger(TracelogSettings(logger_type="memory"))
    >>> init_logger(kind="console")
    >>> get_logger().info("started")
    >>> await shutdown_logger()
"""

from __future__ import annotations

import logging
from enum import StrEnum

from tracelog.foundation.config import TracelogSettings, get_settings, require_valid_settings
from tracelog.foundation.errors import ConfigurationError, LoggerNotInitializedError

from .base import BaseLogger
from .central import CentralLogger
from .console import ConsoleLogger
from .file import FileLogger
from .memory import InMemoryLogger

_log = logging.getLogger("tracelog")


class LoggerKind(StrEnum):
    """Available logger variants."""
    CONSOLE = "console"
    FILE = "file"
    MEMORY = "memory"
    CENTRAL = "central"


_VARIANTS: dict[LoggerKind, type[ConsoleLogger | FileLogger | InMemoryLogger | CentralLogger]] = {
    LoggerKind.CONSOLE: ConsoleLogger,
    LoggerKind.FILE: FileLogger,
    LoggerKind.MEMORY: InMemoryLogger,
    LoggerKind.CENTRAL: CentralLogger,
}


def parse_kind(value: LoggerKind | str) -> LoggerKind:
    try:
        return LoggerKind(str(value).strip().lower())
    except ValueError:
        options = ", ".join(k.value for k in LoggerKind)
        raise ConfigurationError("logger_type", f"Unknown logger type '{value}'. Use one of: {options}") from None


def create_logger(settings: TracelogSettings | None = None, *, kind: LoggerKind | str | None = None) -> BaseLogger:
    """Build the variant selected by kind (or settings.logger_type).

    Raises ConfigurationError for invalid settings or an unknown variant.
    """
    settings = require_valid_settings(settings or get_settings())
    return _VARIANTS[parse_kind(kind or settings.logger_type)].from_settings(settings)


# ─────────────────────────────────────────────────────────────────────────────
# Global Accessor
# ─────────────────────────────────────────────────────────────────────────────

_global: BaseLogger | None = None


def init_logger(
    settings: TracelogSettings | None = None,
    *,
    kind: LoggerKind | str | None = None,
    logger: BaseLogger | None = None,
) -> BaseLogger:
    """Install the process-wide logger, built from settings unless one is given."""
    global _global
    if _global is not None:
        _log.warning("Replacing initialized %r; the previous logger is not closed", _global)
    _global = logger or create_logger(settings, kind=kind)
    return _global


def get_logger() -> BaseLogger:
    """The process-wide logger. Raises LoggerNotInitializedError before init_logger()."""
    if _global is None:
        raise LoggerNotInitializedError()
    return _global


def is_initialized() -> bool:
    return _global is not None


async def shutdown_logger() -> None:
    """Uninstall the process-wide logger and close it. Close failures are re-raised."""
    global _global
    if (logger := _global) is None:
        return
    _global = None
    await logger.close()
