"""Error taxonomy for tracelog.

Configuration errors are fatal at construction time. Transport failures and
open circuits surface as ordinary exceptions to the caller. Context absence is
never an error and has no exception type.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from .types import JsonDict

if TYPE_CHECKING:
    from tracelog.loggers.base import Logger


class ErrorCode(StrEnum):
    """Machine-readable error codes."""
    CONFIG_INVALID = "CONFIG_INVALID"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TRANSPORT_REJECTED = "TRANSPORT_REJECTED"
    UNKNOWN = "UNKNOWN"


class TracelogError(Exception):
    """Base exception for all tracelog failures."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigurationError(TracelogError):
    """Settings that cannot produce a working logger."""

    code = ErrorCode.CONFIG_INVALID

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"Configuration error in field '{field}': {message}")


class LoggerNotInitializedError(TracelogError):
    """Global accessor used before init_logger()."""

    code = ErrorCode.NOT_INITIALIZED

    def __init__(self) -> None:
        super().__init__("Logger not initialized. Call init_logger() first.")


class CircuitOpenError(TracelogError):
    """Call rejected because the circuit breaker is open."""

    code = ErrorCode.CIRCUIT_OPEN

    def __init__(self, name: str, retry_after: float | None = None) -> None:
        self.name, self.retry_after = name, retry_after
        super().__init__(f"Circuit breaker '{name}' is open - service temporarily unavailable")


class TransportError(TracelogError):
    """Aggregation backend rejected or failed to receive a batch.

    Timeouts, network failures, 408, 429 and 5xx keep TRANSPORT_ERROR and are
    worth retrying; any other 4xx is a permanent TRANSPORT_REJECTED.
    """

    code = ErrorCode.TRANSPORT_ERROR

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        permanent = status_code is not None and 400 <= status_code < 500 and status_code not in (408, 429)
        super().__init__(message, code=ErrorCode.TRANSPORT_REJECTED if permanent else None)


class LoggableError(Exception):
    """Application error that knows how to log itself with a code and metadata.

    Example:
        >>> err = LoggableError("quota exceeded", "QUOTA", {"limit": 10})
        >>> err.log()          # error level, through the global logger
        >>> err.log("warn", logger=my_logger)
    """

    def __init__(self, message: str, code: str, metadata: JsonDict | None = None) -> None:
        super().__init__(message)
        self.message, self.code, self.metadata = message, code, metadata or {}

    def log(self, level: Literal["error", "warn", "info"] = "error", *, logger: Logger | None = None) -> None:
        if logger is None:
            from tracelog.loggers.factory import get_logger
            logger = get_logger()
        data = {"code": self.code, **self.metadata}
        match level:
            case "error": logger.error(self.message, data, self)
            case "warn": logger.warn(self.message, data)
            case _: logger.info(self.message, data)
