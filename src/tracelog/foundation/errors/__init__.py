"""Error types and JSON aliases for tracelog."""

from .errors import (
    CircuitOpenError,
    ConfigurationError,
    ErrorCode,
    LoggableError,
    LoggerNotInitializedError,
    TracelogError,
    TransportError,
)
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    "ErrorCode", "TracelogError", "ConfigurationError", "LoggerNotInitializedError",
    "CircuitOpenError", "TransportError", "LoggableError",
    "JsonPrimitive", "JsonValue", "JsonDict", "JsonMapping",
]
