"""tracelog - structured logging with request-scoped context.

Quick Start:
    >>> from tracelog import create_logger, TracelogSettings, establish
    >>>
    >>> log = create_logger(TracelogSettings(service_name="billing", level="debug"))
    >>> log.info("service started", {"port": 8080})
    >>>
    >>> async def handle(order_id: int) -> None:
    ...     log.info("charging", {"order_id": order_id})   # carries trace_id, user_id
    >>> await establish({"user_id": "u-17"}, handle, 42)
    >>>
    >>> await log.close()

Loggers:
    ConsoleLogger, FileLogger, InMemoryLogger, CentralLogger (console + files + Loki)

Context:
    establish, context_scope, current_context, get_context_value, set_context_value, add_metadata

Resilience:
    retry_with_backoff, RetryConfig, CircuitBreaker, safe_async, with_graceful_degradation

HTTP:
    tracelog.middleware.build_middleware / install_middleware for Starlette and FastAPI
"""

from tracelog.foundation.config import TracelogSettings, get_settings, validate_settings
from tracelog.foundation.errors import (
    CircuitOpenError,
    ConfigurationError,
    ErrorCode,
    LoggableError,
    LoggerNotInitializedError,
    TracelogError,
    TransportError,
)
from tracelog.loggers import (
    BaseLogger,
    CentralLogger,
    ConsoleLogger,
    FileLogger,
    InMemoryLogger,
    Level,
    Logger,
    LoggerKind,
    LogRecord,
    create_logger,
    get_logger,
    init_logger,
    shutdown_logger,
)
from tracelog.runtime.context import (
    RequestContext,
    add_metadata,
    context_scope,
    current_context,
    establish,
    get_context_value,
    set_context_value,
    update_context,
)
from tracelog.runtime.redaction import DEFAULT_SENSITIVE_FIELDS, ERROR_SENSITIVE_FIELDS, sanitize_data
from tracelog.runtime.resilience import CircuitBreaker, CircuitState, safe_async, with_graceful_degradation
from tracelog.runtime.retry import RetryConfig, retry_with_backoff

__version__ = "0.1.0"

__all__ = [
    # Config & errors
    "TracelogSettings", "get_settings", "validate_settings",
    "TracelogError", "ErrorCode", "ConfigurationError", "LoggerNotInitializedError",
    "CircuitOpenError", "TransportError", "LoggableError",
    # Loggers
    "Logger", "BaseLogger", "ConsoleLogger", "FileLogger", "InMemoryLogger", "CentralLogger",
    "Level", "LogRecord", "LoggerKind", "create_logger", "init_logger", "get_logger", "shutdown_logger",
    # Context
    "RequestContext", "establish", "context_scope", "current_context", "get_context_value",
    "set_context_value", "update_context", "add_metadata",
    # Redaction
    "sanitize_data", "DEFAULT_SENSITIVE_FIELDS", "ERROR_SENSITIVE_FIELDS",
    # Resilience
    "retry_with_backoff", "RetryConfig", "CircuitBreaker", "CircuitState",
    "safe_async", "with_graceful_degradation",
]
