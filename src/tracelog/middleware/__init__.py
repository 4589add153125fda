"""ASGI middleware for Starlette and FastAPI applications."""

from tracelog.runtime.context import add_metadata
from tracelog.runtime.health import HealthCheckMiddleware

from .http import (
    BodyLoggingMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
    TracingMiddleware,
    UserContextMiddleware,
    build_middleware,
    client_ip,
    error_status,
    install_middleware,
)

__all__ = [
    "TracingMiddleware", "BodyLoggingMiddleware", "PerformanceMiddleware", "UserContextMiddleware",
    "ErrorHandlingMiddleware", "HealthCheckMiddleware", "build_middleware", "install_middleware",
    "client_ip", "error_status", "add_metadata",
]
