"""Health check of the logging pipeline.

Three checks feed the overall status: the logger itself, process memory and
the aggregation transport. Any unhealthy check makes the report unhealthy;
otherwise any degraded check makes it degraded.

Example:
    >>> report = perform_health_check(log)
    >>> report.status
    <HealthStatus.HEALTHY: 'healthy'>
    >>> health_status_message(report)
    'Overall Status: HEALTHY | Logger: HEALTHY | Memory: HEALTHY (3.12%) | Transport: HEALTHY'
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import psutil
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import Response

from tracelog.foundation.errors import JsonDict, LoggerNotInitializedError
from tracelog.loggers.factory import get_logger, is_initialized
from tracelog.runtime.metrics import get_metrics

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

    from tracelog.loggers.base import BaseLogger

HEALTH_PATH = "/health/logs"
MEMORY_DEGRADED_PERCENT = 75.0
MEMORY_UNHEALTHY_PERCENT = 90.0

_process = psutil.Process()


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


class CheckResult(BaseModel):
    """Outcome of one health check."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    details: JsonDict = Field(default_factory=dict)


class HealthReport(BaseModel):
    """Aggregated health of the logging pipeline."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    timestamp: datetime
    checks: dict[str, CheckResult]
    uptime: float = Field(description="Process uptime in seconds")

    @property
    def is_healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY


# ─────────────────────────────────────────────────────────────────────────────
# Checks
# ─────────────────────────────────────────────────────────────────────────────


def check_logger(logger: BaseLogger | None = None) -> CheckResult:
    if logger is None:
        try:
            logger = get_logger()
        except LoggerNotInitializedError as e:
            return CheckResult(status=HealthStatus.UNHEALTHY, details={"initialized": False, "error": str(e)})
    summary = get_metrics().summary()
    return CheckResult(status=HealthStatus.HEALTHY, details={
        "initialized": True, "logger": type(logger).__name__, "service": logger.service_name,
        "total_logs_emitted": summary["logs_total"], "total_errors": summary["errors_total"],
        "total_dropped": summary["dropped_total"],
    })


def check_memory() -> CheckResult:
    info = _process.memory_info()
    percent = _process.memory_percent()
    get_metrics().memory_usage.set(info.rss)
    if percent > MEMORY_UNHEALTHY_PERCENT:
        status = HealthStatus.UNHEALTHY
    elif percent > MEMORY_DEGRADED_PERCENT:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY
    return CheckResult(status=status, details={"rss": info.rss, "vms": info.vms, "used_percent": round(percent, 2)})


def check_transport(logger: BaseLogger | None = None) -> CheckResult:
    """Report the Loki circuit breaker when the logger has one; connectivity itself is not probed."""
    breaker = getattr(logger, "breaker", None)
    if breaker is None:
        return CheckResult(status=HealthStatus.HEALTHY, details={"loki": {"enabled": False}})
    details: dict[str, Any] = {"loki": {"enabled": True, "circuit": breaker.stats}}
    status = HealthStatus.DEGRADED if breaker.is_open else HealthStatus.HEALTHY
    return CheckResult(status=status, details=details)


def perform_health_check(logger: BaseLogger | None = None) -> HealthReport:
    """Run every check against logger, or the process-wide logger when omitted."""
    if logger is None:
        logger = get_logger() if is_initialized() else None
    checks = {"logger": check_logger(logger), "memory": check_memory(), "transport": check_transport(logger)}
    status = max((c.status for c in checks.values()), key=_SEVERITY.__getitem__)
    return HealthReport(status=status, timestamp=datetime.now(UTC), checks=checks,
                        uptime=round(time.time() - _process.create_time(), 3))


def health_status_message(report: HealthReport) -> str:
    """One-line summary, e.g. for a startup banner or a CLI probe."""
    c = report.checks
    return " | ".join((
        f"Overall Status: {report.status.upper()}",
        f"Logger: {c['logger'].status.upper()}",
        f"Memory: {c['memory'].status.upper()} ({c['memory'].details.get('used_percent')}%)",
        f"Transport: {c['transport'].status.upper()}",
    ))


# ─────────────────────────────────────────────────────────────────────────────
# ASGI Endpoint
# ─────────────────────────────────────────────────────────────────────────────


class HealthCheckMiddleware:
    """Serves GET /health/logs (200 when healthy, 503 otherwise); passes everything else through."""

    def __init__(self, app: ASGIApp, logger: BaseLogger | None = None, *, path: str = HEALTH_PATH) -> None:
        self.app, self.logger, self.path = app, logger, path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] != self.path or scope["method"] != "GET":
            await self.app(scope, receive, send)
            return
        report = perform_health_check(self.logger)
        response = Response(report.model_dump_json(), status_code=200 if report.is_healthy else 503,
                            media_type="application/json")
        await response(scope, receive, send)
