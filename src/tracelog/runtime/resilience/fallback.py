"""Fallback helpers that log instead of letting a failure take the caller down."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from tracelog.runtime.diagnostics import report

if TYPE_CHECKING:
    from tracelog.loggers.base import Logger

T = TypeVar("T")

_log = logging.getLogger("tracelog.fallback")


async def safe_async(
    fn: Callable[[], Awaitable[T]],
    error_handler: Callable[[Exception], None] | None = None,
    *,
    logger: Logger | None = None,
) -> T | None:
    """Await fn; on failure log it, notify error_handler and return None."""
    try:
        return await fn()
    except Exception as e:
        report(logger, _log, "error", "Safe async operation failed", {"error": str(e)}, e)
        if error_handler:
            error_handler(e)
        return None


async def with_graceful_degradation(
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], Awaitable[T]],
    operation: str = "operation",
    *,
    logger: Logger | None = None,
) -> T:
    """Await primary, falling back on failure. Raises the fallback's error if both fail."""
    try:
        return await primary()
    except Exception as e:
        report(logger, _log, "warn", f"Primary {operation} failed, using fallback",
               {"operation": operation, "error": str(e)})
        try:
            return await fallback()
        except Exception as fe:
            report(logger, _log, "error", f"Fallback {operation} also failed",
                   {"operation": operation, "primary_error": str(e), "fallback_error": str(fe)}, fe)
            raise
