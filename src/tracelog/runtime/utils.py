"""Logging helpers for application code: timers, error wrappers, call tracing, batches, audits.

Every helper takes an explicit logger and falls back to the process-wide one
from init_logger() when none is given.

Example:
    >>> with create_timer("db query", log) as t:
    ...     rows = run_query()
    >>> t.result.duration_ms
    12.4

    >>> @log_function_call(logger=log)
    ... async def charge(order_id: int) -> str: ...

    >>> audit_log("delete", "user:42", actor="admin", logger=log)
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, overload

import psutil

from tracelog.loggers.factory import get_logger
from tracelog.loggers.record import Level

if TYPE_CHECKING:
    from types import TracebackType

    from tracelog.loggers.base import Logger

P = ParamSpec("P")
T = TypeVar("T")

_process = psutil.Process()


def _rss() -> int:
    return _process.memory_info().rss


# ─────────────────────────────────────────────────────────────────────────────
# Timing
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TimerResult:
    duration_ms: float
    memory_used: int  # RSS delta in bytes, may be negative


class Timer:
    """Measures wall time and RSS delta of an operation, logging on end().

    Slow operations (above slow_threshold_ms) log at warn, the rest at debug.
    """

    __slots__ = ("label", "logger", "slow_threshold_ms", "result", "_start", "_start_rss")

    def __init__(self, label: str = "Operation", logger: Logger | None = None, slow_threshold_ms: float = 1000.0) -> None:
        self.label, self.logger, self.slow_threshold_ms = label, logger, slow_threshold_ms
        self.result: TimerResult | None = None
        self._start, self._start_rss = time.perf_counter(), _rss()

    def end(self, metadata: Mapping[str, Any] | None = None) -> TimerResult:
        duration = round((time.perf_counter() - self._start) * 1000, 2)
        self.result = TimerResult(duration, _rss() - self._start_rss)
        log = self.logger or get_logger()
        meta = {"duration_ms": duration, "memory_used": self.result.memory_used, **(metadata or {})}
        message = f"{self.label} completed in {duration}ms"
        if duration > self.slow_threshold_ms:
            log.warn(message, meta)
        else:
            log.debug(message, meta)
        return self.result

    def __enter__(self) -> Timer:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                 exc_tb: TracebackType | None) -> None:
        self.end({"failed": True, "error": str(exc_val)} if exc_val else None)


def create_timer(label: str = "Operation", logger: Logger | None = None, slow_threshold_ms: float = 1000.0) -> Timer:
    return Timer(label, logger, slow_threshold_ms)


# ─────────────────────────────────────────────────────────────────────────────
# Error Wrappers
# ─────────────────────────────────────────────────────────────────────────────


async def with_error_logging(
    fn: Callable[[], Awaitable[T]],
    operation: str = "Operation",
    metadata: Mapping[str, Any] | None = None,
    *,
    logger: Logger | None = None,
) -> T:
    """Await fn, timing it; on failure log '<operation> failed' with the error and re-raise."""
    timer = Timer(operation, logger)
    try:
        result = await fn()
    except Exception as e:
        (logger or get_logger()).error(f"{operation} failed", metadata, e)
        raise
    timer.end(metadata)
    return result


def with_error_logging_sync(
    fn: Callable[[], T],
    operation: str = "Operation",
    metadata: Mapping[str, Any] | None = None,
    *,
    logger: Logger | None = None,
) -> T:
    """Sync counterpart of with_error_logging."""
    timer = Timer(operation, logger)
    try:
        result = fn()
    except Exception as e:
        (logger or get_logger()).error(f"{operation} failed", metadata, e)
        raise
    timer.end(metadata)
    return result


@overload
def log_function_call(fn: Callable[P, T], /) -> Callable[P, T]: ...
@overload
def log_function_call(*, name: str | None = None, logger: Logger | None = None) -> Callable[[Callable[P, T]], Callable[P, T]]: ...


def log_function_call(
    fn: Callable[P, T] | None = None,
    /,
    *,
    name: str | None = None,
    logger: Logger | None = None,
) -> Callable[P, T] | Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator logging entry, exit and failure of a sync or async function at debug level."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        fn_name = name or getattr(func, "__name__", "anonymous")

        def _enter(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Logger:
            log = logger or get_logger()
            log.debug(f"Entering {fn_name}", {"args": args, **({"kwargs": kwargs} if kwargs else {})})
            return log

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            log = _enter(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(f"Error in {fn_name}", {"args": args}, e)
                raise
            log.debug(f"Exiting {fn_name}", {"result": result})
            return result

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            log = _enter(args, kwargs)
            try:
                result = await func(*args, **kwargs)  # type: ignore[misc]
            except Exception as e:
                log.error(f"Error in {fn_name}", {"args": args}, e)
                raise
            log.debug(f"Exiting {fn_name}", {"result": result})
            return result

        return async_wrapper if inspect.iscoroutinefunction(func) else wrapper  # type: ignore[return-value]

    return decorator(fn) if fn is not None else decorator


# ─────────────────────────────────────────────────────────────────────────────
# Batches & Audits
# ─────────────────────────────────────────────────────────────────────────────


class BatchLogger:
    """Collects entries and emits them in order on flush().

    Example:
        >>> batch = BatchLogger(log).info("step 1").warn("step 2", {"retry": True})
        >>> batch.flush()
    """

    __slots__ = ("logger", "_entries")

    def __init__(self, logger: Logger | None = None) -> None:
        self.logger = logger
        self._entries: list[tuple[Level, str, object]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, level: Level | str, message: str, metadata: object = None) -> BatchLogger:
        self._entries.append((Level.parse(level), message, metadata))
        return self

    def error(self, message: str, metadata: object = None) -> BatchLogger:
        return self.add(Level.ERROR, message, metadata)

    def warn(self, message: str, metadata: object = None) -> BatchLogger:
        return self.add(Level.WARN, message, metadata)

    def info(self, message: str, metadata: object = None) -> BatchLogger:
        return self.add(Level.INFO, message, metadata)

    def debug(self, message: str, metadata: object = None) -> BatchLogger:
        return self.add(Level.DEBUG, message, metadata)

    def flush(self) -> None:
        log = self.logger or get_logger()
        entries, self._entries = self._entries, []
        for level, message, metadata in entries:
            getattr(log, level.label)(message, metadata)

    def clear(self) -> None:
        self._entries.clear()


def audit_log(
    action: str,
    resource: str,
    actor: str | None = None,
    details: Mapping[str, Any] | None = None,
    *,
    logger: Logger | None = None,
) -> None:
    """Info-level audit entry for compliance and security trails."""
    (logger or get_logger()).info(f"Audit: {action} on {resource}", {
        "audit_action": action, "audit_resource": resource, "actor": actor, **(details or {}),
    })
