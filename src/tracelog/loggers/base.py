"""Logger capability set shared by every variant.

Subclasses implement _emit() and, when they hold buffers or handles, flush()
and close(). Enrichment with the ambient context, metadata merging, level
filtering and metrics live here so every variant behaves the same.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, ParamSpec, Protocol, TypeVar, runtime_checkable

from tracelog.foundation.errors import JsonDict
from tracelog.runtime.context import RequestContext, context_snapshot, establish
from tracelog.runtime.metrics import get_metrics

from .record import Level, LogRecord

if TYPE_CHECKING:
    from types import TracebackType

P = ParamSpec("P")
T = TypeVar("T")

_log = logging.getLogger("tracelog")


@runtime_checkable
class Logger(Protocol):
    """What application code may rely on, whichever variant is configured."""

    def error(self, message: str, meta: object = None, error: BaseException | None = None) -> None: ...
    def warn(self, message: str, meta: object = None) -> None: ...
    def info(self, message: str, meta: object = None) -> None: ...
    def http(self, message: str, meta: object = None) -> None: ...
    def debug(self, message: str, meta: object = None) -> None: ...
    def child(self, metadata: Mapping[str, Any] | None = None, **kw: Any) -> Logger: ...
    async def close(self) -> None: ...


class BaseLogger(ABC):
    """Common behavior of the console, file, in-memory and central loggers.

    Example:
        >>> log = ConsoleLogger("billing", "debug")
        >>> req_log = log.child({"component": "invoices"})
        >>> req_log.info("Invoice created", {"invoice_id": 7})
        >>> req_log.error("Charge failed", {"invoice_id": 7}, exc)
    """

    def __init__(
        self,
        service_name: str = "default-service",
        level: Level | str = Level.INFO,
        *,
        bound: Mapping[str, Any] | None = None,
    ) -> None:
        self.service_name = service_name
        self.level = Level.parse(level)
        self._bound: JsonDict = dict(bound or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(service_name={self.service_name!r}, level={self.level.label!r})"

    @property
    def bound_metadata(self) -> JsonDict:
        return dict(self._bound)

    def is_enabled(self, level: Level | str) -> bool:
        return Level.parse(level) <= self.level

    # ─────────────────────────────────────────────────────────────────
    # Logging calls
    # ─────────────────────────────────────────────────────────────────

    def error(self, message: str, meta: object = None, error: BaseException | None = None) -> None:
        self._log(Level.ERROR, message, meta, error)

    def warn(self, message: str, meta: object = None) -> None:
        self._log(Level.WARN, message, meta)

    def info(self, message: str, meta: object = None) -> None:
        self._log(Level.INFO, message, meta)

    def http(self, message: str, meta: object = None) -> None:
        self._log(Level.HTTP, message, meta)

    def debug(self, message: str, meta: object = None) -> None:
        self._log(Level.DEBUG, message, meta)

    def _merge(self, meta: object) -> dict[str, Any]:
        """Bound metadata first, call-site keys win; non-mappings go under 'data'."""
        match meta:
            case None: data: Mapping[str, Any] = {}
            case Mapping(): data = meta
            case _: data = {"data": meta}
        return {**self._bound, **data}

    def _log(self, level: Level, message: str, meta: object = None, error: BaseException | None = None) -> None:
        if level > self.level:
            return
        metrics = get_metrics()
        try:
            record = LogRecord.create(level, message, service=self.service_name, metadata=self._merge(meta),
                                      context=context_snapshot(), error=error)
            metrics.record_log(level.label)
            self._emit(record)
        except Exception:
            metrics.record_dropped("emit_failure")
            _log.exception("Failed to emit log record from %s", type(self).__name__)

    @abstractmethod
    def _emit(self, record: LogRecord) -> None:
        """Deliver one record to the backend. May raise; the caller reports it."""

    # ─────────────────────────────────────────────────────────────────
    # Derivation & Scoping
    # ─────────────────────────────────────────────────────────────────

    def child(self, metadata: Mapping[str, Any] | None = None, **kw: Any) -> BaseLogger:
        """New logger sharing this backend with extra metadata bound to every record."""
        clone = copy.copy(self)
        clone._bound = {**self._bound, **(metadata or {}), **kw}
        return clone

    def with_context(
        self,
        partial: RequestContext | Mapping[str, Any] | None,
        fn: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Run fn inside a new context scope (see establish)."""
        return establish(partial, fn, *args, **kwargs)

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def flush(self) -> None:
        """Push buffered records to the backend."""

    async def close(self) -> None:
        """Flush and release backend resources. Idempotent."""
        await self.flush()

    async def __aenter__(self) -> BaseLogger:
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                        exc_tb: TracebackType | None) -> None:
        await self.close()
