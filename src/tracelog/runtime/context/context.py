"""Request-scoped context propagation.

A ContextVar holds one mutable scope cell per unit of work; the cell points at
the current immutable RequestContext. asyncio copies the ContextVar into every
task it creates and Starlette copies it into threadpool workers, so they all
share the cell: a write anywhere in the scope is seen by every later read in
the same scope. Each establish() or context_scope() installs a fresh cell, so
sibling and parent units of work never observe each other's writes.

Example:
    >>> async def handler():
    ...     add_metadata("order_id", 42)
    ...     return get_context_value("trace_id")
    >>> await establish({"user_id": "u1"}, handler)
    '0b1f...'

    >>> with context_scope(trace_id="abc"):
    ...     current_context().trace_id
    'abc'
"""

from __future__ import annotations

import inspect
import threading
import uuid
from collections.abc import Awaitable, Callable, Mapping
from contextvars import ContextVar, copy_context
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from tracelog.foundation.errors import JsonDict, JsonValue

if TYPE_CHECKING:
    from types import TracebackType

P = ParamSpec("P")
T = TypeVar("T")

_ID_FIELDS = frozenset({"trace_id", "span_id", "request_id", "user_id", "session_id", "correlation_id"})

_context: ContextVar[_Scope | None] = ContextVar("tracelog_context", default=None)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Immutable identifiers and metadata for one unit of work.

    Writes go through with_fields(), which returns a new instance that the
    owning scope cell then points at.
    """

    trace_id: str
    span_id: str | None = None
    request_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None
    metadata: JsonDict = field(default_factory=dict, hash=False)

    @classmethod
    def create(cls, **fields: Any) -> RequestContext:
        """Build a context, generating trace, span and request ids when missing."""
        ids, metadata = _split(fields, {})
        for name in ("trace_id", "span_id", "request_id"):
            ids[name] = ids.get(name) or new_id()
        return cls(**ids, metadata=metadata)

    def with_fields(self, **fields: Any) -> RequestContext:
        """Copy with fields replaced. Unknown names are merged into metadata."""
        ids, metadata = _split(fields, self.metadata)
        if not ids.get("trace_id", True):
            ids.pop("trace_id")
        return replace(self, **ids, metadata=metadata)

    def get(self, name: str, default: JsonValue = None) -> JsonValue:
        if name in _ID_FIELDS:
            value = getattr(self, name)
            return default if value is None else value
        return self.metadata.get(name, default)

    def snapshot(self) -> JsonDict:
        """Plain dict of the populated fields, as attached to log records."""
        data: JsonDict = {k: v for k in ("trace_id", "span_id", "request_id", "user_id", "session_id", "correlation_id")
                          if (v := getattr(self, k)) is not None}
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


def _split(fields: Mapping[str, Any], metadata: Mapping[str, Any]) -> tuple[dict[str, Any], JsonDict]:
    ids = {k: v for k, v in fields.items() if k in _ID_FIELDS}
    extra = {k: v for k, v in fields.items() if k not in _ID_FIELDS}
    merged = dict(metadata)
    match extra.pop("metadata", None):
        case None: pass
        case Mapping() as replacement: merged = dict(replacement)
        case other: extra["metadata"] = other  # not a map: kept as an ordinary key
    merged.update(extra)
    return ids, merged


def _resolve(partial: RequestContext | Mapping[str, Any] | None, **fields: Any) -> RequestContext:
    match partial:
        case RequestContext():
            return partial.with_fields(**fields) if fields else partial
        case None:
            return RequestContext.create(**fields)
        case Mapping():
            return RequestContext.create(**{**partial, **fields})
        case _:
            raise TypeError(f"Expected RequestContext, mapping or None, got {type(partial).__name__}")


# ─────────────────────────────────────────────────────────────────────────────
# Scoping
# ─────────────────────────────────────────────────────────────────────────────


class _Scope:
    """Mutable cell shared by every copy of the ContextVar made inside one scope."""

    __slots__ = ("ctx", "lock")

    def __init__(self, ctx: RequestContext) -> None:
        self.ctx = ctx
        self.lock = threading.Lock()

    def update(self, **fields: Any) -> RequestContext:
        with self.lock:
            self.ctx = self.ctx.with_fields(**fields)
            return self.ctx


async def _scoped(ctx: RequestContext, awaitable: Awaitable[T]) -> T:
    token = _context.set(_Scope(ctx))
    try:
        return await awaitable
    finally:
        _context.reset(token)


def _run_sync(ctx: RequestContext, fn: Callable[..., T], args: tuple[Any, ...], kwargs: dict[str, Any]) -> T:
    _context.set(_Scope(ctx))
    return fn(*args, **kwargs)


def establish(
    partial: RequestContext | Mapping[str, Any] | None,
    fn: Callable[P, T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Run fn with a new context active for its entire execution.

    Coroutine functions get back a coroutine to await; the context is active
    while it runs and the previous value is restored afterwards. Sync
    functions run inside a copied contextvars.Context, so nothing they write
    escapes. Failures propagate unchanged.
    """
    ctx = _resolve(partial)
    if inspect.iscoroutinefunction(fn):
        return _scoped(ctx, fn(*args, **kwargs))  # type: ignore[return-value]
    result = copy_context().run(_run_sync, ctx, fn, args, kwargs)
    if inspect.isawaitable(result):
        return _scoped(ctx, result)  # type: ignore[return-value]
    return result


class context_scope:
    """Context manager that activates a context until the block exits.

    Example:
        >>> with context_scope(user_id="u1") as ctx:
        ...     log.info("inside")  # record carries ctx.trace_id and user_id
    """

    __slots__ = ("_ctx", "_token")

    def __init__(self, context: RequestContext | Mapping[str, Any] | None = None, **fields: Any) -> None:
        self._ctx = _resolve(context, **fields)
        self._token: object | None = None

    @property
    def context(self) -> RequestContext:
        return self._ctx

    def __enter__(self) -> RequestContext:
        self._token = _context.set(_Scope(self._ctx))
        return self._ctx

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                 exc_tb: TracebackType | None) -> None:
        if self._token is not None:
            _context.reset(self._token)  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# Ambient Access
# ─────────────────────────────────────────────────────────────────────────────


def _active_scope() -> _Scope:
    """Scope cell of the current unit of work, installing a default one if missing."""
    scope = _context.get()
    if scope is None:
        scope = _Scope(RequestContext.create())
        _context.set(scope)
    return scope


def current_context() -> RequestContext:
    """Active context, or a fresh default that is not installed."""
    scope = _context.get()
    return scope.ctx if scope is not None else RequestContext.create()


def has_context() -> bool:
    return _context.get() is not None


def context_snapshot() -> JsonDict:
    """Fields of the active context for a log record; a fresh default outside any scope."""
    return current_context().snapshot()


def get_context_value(name: str, default: JsonValue = None) -> JsonValue:
    """Read one field of current_context(); unknown names read the metadata map."""
    return current_context().get(name, default)


def update_context(**fields: Any) -> RequestContext:
    """Write several fields at once, installing a default context if none is active."""
    return _active_scope().update(**fields)


def set_context_value(name: str, value: Any) -> None:
    """Write one field; unknown names write into the metadata map."""
    update_context(**{name: value})


def add_metadata(key: str, value: JsonValue) -> None:
    """Merge one key into the active context's metadata."""
    scope = _active_scope()
    with scope.lock:
        scope.ctx = scope.ctx.with_fields(metadata={**scope.ctx.metadata, key: value})
