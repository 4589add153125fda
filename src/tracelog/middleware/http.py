"""Pure ASGI middleware that gives every HTTP request a logging context.

Order matters; build_middleware() returns the chain outermost first:

    TracingMiddleware        new context from x-trace-id / x-request-id, response headers,
                             "Incoming request" / "Request completed"
    BodyLoggingMiddleware    redacted request body at debug level
    PerformanceMiddleware    duration and memory delta, "Slow request detected"
    UserContextMiddleware    user id into the context
    ErrorHandlingMiddleware  logs unhandled errors, answers with JSON carrying the trace id

Example:
    >>> app = Starlette(routes=routes, middleware=build_middleware(log, environment="production"))
    >>> # or, on an existing app
    >>> install_middleware(app, log)
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

import orjson
import psutil
from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import Response

from tracelog.foundation.errors import JsonDict
from tracelog.loggers.record import ErrorDetail
from tracelog.runtime.context import RequestContext, context_scope, get_context_value, set_context_value
from tracelog.runtime.health import HealthCheckMiddleware
from tracelog.runtime.redaction import DEFAULT_SENSITIVE_FIELDS, ERROR_SENSITIVE_FIELDS, sanitize_data

if TYPE_CHECKING:
    from starlette.applications import Starlette
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from tracelog.loggers.base import Logger

UserExtractor = Callable[[Request], "str | None | Awaitable[str | None]"]

BODY_STATE_KEY = "tracelog.body"
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

_process = psutil.Process()


# ─────────────────────────────────────────────────────────────────────────────
# Request Helpers
# ─────────────────────────────────────────────────────────────────────────────


def client_ip(scope: Scope, headers: Headers) -> str | None:
    """First x-forwarded-for hop, then x-real-ip, then the socket peer."""
    if forwarded := headers.get("x-forwarded-for"):
        return forwarded.split(",")[0].strip()
    if real := headers.get("x-real-ip"):
        return real
    client = scope.get("client")
    return client[0] if client else None


def request_info(scope: Scope, headers: Headers) -> JsonDict:
    return {
        "method": scope["method"], "path": scope["path"],
        "query": scope.get("query_string", b"").decode("latin-1") or None,
        "ip": client_ip(scope, headers), "user_agent": headers.get("user-agent"),
    }


def describe_body(body: bytes, content_type: str, sensitive_fields: Iterable[str]) -> object:
    """Redacted view of a request body: parsed JSON or form data, else its size."""
    if not body:
        return None
    if "json" in content_type:
        try:
            return sanitize_data(orjson.loads(body), sensitive_fields)
        except orjson.JSONDecodeError:
            pass
    elif content_type.startswith("application/x-www-form-urlencoded"):
        return sanitize_data(dict(parse_qsl(body.decode("utf-8", "replace"))), sensitive_fields)
    return {"size": len(body), "content_type": content_type or None}


def error_status(exc: BaseException) -> int:
    """HTTP status carried by the exception (status_code or status, 400..599), else 500."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return 500


async def read_body(scope: Scope, receive: Receive) -> tuple[bytes, Receive]:
    """Drain the request body, cache it in scope state and return a receive that replays it."""
    state = scope.setdefault("state", {})
    chunks: list[bytes] = []
    more = True
    while more:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        more = message.get("more_body", False)
    body = state[BODY_STATE_KEY] = b"".join(chunks)
    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return body, replay


# ─────────────────────────────────────────────────────────────────────────────
# Middleware
# ─────────────────────────────────────────────────────────────────────────────


class TracingMiddleware:
    """Establishes the request context and logs request start and completion at http level."""

    def __init__(self, app: ASGIApp, logger: Logger) -> None:
        self.app, self.logger = app, logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        headers = Headers(scope=scope)
        ctx = RequestContext.create(
            trace_id=headers.get("x-trace-id") or headers.get("x-request-id"),
            user_id=headers.get("x-user-id"), session_id=headers.get("x-session-id"),
            correlation_id=headers.get("x-correlation-id"),
        )
        info = request_info(scope, headers)
        start = time.perf_counter()
        status_code = 500
        completed = False

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, completed
            if message["type"] == "http.response.start":
                status_code = message["status"]
                out = MutableHeaders(scope=message)
                out["x-trace-id"], out["x-request-id"] = ctx.trace_id, ctx.request_id or ""
                if ctx.span_id:
                    out["x-span-id"] = ctx.span_id
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False) and not completed:
                completed = True
                self.logger.http("Request completed", {
                    "method": info["method"], "path": info["path"], "status_code": status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    "ip": info["ip"], "user_agent": info["user_agent"],
                })

        with context_scope(ctx):
            self.logger.http("Incoming request", info)
            await self.app(scope, receive, send_wrapper)


class BodyLoggingMiddleware:
    """Logs a redacted copy of POST/PUT/PATCH bodies at debug level and replays the body downstream."""

    def __init__(self, app: ASGIApp, logger: Logger, *,
                 sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS) -> None:
        self.app, self.logger, self.sensitive_fields = app, logger, tuple(sensitive_fields)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in BODY_METHODS:
            await self.app(scope, receive, send)
            return
        body, receive = await read_body(scope, receive)
        if body:
            headers = Headers(scope=scope)
            self.logger.debug("Request body", {
                "method": scope["method"], "path": scope["path"],
                "body": describe_body(body, headers.get("content-type", ""), self.sensitive_fields),
            })
        await self.app(scope, receive, send)


class PerformanceMiddleware:
    """Logs duration and RSS delta per request; warns above slow_threshold_ms."""

    def __init__(self, app: ASGIApp, logger: Logger, *, slow_threshold_ms: float = 1000.0) -> None:
        self.app, self.logger, self.slow_threshold_ms = app, logger, slow_threshold_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        start, start_rss = time.perf_counter(), _process.memory_info().rss
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = round((time.perf_counter() - start) * 1000, 2)
            base = {"method": scope["method"], "path": scope["path"], "duration_ms": duration}
            if duration > self.slow_threshold_ms:
                self.logger.warn("Slow request detected", {**base, "threshold_ms": self.slow_threshold_ms})
            self.logger.debug("Performance metrics", {
                **base, "status_code": status_code,
                "memory_delta": _process.memory_info().rss - start_rss,
            })


class UserContextMiddleware:
    """Writes the user id into the request context.

    Sources, first match wins: the extractor (sync or async, receives a
    starlette Request), the x-user-id header, scope["user"].id as set by
    starlette's AuthenticationMiddleware.
    """

    def __init__(self, app: ASGIApp, extractor: UserExtractor | None = None) -> None:
        self.app, self.extractor = app, extractor

    async def _user_id(self, scope: Scope, receive: Receive) -> Any:
        if self.extractor is not None:
            found = self.extractor(Request(scope, receive))
            if inspect.isawaitable(found):
                found = await found
            if found:
                return found
        if found := Headers(scope=scope).get("x-user-id"):
            return found
        return getattr(scope.get("user"), "id", None) if "user" in scope else None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and (user_id := await self._user_id(scope, receive)):
            set_context_value("user_id", str(user_id))
        await self.app(scope, receive, send)


class ErrorHandlingMiddleware:
    """Logs unhandled application errors and answers with JSON {error, status, trace_id}.

    The stack is included in the response body outside production. If the
    response has already started, the error is logged and re-raised.
    """

    def __init__(self, app: ASGIApp, logger: Logger, *, environment: str = "development",
                 sensitive_fields: Iterable[str] = ERROR_SENSITIVE_FIELDS) -> None:
        self.app, self.logger = app, logger
        self.production = environment.lower() == "production"
        self.sensitive_fields = tuple(sensitive_fields)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        started = False
        seen: list[bytes] = []

        async def tapped_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                seen.append(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal started
            started = started or message["type"] == "http.response.start"
            await send(message)

        try:
            await self.app(scope, tapped_receive, send_wrapper)
        except Exception as exc:
            status = error_status(exc)
            headers = Headers(scope=scope)
            body = scope.get("state", {}).get(BODY_STATE_KEY) or b"".join(seen)
            self.logger.error(f"Request error: {exc}", {
                "status_code": status, "method": scope["method"], "path": scope["path"],
                "query": scope.get("query_string", b"").decode("latin-1") or None,
                "body": describe_body(body, headers.get("content-type", ""), self.sensitive_fields),
            }, exc)
            if started:
                raise
            payload: JsonDict = {"error": str(exc) or type(exc).__name__, "status": status,
                                 "trace_id": get_context_value("trace_id")}
            if not self.production:
                payload["stack"] = ErrorDetail.from_exception(exc).stack
            await Response(orjson.dumps(payload), status_code=status, media_type="application/json")(scope, receive, send)


# ─────────────────────────────────────────────────────────────────────────────
# Assembly
# ─────────────────────────────────────────────────────────────────────────────


def build_middleware(
    logger: Logger,
    *,
    user_extractor: UserExtractor | None = None,
    slow_threshold_ms: float = 1000.0,
    sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS,
    environment: str = "development",
    health_check: bool = False,
) -> list[Middleware]:
    """The middleware chain, outermost first, for Starlette(middleware=...)."""
    stack = [Middleware(HealthCheckMiddleware, logger=logger)] if health_check else []
    return stack + [
        Middleware(TracingMiddleware, logger=logger),
        Middleware(BodyLoggingMiddleware, logger=logger, sensitive_fields=tuple(sensitive_fields)),
        Middleware(PerformanceMiddleware, logger=logger, slow_threshold_ms=slow_threshold_ms),
        Middleware(UserContextMiddleware, extractor=user_extractor),
        Middleware(ErrorHandlingMiddleware, logger=logger, environment=environment),
    ]


def install_middleware(app: Starlette, logger: Logger, **options: Any) -> None:
    """Add the chain to an existing app; add_middleware wraps outward, so add innermost first."""
    for m in reversed(build_middleware(logger, **options)):
        app.add_middleware(m.cls, *m.args, **m.kwargs)
