"""Grafana Loki push transport.

Records are grouped into one stream per level and sent as a single JSON
payload to /loki/api/v1/push:

    {"streams": [{"stream": {"service": "api", "level": "info", ...},
                  "values": [["<unix ns>", "<json line>"], ...]}]}

Each push runs retry-with-backoff inside a circuit breaker, so a dead backend
is retried a few times and then failed fast until the cooldown elapses.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import httpx
import orjson

from tracelog.foundation.errors import ErrorCode, JsonDict, TransportError
from tracelog.runtime.resilience import CircuitBreaker
from tracelog.runtime.retry import RetryConfig, retry_with_backoff

if TYPE_CHECKING:
    from tracelog.foundation.config import TracelogSettings
    from tracelog.loggers.record import LogRecord

PUSH_PATH = "/loki/api/v1/push"

# Permanent rejections (4xx) are never retried, whatever the configured retry_on.
TRANSIENT_FAILURES = {"retry_on": (TransportError,), "retryable_codes": frozenset({ErrorCode.TRANSPORT_ERROR})}


class LokiTransport:
    """Async client for the Loki push API.

    Args:
        url: Full push endpoint, e.g. http://loki:3100/loki/api/v1/push
        labels: Stream labels attached to every push (level is added per stream)
        auth: Optional (username, password) for basic auth
        timeout: Per-request timeout in seconds
        retry: Retry configuration for a single push, narrowed to transient failures
        breaker: Circuit breaker wrapping the retried push
        client: httpx.AsyncClient to use; one is created lazily otherwise

    Example:
        >>> transport = LokiTransport("http://localhost:3100/loki/api/v1/push", labels={"service": "api"})
        >>> await transport.push(records)
        >>> await transport.aclose()
    """

    def __init__(
        self,
        url: str,
        *,
        labels: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float = 10.0,
        retry: RetryConfig | None = None,
        breaker: CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.labels = dict(labels or {})
        self.timeout = timeout
        self.retry = (retry or RetryConfig()).model_copy(update=TRANSIENT_FAILURES)
        self.breaker = breaker or CircuitBreaker(name="loki")
        self._auth = auth
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: TracelogSettings, *, client: httpx.AsyncClient | None = None) -> LokiTransport:
        loki = settings.loki
        auth = (loki.username, loki.password.get_secret_value()) if loki.username and loki.password else None
        return cls(
            loki.push_url,
            labels={"service": settings.service_name, "environment": settings.environment, **loki.labels},
            auth=auth,
            timeout=loki.timeout,
            retry=RetryConfig.from_settings(settings.retry),
            breaker=CircuitBreaker.from_settings(settings.breaker, name="loki"),
            client=client,
        )

    # ─────────────────────────────────────────────────────────────────
    # HTTP Client
    # ─────────────────────────────────────────────────────────────────

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the httpx async client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ─────────────────────────────────────────────────────────────────
    # Push
    # ─────────────────────────────────────────────────────────────────

    def build_payload(self, records: Sequence[LogRecord]) -> JsonDict:
        streams: dict[str, list[list[str]]] = {}
        for r in records:
            streams.setdefault(r.level.label, []).append([str(r.timestamp_ns), r.to_json()])
        return {"streams": [{"stream": {**self.labels, "level": level}, "values": values}
                            for level, values in streams.items()]}

    async def _send(self, content: bytes) -> None:
        try:
            response = await self.client.post(
                self.url, content=content, headers={"Content-Type": "application/json"},
                auth=self._auth or httpx.USE_CLIENT_DEFAULT, timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Loki push timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Loki push failed: {e}") from e
        if response.is_error:
            raise TransportError(f"Loki rejected push with status {response.status_code}: {response.text[:200]}",
                                 status_code=response.status_code)

    async def push(self, records: Sequence[LogRecord]) -> None:
        """Send one batch. Raises TransportError or CircuitOpenError on failure."""
        if not records:
            return
        content = orjson.dumps(self.build_payload(records))
        await self.breaker.call(lambda: retry_with_backoff(lambda: self._send(content), self.retry))
