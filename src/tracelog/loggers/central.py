"""Central logger fanning out to console, rotating files and Loki.

Loki records are buffered and pushed in batches: when batch_size records are
waiting, every interval seconds, and on flush()/close(). Background pushes
need a running event loop; without one, records wait for an explicit flush().
A failed batch goes back to the head of the buffer, and no background push is
started while the circuit breaker is open. The buffer never holds more than
max_buffer records; the oldest are discarded first and counted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Mapping
from contextlib import suppress
from typing import TYPE_CHECKING, Any

from tracelog.io.loki import LokiTransport
from tracelog.runtime.metrics import get_metrics

from .base import BaseLogger
from .file import FileSink
from .record import Level, LogRecord
from .renderers import ConsoleRenderer, LogRenderer

if TYPE_CHECKING:
    import httpx

    from tracelog.foundation.config import TracelogSettings
    from tracelog.runtime.resilience import CircuitBreaker

_log = logging.getLogger("tracelog.central")


class LokiBatcher:
    """Buffer of records awaiting a push, shared by a logger and its children."""

    def __init__(self, transport: LokiTransport, *, batch_size: int = 100, interval: float = 5.0,
                 max_buffer: int = 10_000) -> None:
        self.transport = transport
        self.batch_size, self.interval, self.max_buffer = batch_size, interval, max(max_buffer, batch_size)
        self.buffer: deque[LogRecord] = deque()
        self.closed = False
        self._lock = asyncio.Lock()
        self._periodic: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()

    def add(self, record: LogRecord) -> None:
        if self.closed:
            raise RuntimeError("Loki batcher is closed")
        self.buffer.append(record)
        self._trim()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # No loop: records wait for an explicit flush()
        self._ensure_periodic(loop)
        if len(self.buffer) >= self.batch_size and not self._pending and not self.transport.breaker.is_open:
            task = loop.create_task(self._background_flush(), name="tracelog-loki-batch")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    def _trim(self) -> None:
        if (overflow := len(self.buffer) - self.max_buffer) > 0:
            for _ in range(overflow):
                self.buffer.popleft()
            get_metrics().record_dropped("buffer_overflow", overflow)
            _log.warning("Loki buffer full, dropped %d oldest records", overflow)

    def _ensure_periodic(self, loop: asyncio.AbstractEventLoop) -> None:
        task = self._periodic
        if task is None or task.done() or task.get_loop() is not loop:
            self._periodic = loop.create_task(self._run_periodic(), name="tracelog-loki-interval")

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.buffer and not self.transport.breaker.is_open:
                await self._background_flush()

    async def _background_flush(self) -> None:
        try:
            await self.flush()
        except Exception as e:
            _log.warning("Background flush to Loki failed, %d records kept for retry: %s", len(self.buffer), e)

    async def flush(self) -> None:
        """Push everything buffered, batch by batch. Raises on the first failed batch."""
        metrics = get_metrics()
        async with self._lock:
            while self.buffer:
                batch = [self.buffer.popleft() for _ in range(min(self.batch_size, len(self.buffer)))]
                start = time.perf_counter()
                try:
                    await self.transport.push(batch)
                except BaseException:  # includes cancellation mid-push
                    self.buffer.extendleft(reversed(batch))
                    self._trim()
                    raise
                finally:
                    metrics.loki_batch_latency.observe(time.perf_counter() - start)

    async def close(self) -> None:
        """Stop background pushes, push what is left and close the transport.

        The transport is released even when the final push fails; the failure
        is re-raised afterwards.
        """
        if self.closed:
            return
        self.closed = True
        loop = asyncio.get_running_loop()
        if (task := self._periodic) is not None and task.get_loop() is loop:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._periodic = None
        if pending := [t for t in self._pending if t.get_loop() is loop]:
            await asyncio.gather(*pending, return_exceptions=True)
        try:
            await self.flush()
        finally:
            await self.transport.aclose()


class CentralLogger(BaseLogger):
    """Logger writing to every configured backend.

    Example:
        >>> log = CentralLogger.from_settings(get_settings())
        >>> log.info("Order placed", {"order_id": 42})
        >>> await log.close()  # pushes whatever is still buffered
    """

    def __init__(
        self,
        service_name: str = "default-service",
        level: Level | str = Level.INFO,
        *,
        console: LogRenderer | None = None,
        file_sink: FileSink | None = None,
        loki: LokiBatcher | None = None,
        bound: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(service_name, level, bound=bound)
        self.console, self.file_sink, self.loki = console, file_sink, loki
        self._closed = False

    @classmethod
    def from_settings(cls, settings: TracelogSettings, *, client: httpx.AsyncClient | None = None) -> CentralLogger:
        c, f, lk = settings.console, settings.file, settings.loki
        console = ConsoleRenderer(colors=c.colors, show_timestamp=c.include_timestamp,
                                  show_meta=c.include_meta) if c.enabled else None
        file_sink = FileSink(f.path, max_files=f.max_files,
                             max_bytes=int(f.max_bytes) if f.max_bytes else None) if f.enabled else None
        loki = LokiBatcher(LokiTransport.from_settings(settings, client=client), batch_size=lk.batch_size,
                           interval=lk.interval, max_buffer=lk.max_buffer) if lk.enabled else None
        return cls(settings.service_name, settings.level, console=console, file_sink=file_sink, loki=loki)

    @property
    def breaker(self) -> CircuitBreaker | None:
        """Circuit breaker guarding Loki pushes, None when Loki is disabled."""
        return self.loki.transport.breaker if self.loki else None

    def _emit(self, record: LogRecord) -> None:
        sinks = (("console", self.console and self.console.render), ("file", self.file_sink and self.file_sink.write),
                 ("loki", self.loki and self.loki.add))
        for name, write in sinks:
            if not write:
                continue
            try:
                write(record)
            except Exception:
                get_metrics().record_dropped(f"{name}_failure")
                _log.exception("Failed to write log record to %s", name)

    async def flush(self) -> None:
        """Flush local sinks and push buffered records to Loki. Raises if the push fails."""
        if self.console:
            self.console.flush()
        if self.file_sink:
            await asyncio.to_thread(self.file_sink.flush)
        if self.loki:
            await self.loki.flush()

    async def close(self) -> None:
        """Release every sink; a failed final Loki push is re-raised after the files are closed."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.loki:
                await self.loki.close()
        finally:
            if self.console:
                self.console.flush()
            if self.file_sink:
                await asyncio.to_thread(self.file_sink.close)
