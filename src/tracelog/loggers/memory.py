"""In-memory logger for tests and debugging.

Records live in a bounded ring; once full, the oldest record is evicted for
every new one. Children share the parent's ring.

Example:
    >>> log = InMemoryLogger("svc", "debug", max_size=100)
    >>> log.info("hello", {"n": 1})
    >>> [r.message for r in log.get_logs()]
    ['hello']
    >>> log.get_stats()["total"]
    1
"""

from __future__ import annotations

import re
from collections import Counter, deque
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import orjson

from tracelog.foundation.errors import ConfigurationError, JsonDict

from .base import BaseLogger
from .record import Level, LogRecord

if TYPE_CHECKING:
    from tracelog.foundation.config import TracelogSettings


class MemoryStore:
    """Bounded FIFO ring of records plus an eviction count."""

    __slots__ = ("max_size", "records", "evicted")

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            raise ConfigurationError("memory_max_size", "max_size must be a positive integer")
        self.max_size = max_size
        self.records: deque[LogRecord] = deque(maxlen=max_size)
        self.evicted = 0

    def append(self, record: LogRecord) -> None:
        if len(self.records) == self.max_size:
            self.evicted += 1
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()
        self.evicted = 0


class InMemoryLogger(BaseLogger):
    """Logger keeping the most recent max_size records in memory."""

    def __init__(
        self,
        service_name: str = "default-service",
        level: Level | str = Level.INFO,
        *,
        max_size: int = 10_000,
        bound: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(service_name, level, bound=bound)
        self.store = MemoryStore(max_size)

    @classmethod
    def from_settings(cls, settings: TracelogSettings) -> InMemoryLogger:
        return cls(settings.service_name, settings.level, max_size=settings.memory_max_size)

    def _emit(self, record: LogRecord) -> None:
        self.store.append(record)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    def get_logs(self) -> list[LogRecord]:
        """All retained records, oldest first."""
        return list(self.store.records)

    def get_logs_by_level(self, level: Level | str) -> list[LogRecord]:
        lvl = Level.parse(level)
        return [r for r in self.store.records if r.level is lvl]

    def get_logs_by_message(self, pattern: str | re.Pattern[str]) -> list[LogRecord]:
        rx = re.compile(pattern) if isinstance(pattern, str) else pattern
        return [r for r in self.store.records if rx.search(r.message)]

    def get_logs_by_trace_id(self, trace_id: str) -> list[LogRecord]:
        return [r for r in self.store.records if r.context.get("trace_id") == trace_id]

    def get_logs_by_user_id(self, user_id: str) -> list[LogRecord]:
        return [r for r in self.store.records if r.context.get("user_id") == user_id]

    def clear(self) -> None:
        self.store.clear()

    def get_stats(self) -> JsonDict:
        records = self.store.records
        by_level = Counter(r.level.label for r in records)
        return {
            "total": len(records),
            "by_level": {lvl.label: by_level.get(lvl.label, 0) for lvl in Level},
            "oldest": records[0].ts_iso if records else None,
            "newest": records[-1].ts_iso if records else None,
            "evicted": self.store.evicted,
            "max_size": self.store.max_size,
        }

    def export(self, level: Level | str | None = None) -> str:
        """Retained records as an indented JSON array, optionally for one level."""
        records = self.get_logs() if level is None else self.get_logs_by_level(level)
        return orjson.dumps([r.to_dict() for r in records], option=orjson.OPT_INDENT_2).decode()
