"""Log levels and the immutable record every logger variant emits."""

from __future__ import annotations

import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

import orjson

from tracelog.foundation.errors import JsonDict, JsonValue


class Level(IntEnum):
    """Severity, lower value = more severe. A logger at level L emits records with value <= L."""
    ERROR, WARN, INFO, HTTP, DEBUG = 0, 1, 2, 3, 4

    @classmethod
    def parse(cls, value: Level | int | str) -> Level:
        """Accept a Level, its int value, or a case-insensitive name ('warning' = warn)."""
        match value:
            case Level():
                return value
            case int():
                return cls(value)
            case str():
                name = value.strip().upper()
                try:
                    return cls["WARN" if name == "WARNING" else name]
                except KeyError:
                    raise ValueError(f"Unknown log level: {value!r}") from None
            case _:
                raise TypeError(f"Expected level name or value, got {type(value).__name__}")

    @property
    def label(self) -> str:
        return self.name.lower()


def to_json_safe(value: Any) -> JsonValue:
    """Best-effort conversion to JSON-compatible data; unserializable values become str/repr."""
    try:
        return orjson.loads(orjson.dumps(value, default=str, option=orjson.OPT_NON_STR_KEYS))
    except TypeError:  # orjson.JSONEncodeError: cycles, huge ints, bad keys
        return repr(value)


def normalize_metadata(meta: Mapping[str, Any]) -> JsonDict:
    return {str(k): to_json_safe(v) for k, v in meta.items()}


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    """Type, message and formatted stack of a captured exception."""

    type: str
    message: str
    stack: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorDetail:
        stack = "".join(traceback.format_exception(exc)) if exc.__traceback__ else None
        return cls(type(exc).__name__, str(exc), stack)

    def to_dict(self) -> JsonDict:
        return {"type": self.type, "message": self.message, **({"stack": self.stack} if self.stack else {})}


@dataclass(frozen=True, slots=True)
class LogRecord:
    """Immutable log record. Context is snapshotted when the record is built."""

    level: Level
    message: str
    service: str
    metadata: JsonDict = field(default_factory=dict)
    context: JsonDict = field(default_factory=dict)
    error: ErrorDetail | None = None
    timestamp_ns: int = field(default_factory=time.time_ns)

    @classmethod
    def create(
        cls,
        level: Level,
        message: str,
        *,
        service: str,
        metadata: Mapping[str, Any] | None = None,
        context: JsonDict | None = None,
        error: BaseException | None = None,
    ) -> LogRecord:
        return cls(
            level, str(message), service,
            normalize_metadata(metadata or {}), dict(context or {}),
            ErrorDetail.from_exception(error) if error is not None else None,
        )

    @property
    def timestamp(self) -> float:
        return self.timestamp_ns / 1e9

    @property
    def ts_iso(self) -> str:
        """ISO-8601 UTC timestamp with millisecond precision."""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @property
    def trace_id(self) -> str | None:
        return self.context.get("trace_id")  # type: ignore[return-value]

    def to_dict(self) -> JsonDict:
        data: JsonDict = {"timestamp": self.ts_iso, "level": self.level.label, "service": self.service,
                          "message": self.message}
        if self.context:
            data["context"] = self.context
        if self.metadata:
            data["metadata"] = self.metadata
        if self.error:
            data["error"] = self.error.to_dict()
        return data

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict()).decode()
