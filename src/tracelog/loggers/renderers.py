"""Renderers turning LogRecords into console text or JSON lines."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from textwrap import indent
from typing import Protocol, TextIO, runtime_checkable

import orjson

from .record import Level, LogRecord

_COLORS = {
    "reset": "\033[0m", "bold": "\033[1m", "dim": "\033[2m",
    "red": "\033[31m", "green": "\033[32m", "yellow": "\033[33m",
    "blue": "\033[34m", "magenta": "\033[35m", "cyan": "\033[36m",
}
_NO_COLORS = {k: "" for k in _COLORS}

_LEVEL_COLORS = {
    Level.ERROR: "red", Level.WARN: "yellow", Level.INFO: "green",
    Level.HTTP: "magenta", Level.DEBUG: "blue",
}

_CONTEXT_LABELS = (("User", "user_id"), ("Request", "request_id"), ("Session", "session_id"))


@runtime_checkable
class LogRenderer(Protocol):
    """Protocol for record output renderers."""

    def render(self, record: LogRecord) -> None: ...
    def flush(self) -> None: ...


@dataclass(slots=True)
class ConsoleRenderer:
    """Human-readable console output.

    Format: [timestamp] [LEVEL] [service] [trace: 1a2b3c4d] message, then the
    indented metadata, error stack and a Context line. Errors go to stderr.
    Streams left as None resolve to sys.stdout/sys.stderr at render time.
    """

    stdout: TextIO | None = None
    stderr: TextIO | None = None
    colors: bool | None = None  # None = auto-detect per stream
    show_timestamp: bool = True
    show_meta: bool = True

    def stream_for(self, level: Level) -> TextIO:
        if level is Level.ERROR:
            return self.stderr or sys.stderr
        return self.stdout or sys.stdout

    def format(self, record: LogRecord, *, colors: bool = False) -> str:
        c = _COLORS if colors else _NO_COLORS
        lc = c[_LEVEL_COLORS[record.level]]
        parts = [f"{c['dim']}[{record.ts_iso}]{c['reset']}"] if self.show_timestamp else []
        parts += [f"{lc}{c['bold']}[{record.level.name}]{c['reset']}", f"[{record.service}]"]
        if trace_id := record.trace_id:
            parts.append(f"{c['cyan']}[trace: {trace_id[:8]}]{c['reset']}")
        parts.append(record.message)
        lines = [" ".join(parts)]

        if self.show_meta and record.metadata:
            meta = orjson.dumps(record.metadata, option=orjson.OPT_INDENT_2).decode()
            lines.append(f"{c['dim']}{indent(meta, '  ')}{c['reset']}")
        if err := record.error:
            lines.append(f"{c['red']}  Error: {err.message}{c['reset']}")
            if err.stack:
                lines.append(f"{c['red']}{indent(err.stack.rstrip(), '  ')}{c['reset']}")
        if ctx := [f"{label}: {v}" for label, key in _CONTEXT_LABELS if (v := record.context.get(key))]:
            lines.append(f"{c['dim']}  Context: {', '.join(ctx)}{c['reset']}")
        return "\n".join(lines)

    def render(self, record: LogRecord) -> None:
        out = self.stream_for(record.level)
        colors = self.colors if self.colors is not None else getattr(out, "isatty", lambda: False)()
        print(self.format(record, colors=colors), file=out)

    def flush(self) -> None:
        for out in (self.stdout or sys.stdout, self.stderr or sys.stderr):
            out.flush()


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines output, one record per line."""

    output: TextIO | None = None

    def render(self, record: LogRecord) -> None:
        print(record.to_json(), file=self.output or sys.stdout)

    def flush(self) -> None:
        (self.output or sys.stdout).flush()
