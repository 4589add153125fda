"""File logger writing JSON lines through rotating stdlib handlers.

Two files live in the log directory: combined.log receives every record,
error.log only error records. Rotation is daily at midnight, or by size when
max_bytes is set; max_files rotated files are kept.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .base import BaseLogger
from .record import Level, LogRecord
from .renderers import ConsoleRenderer, LogRenderer

if TYPE_CHECKING:
    from tracelog.foundation.config import TracelogSettings

COMBINED_FILE = "combined.log"
ERROR_FILE = "error.log"

_STDLIB_LEVELS = {
    Level.ERROR: logging.ERROR, Level.WARN: logging.WARNING, Level.INFO: logging.INFO,
    Level.HTTP: logging.INFO, Level.DEBUG: logging.DEBUG,
}


class FileSink:
    """Owns a private stdlib logger and its two rotating handlers."""

    __slots__ = ("directory", "max_files", "max_bytes", "closed", "_logger")

    def __init__(self, directory: str | Path = "./logs", *, max_files: int = 14, max_bytes: int | None = None) -> None:
        self.directory, self.max_files, self.max_bytes = Path(directory), max_files, max_bytes
        self.closed = False
        self.directory.mkdir(parents=True, exist_ok=True)
        # Not registered with logging.getLogger, so nothing else can attach to it.
        self._logger = logging.Logger(f"tracelog.file.{self.directory}", logging.DEBUG)
        self._logger.propagate = False
        for name, level in ((COMBINED_FILE, logging.DEBUG), (ERROR_FILE, logging.ERROR)):
            handler = self._handler(self.directory / name)
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    def _handler(self, path: Path) -> logging.Handler:
        if self.max_bytes:
            return RotatingFileHandler(path, maxBytes=self.max_bytes, backupCount=self.max_files, encoding="utf-8")
        return TimedRotatingFileHandler(path, when="midnight", backupCount=self.max_files, encoding="utf-8")

    @property
    def combined_path(self) -> Path:
        return self.directory / COMBINED_FILE

    @property
    def error_path(self) -> Path:
        return self.directory / ERROR_FILE

    def write(self, record: LogRecord) -> None:
        if self.closed:
            raise RuntimeError(f"File sink for {self.directory} is closed")
        self._logger.log(_STDLIB_LEVELS[record.level], record.to_json())

    def flush(self) -> None:
        for handler in self._logger.handlers:
            handler.flush()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


class FileLogger(BaseLogger):
    """Logger persisting JSON lines to rotating files, optionally echoing to the console."""

    def __init__(
        self,
        service_name: str = "default-service",
        level: Level | str = Level.INFO,
        *,
        directory: str | Path = "./logs",
        max_files: int = 14,
        max_bytes: int | None = None,
        include_console: bool = False,
        console: LogRenderer | None = None,
        bound: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(service_name, level, bound=bound)
        self.sink = FileSink(directory, max_files=max_files, max_bytes=max_bytes)
        self.console = console or (ConsoleRenderer() if include_console else None)

    @classmethod
    def from_settings(cls, settings: TracelogSettings) -> FileLogger:
        f = settings.file
        console = ConsoleRenderer(colors=settings.console.colors, show_timestamp=settings.console.include_timestamp,
                                  show_meta=settings.console.include_meta) if f.include_console else None
        return cls(settings.service_name, settings.level, directory=f.path, max_files=f.max_files,
                   max_bytes=int(f.max_bytes) if f.max_bytes else None, console=console)

    def _emit(self, record: LogRecord) -> None:
        self.sink.write(record)
        if self.console:
            self.console.render(record)

    async def flush(self) -> None:
        await asyncio.to_thread(self.sink.flush)
        if self.console:
            self.console.flush()

    async def close(self) -> None:
        if self.sink.closed:
            return
        await self.flush()
        await asyncio.to_thread(self.sink.close)
