"""Console logger: human-readable lines on stdout, errors on stderr."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .base import BaseLogger
from .record import Level, LogRecord
from .renderers import ConsoleRenderer, LogRenderer

if TYPE_CHECKING:
    from tracelog.foundation.config import TracelogSettings


class ConsoleLogger(BaseLogger):
    """Logger that renders each record to the terminal.

    Pass renderer=JsonRenderer() for JSON lines instead of the human format.
    """

    def __init__(
        self,
        service_name: str = "default-service",
        level: Level | str = Level.INFO,
        *,
        renderer: LogRenderer | None = None,
        colors: bool | None = None,
        show_timestamp: bool = True,
        show_meta: bool = True,
        bound: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(service_name, level, bound=bound)
        self.renderer = renderer or ConsoleRenderer(colors=colors, show_timestamp=show_timestamp, show_meta=show_meta)

    @classmethod
    def from_settings(cls, settings: TracelogSettings) -> ConsoleLogger:
        c = settings.console
        return cls(settings.service_name, settings.level, colors=c.colors,
                   show_timestamp=c.include_timestamp, show_meta=c.include_meta)

    def _emit(self, record: LogRecord) -> None:
        self.renderer.render(record)

    async def flush(self) -> None:
        self.renderer.flush()
