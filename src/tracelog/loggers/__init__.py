"""Logger variants sharing one capability set.

- ConsoleLogger: human-readable terminal output
- FileLogger: JSON lines in rotating files
- InMemoryLogger: bounded ring with query helpers, for tests
- CentralLogger: console + files + batched Loki pushes
"""

from .base import BaseLogger, Logger
from .central import CentralLogger, LokiBatcher
from .console import ConsoleLogger
from .factory import LoggerKind, create_logger, get_logger, init_logger, is_initialized, shutdown_logger
from .file import FileLogger, FileSink
from .memory import InMemoryLogger
from .record import ErrorDetail, Level, LogRecord
from .renderers import ConsoleRenderer, JsonRenderer, LogRenderer

__all__ = [
    "Logger", "BaseLogger", "ConsoleLogger", "FileLogger", "FileSink", "InMemoryLogger",
    "CentralLogger", "LokiBatcher", "LoggerKind", "create_logger", "init_logger", "get_logger",
    "is_initialized", "shutdown_logger", "Level", "LogRecord", "ErrorDetail",
    "ConsoleRenderer", "JsonRenderer", "LogRenderer",
]
