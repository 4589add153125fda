"""Foundation - configuration and error types shared by every tracelog layer."""

from .config import TracelogSettings, get_settings
from .errors import ConfigurationError, ErrorCode, TracelogError

__all__ = ["TracelogSettings", "get_settings", "ConfigurationError", "ErrorCode", "TracelogError"]
