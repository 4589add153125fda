"""Transports to remote log aggregation backends."""

from .loki import PUSH_PATH, LokiTransport

__all__ = ["LokiTransport", "PUSH_PATH"]
