"""Request-scoped context store backed by contextvars."""

from .context import (
    RequestContext,
    add_metadata,
    context_scope,
    context_snapshot,
    current_context,
    establish,
    get_context_value,
    has_context,
    new_id,
    set_context_value,
    update_context,
)

__all__ = [
    "RequestContext", "establish", "context_scope", "context_snapshot", "current_context", "has_context",
    "get_context_value", "set_context_value", "update_context", "add_metadata", "new_id",
]
