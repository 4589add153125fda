"""Redaction of sensitive values before they reach a log record.

Keys are compared case-insensitively against each sensitive fragment as a
substring, so "userPassword" and "X-Auth-Token" both match. The input is never
mutated; a new structure is returned.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

REDACTED = "[REDACTED]"
CIRCULAR = "[Circular]"

DEFAULT_SENSITIVE_FIELDS: tuple[str, ...] = ("password", "token", "secret", "apiKey")
ERROR_SENSITIVE_FIELDS: tuple[str, ...] = (*DEFAULT_SENSITIVE_FIELDS, "authorization")


def is_sensitive(key: object, fragments: Iterable[str] = DEFAULT_SENSITIVE_FIELDS) -> bool:
    name = str(key).lower()
    return any(f.lower() in name for f in fragments)


def sanitize_data(value: object, sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS) -> object:
    """Return a copy of value with sensitive mapping entries replaced by "[REDACTED]".

    Mappings, lists and tuples are walked recursively; a container that is
    re-entered on the current path becomes "[Circular]".
    """
    return _walk(value, tuple(f.lower() for f in sensitive_fields), set())


def _walk(value: object, fragments: tuple[str, ...], path: set[int]) -> object:
    if not isinstance(value, (Mapping, list, tuple)):
        return value
    if (key := id(value)) in path:
        return CIRCULAR
    path.add(key)
    try:
        if isinstance(value, Mapping):
            return {k: REDACTED if is_sensitive(k, fragments) else _walk(v, fragments, path)
                    for k, v in value.items()}
        items = [_walk(v, fragments, path) for v in value]
        return items if isinstance(value, list) else tuple(items)
    finally:
        path.discard(key)
