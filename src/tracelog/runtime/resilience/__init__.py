"""Resilience primitives: circuit breaker and logged fallbacks."""

from .breaker import CircuitBreaker, CircuitState
from .fallback import safe_async, with_graceful_degradation

__all__ = ["CircuitBreaker", "CircuitState", "safe_async", "with_graceful_degradation"]
