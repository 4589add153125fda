"""Circuit breaker guarding async calls to an unreliable backend.

State Machine:
    CLOSED → failures reach threshold → OPEN
    OPEN → reset_timeout elapses → HALF_OPEN (exactly one trial call)
    HALF_OPEN → trial succeeds → CLOSED (failure count zeroed)
    HALF_OPEN → trial fails → OPEN (cooldown restarts)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from tracelog.foundation.errors import CircuitOpenError, JsonDict
from tracelog.runtime.diagnostics import report

if TYPE_CHECKING:
    from tracelog.foundation.config import BreakerSettings
    from tracelog.loggers.base import Logger

T = TypeVar("T")

_log = logging.getLogger("tracelog.breaker")


class CircuitState(StrEnum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing fast
    HALF_OPEN = "half-open"  # Testing recovery


@dataclass(slots=True)
class CircuitBreaker:
    """Async circuit breaker.

    Args:
        failure_threshold: Failures before opening the circuit (default: 5)
        reset_timeout: Seconds the circuit stays open before a trial (default: 60)
        name: Identifier used in logs and CircuitOpenError
        on_state_change: Called with the new state after every transition
        logger: Facade logger for diagnostics; stdlib "tracelog.breaker" otherwise
        clock: Monotonic time source, injectable for tests
        operation: Default operation for call() when none is passed

    Example:
        >>> breaker = CircuitBreaker(failure_threshold=3, reset_timeout=30)
        >>> try:
        ...     data = await breaker.call(fetch)
        ... except CircuitOpenError as e:
        ...     data = cached(e.retry_after)

    Example (monitoring):
        >>> breaker.state        # CircuitState
        >>> breaker.failures     # Current failure count
        >>> breaker.retry_after  # Seconds until the trial call, None unless open
    """

    failure_threshold: int = 5
    reset_timeout: float = 60.0
    name: str = "default"
    on_state_change: Callable[[CircuitState], None] | None = field(default=None, repr=False)
    logger: Logger | None = field(default=None, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    operation: Callable[[], Awaitable[Any]] | None = field(default=None, repr=False)
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failures: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _last_failure: float | None = field(default=None, init=False)
    _trial_in_flight: bool = field(default=False, init=False)
    _rejected: int = field(default=0, init=False)

    @classmethod
    def from_settings(cls, settings: BreakerSettings, *, name: str = "default", **kw: Any) -> CircuitBreaker:
        return cls(failure_threshold=settings.failure_threshold, reset_timeout=settings.reset_timeout, name=name, **kw)

    def _transition(self, new: CircuitState) -> None:
        if new is self._state:
            return
        old, self._state = self._state, new
        match new:
            case CircuitState.CLOSED: self._failures = 0
            case CircuitState.OPEN: self._opened_at = self.clock()
            case _: pass
        report(self.logger, _log, "warn" if new is CircuitState.OPEN else "info",
               f"Circuit breaker state changed: {old} -> {new}", {"breaker": self.name, "from": old, "to": new})
        if self.on_state_change:
            self.on_state_change(new)

    def _evaluate(self) -> CircuitState:
        """Move OPEN to HALF_OPEN once the cooldown has elapsed."""
        if self._state is CircuitState.OPEN and self.clock() - self._opened_at >= self.reset_timeout:
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    # ─────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────

    async def call(self, operation: Callable[[], Awaitable[T]] | None = None) -> T:
        """Run operation through the breaker.

        Raises CircuitOpenError without invoking the operation while open, or
        while another caller holds the half-open trial. Operation failures are
        recorded and re-raised unchanged.
        """
        op = operation or self.operation
        if op is None:
            raise ValueError("No operation passed and none bound to the circuit breaker")
        state = self._evaluate()
        if state is CircuitState.OPEN or (state is CircuitState.HALF_OPEN and self._trial_in_flight):
            self._rejected += 1
            retry_after = self.retry_after
            report(self.logger, _log, "warn", f"Circuit breaker '{self.name}' rejected call",
                   {"breaker": self.name, "state": state, "retry_after": retry_after})
            raise CircuitOpenError(self.name, retry_after)

        trial = state is CircuitState.HALF_OPEN
        self._trial_in_flight = self._trial_in_flight or trial
        try:
            result = await op()
        except Exception:
            self.record_failure()
            raise
        finally:
            if trial:
                self._trial_in_flight = False
        self.record_success()
        return result

    def record_success(self) -> None:
        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._failures += 1
        self._last_failure = self.clock()
        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self._state is CircuitState.CLOSED and self._failures >= self.failure_threshold:
            report(self.logger, _log, "error", "Circuit breaker opened due to repeated failures",
                   {"breaker": self.name, "failures": self._failures, "threshold": self.failure_threshold})
            self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the circuit closed."""
        self._trial_in_flight = False
        self._transition(CircuitState.CLOSED)
        self._failures = 0

    # ─────────────────────────────────────────────────────────────────
    # Observability Properties
    # ─────────────────────────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        """Current circuit state (evaluates transitions)."""
        return self._evaluate()

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    @property
    def retry_after(self) -> float | None:
        """Seconds until the circuit admits a trial, or None if not open."""
        if self._evaluate() is not CircuitState.OPEN:
            return None
        return max(0.0, self.reset_timeout - (self.clock() - self._opened_at))

    @property
    def stats(self) -> JsonDict:
        return {
            "name": self.name, "state": str(self.state), "failures": self._failures,
            "failure_threshold": self.failure_threshold, "reset_timeout": self.reset_timeout,
            "retry_after": self.retry_after, "rejected": self._rejected, "last_failure": self._last_failure,
        }
