"""Retry with exponential backoff for async operations.

Example:
    >>> config = RetryConfig(max_retries=5, initial_delay=0.2)
    >>> result = await retry_with_backoff(lambda: client.post(url), config)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Annotated, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, field_validator

from tracelog.runtime.diagnostics import report

from .backoff import ExponentialBackoff

if TYPE_CHECKING:
    from tracelog.foundation.config import RetrySettings
    from tracelog.loggers.base import Logger

T = TypeVar("T")

_log = logging.getLogger("tracelog.retry")


class RetryConfig(BaseModel):
    """Immutable retry configuration.

    Attributes:
        max_retries: Retries after the first attempt (0 = single attempt)
        initial_delay: Seconds before the first retry
        max_delay: Cap for any single delay
        multiplier: Delay growth factor
        jitter_ratio: Jitter upper bound as a fraction of the delay
        retry_on: Exception types that trigger a retry; others raise immediately
        retryable_codes: When set, a matching exception must also carry one of these
            codes (its `code` attribute) to be retried
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid", validate_default=True)

    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    initial_delay: PositiveFloat = 0.1
    max_delay: PositiveFloat = 10.0
    multiplier: Annotated[float, Field(ge=1.0)] = 2.0
    jitter_ratio: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    retryable_codes: frozenset[str] | None = None

    @field_validator("retry_on", mode="before")
    @classmethod
    def _as_tuple(cls, v: object) -> object:
        return (v,) if isinstance(v, type) else tuple(v)  # type: ignore[arg-type]

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryConfig:
        return cls(max_retries=settings.max_retries, initial_delay=settings.initial_delay,
                   max_delay=settings.max_delay, multiplier=settings.multiplier)

    @property
    def backoff(self) -> ExponentialBackoff:
        return ExponentialBackoff(self.initial_delay, self.max_delay, self.multiplier, self.jitter_ratio)

    def is_retryable(self, exc: BaseException) -> bool:
        if not isinstance(exc, self.retry_on):
            return False
        return self.retryable_codes is None or getattr(exc, "code", None) in self.retryable_codes


NO_RETRY = RetryConfig(max_retries=0)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    logger: Logger | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Invoke operation, retrying retryable failures with exponential backoff.

    Returns the first successful result. After the last attempt fails an error
    entry is logged and the last exception is re-raised unchanged.
    """
    cfg = config or RetryConfig()
    backoff = cfg.backoff
    attempts = cfg.max_retries + 1
    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            if not cfg.is_retryable(e):
                raise
            if attempt + 1 >= attempts:
                report(logger, _log, "error", "All retry attempts failed",
                       {"attempts": attempts, "error": str(e)}, e)
                raise
            delay = backoff.delay(attempt)
            report(logger, _log, "debug", f"Retry attempt {attempt + 1}/{cfg.max_retries} after {round(delay * 1000)}ms",
                   {"attempt": attempt + 1, "max_retries": cfg.max_retries, "delay_ms": round(delay * 1000, 1),
                    "error": str(e)})
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
