"""Backoff delay calculation for retry_with_backoff."""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff with additive jitter, capped at max_delay.

    base  = min(initial * multiplier ** attempt, max_delay)
    delay = min(base + random() * jitter_ratio * base, max_delay)

    Attempt numbers are 0-indexed (first retry = attempt 0).

    Attributes:
        initial: First delay in seconds (default: 0.1)
        max_delay: Delay cap in seconds (default: 10.0)
        multiplier: Growth factor per attempt (default: 2.0)
        jitter_ratio: Upper bound of jitter as a fraction of the delay (default: 0.1)
    """

    initial: float = 0.1
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter_ratio: float = 0.1

    def delay(self, attempt: int) -> float:
        base = min(self.initial * (self.multiplier ** attempt), self.max_delay)
        return min(base + random.random() * self.jitter_ratio * base, self.max_delay)
