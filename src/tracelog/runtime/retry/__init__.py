"""Retry with exponential backoff.

Example:
    >>> from tracelog.runtime.retry import RetryConfig, retry_with_backoff
    >>> await retry_with_backoff(push_batch, RetryConfig(max_retries=5), logger=log)
"""

from .backoff import ExponentialBackoff
from .policy import NO_RETRY, RetryConfig, retry_with_backoff

__all__ = ["ExponentialBackoff", "NO_RETRY", "RetryConfig", "retry_with_backoff"]
