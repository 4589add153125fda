"""Tests for exponential backoff and retry_with_backoff."""

from __future__ import annotations

import logging
import random

import pytest
from pydantic import ValidationError

from tracelog.foundation.errors import ErrorCode, TransportError
from tracelog.loggers import InMemoryLogger
from tracelog.runtime.retry import NO_RETRY, ExponentialBackoff, RetryConfig, retry_with_backoff


class Flaky:
    """Async operation failing `failures` times before returning `result`."""

    def __init__(self, failures: int, exc: type[Exception] = ConnectionError, result: str = "ok") -> None:
        self.failures, self.exc, self.result = failures, exc, result
        self.calls = 0
        self.raised: list[Exception] = []

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            error = self.exc(f"failure {self.calls}")
            self.raised.append(error)
            raise error
        return self.result


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(delays: list[float]):
    async def sleep(delay: float) -> None:
        delays.append(delay)
    return sleep


# ─────────────────────────────────────────────────────────────────────────────
# ExponentialBackoff
# ─────────────────────────────────────────────────────────────────────────────


def test_backoff_grows_exponentially_with_jitter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(random, "random", lambda: 1.0)
    backoff = ExponentialBackoff(initial=0.1, max_delay=10.0, multiplier=2.0, jitter_ratio=0.1)
    assert backoff.delay(0) == pytest.approx(0.11)
    assert backoff.delay(3) == pytest.approx(0.88)


def test_backoff_without_jitter_is_deterministic(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(random, "random", lambda: 0.0)
    assert [ExponentialBackoff().delay(n) for n in range(3)] == pytest.approx([0.1, 0.2, 0.4])


def test_backoff_never_exceeds_cap() -> None:
    backoff = ExponentialBackoff(initial=1.0, max_delay=1.5, multiplier=10.0, jitter_ratio=1.0)
    assert all(backoff.delay(n) <= 1.5 for n in range(10))


# ─────────────────────────────────────────────────────────────────────────────
# retry_with_backoff
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_success_on_first_attempt(fake_sleep, delays: list[float]) -> None:
    op = Flaky(0)
    assert await retry_with_backoff(op, sleep=fake_sleep) == "ok"
    assert op.calls == 1 and delays == []


@pytest.mark.asyncio
async def test_retries_until_success(fake_sleep, delays: list[float]) -> None:
    op = Flaky(2)
    assert await retry_with_backoff(op, RetryConfig(max_retries=3), sleep=fake_sleep) == "ok"
    assert op.calls == 3
    assert len(delays) == 2
    assert 0.1 <= delays[0] <= 0.11
    assert 0.2 <= delays[1] <= 0.22


@pytest.mark.asyncio
async def test_exhaustion_reraises_last_error(fake_sleep, delays: list[float]) -> None:
    op = Flaky(10)
    with pytest.raises(ConnectionError) as info:
        await retry_with_backoff(op, RetryConfig(max_retries=2), sleep=fake_sleep)
    assert op.calls == 3
    assert info.value is op.raised[-1]
    assert len(delays) == 2


@pytest.mark.asyncio
async def test_no_retry_makes_single_attempt(fake_sleep, delays: list[float]) -> None:
    op = Flaky(1)
    with pytest.raises(ConnectionError):
        await retry_with_backoff(op, NO_RETRY, sleep=fake_sleep)
    assert op.calls == 1 and delays == []


@pytest.mark.asyncio
async def test_non_retryable_error_raises_immediately(fake_sleep, delays: list[float]) -> None:
    op = Flaky(1, exc=ValueError)
    with pytest.raises(ValueError):
        await retry_with_backoff(op, RetryConfig(retry_on=ConnectionError), sleep=fake_sleep)
    assert op.calls == 1 and delays == []


@pytest.mark.asyncio
async def test_logs_attempts_and_final_failure(fake_sleep) -> None:
    log = InMemoryLogger(level="debug")
    with pytest.raises(ConnectionError):
        await retry_with_backoff(Flaky(5), RetryConfig(max_retries=2), logger=log, sleep=fake_sleep)
    debug = [r.message for r in log.get_logs_by_level("debug")]
    assert len(debug) == 2
    assert debug[0].startswith("Retry attempt 1/2 after ")
    [final] = log.get_logs_by_level("error")
    assert final.message == "All retry attempts failed"
    assert final.metadata["attempts"] == 3
    assert final.error is not None and final.error.type == "ConnectionError"


@pytest.mark.asyncio
async def test_falls_back_to_stdlib_logging(fake_sleep, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="tracelog.retry"):
        with pytest.raises(ConnectionError):
            await retry_with_backoff(Flaky(5), RetryConfig(max_retries=1), sleep=fake_sleep)
    messages = [r.getMessage() for r in caplog.records if r.name == "tracelog.retry"]
    assert any(m.startswith("Retry attempt 1/1") for m in messages)
    assert any(m.startswith("All retry attempts failed") for m in messages)


# ─────────────────────────────────────────────────────────────────────────────
# RetryConfig
# ─────────────────────────────────────────────────────────────────────────────


def test_config_bounds() -> None:
    with pytest.raises(ValidationError):
        RetryConfig(max_retries=11)
    with pytest.raises(ValidationError):
        RetryConfig(multiplier=0.5)


def test_config_is_frozen() -> None:
    with pytest.raises(ValidationError):
        RetryConfig().max_retries = 5  # type: ignore[misc]


def test_config_retryable_types() -> None:
    config = RetryConfig(retry_on=(ConnectionError, TimeoutError))
    assert config.is_retryable(ConnectionResetError())
    assert not config.is_retryable(ValueError())


def test_config_retryable_codes() -> None:
    """With retryable_codes set, the exception must also carry one of the codes."""
    config = RetryConfig(retry_on=TransportError, retryable_codes=frozenset({ErrorCode.TRANSPORT_ERROR}))
    assert config.is_retryable(TransportError("timeout"))
    assert config.is_retryable(TransportError("unavailable", status_code=503))
    assert not config.is_retryable(TransportError("bad request", status_code=400))
    assert not config.is_retryable(ConnectionError())
