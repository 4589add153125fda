"""Tests for timers, error wrappers, call tracing, batches and audit entries."""

from __future__ import annotations

import pytest

from tracelog.foundation.errors import LoggableError, LoggerNotInitializedError
from tracelog.loggers import InMemoryLogger, init_logger
from tracelog.runtime.utils import (
    BatchLogger,
    audit_log,
    create_timer,
    log_function_call,
    with_error_logging,
    with_error_logging_sync,
)


# ═════════════════════════════════════════════════════════════════════════════
# Timers
# ═════════════════════════════════════════════════════════════════════════════


def test_timer_logs_debug_with_duration(memory_logger: InMemoryLogger) -> None:
    timer = create_timer("db query", memory_logger)
    result = timer.end({"rows": 3})
    [record] = memory_logger.get_logs_by_level("debug")
    assert record.message == f"db query completed in {result.duration_ms}ms"
    assert record.metadata["rows"] == 3
    assert record.metadata["duration_ms"] == result.duration_ms
    assert "memory_used" in record.metadata


def test_slow_timer_warns(memory_logger: InMemoryLogger) -> None:
    create_timer("export", memory_logger, slow_threshold_ms=-1).end()
    [record] = memory_logger.get_logs()
    assert record.level.label == "warn"


def test_timer_context_manager_marks_failure(memory_logger: InMemoryLogger) -> None:
    with pytest.raises(KeyError):
        with create_timer("lookup", memory_logger) as timer:
            raise KeyError("id")
    assert timer.result is not None
    [record] = memory_logger.get_logs()
    assert record.metadata["failed"] is True
    assert record.metadata["error"] == "'id'"


def test_timer_uses_global_logger() -> None:
    log = init_logger(logger=InMemoryLogger(level="debug"))
    create_timer("global").end()
    assert len(log.get_logs()) == 1  # type: ignore[attr-defined]


def test_timer_without_any_logger_raises() -> None:
    with pytest.raises(LoggerNotInitializedError):
        create_timer("orphan").end()


# ═════════════════════════════════════════════════════════════════════════════
# Error Wrappers
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_with_error_logging_success(memory_logger: InMemoryLogger) -> None:
    async def work() -> str:
        return "done"

    assert await with_error_logging(work, "sync orders", {"batch": 1}, logger=memory_logger) == "done"
    [record] = memory_logger.get_logs()
    assert record.message.startswith("sync orders completed in ")
    assert record.metadata["batch"] == 1


@pytest.mark.asyncio
async def test_with_error_logging_failure(memory_logger: InMemoryLogger) -> None:
    async def work() -> str:
        raise ConnectionError("gone")

    with pytest.raises(ConnectionError):
        await with_error_logging(work, "sync orders", {"batch": 1}, logger=memory_logger)
    [record] = memory_logger.get_logs()
    assert (record.level.label, record.message) == ("error", "sync orders failed")
    assert record.metadata == {"batch": 1}
    assert record.error is not None and record.error.message == "gone"


def test_with_error_logging_sync(memory_logger: InMemoryLogger) -> None:
    assert with_error_logging_sync(lambda: 5, "compute", logger=memory_logger) == 5
    with pytest.raises(ZeroDivisionError):
        with_error_logging_sync(lambda: 1 / 0, "divide", logger=memory_logger)
    assert [r.level.label for r in memory_logger.get_logs()] == ["debug", "error"]
    assert memory_logger.get_logs()[-1].message == "divide failed"


# ═════════════════════════════════════════════════════════════════════════════
# Call Tracing
# ═════════════════════════════════════════════════════════════════════════════


def test_log_function_call_sync(memory_logger: InMemoryLogger) -> None:
    @log_function_call(logger=memory_logger)
    def add(a: int, b: int) -> int:
        return a + b

    assert add(2, 3) == 5
    assert add.__name__ == "add"
    entering, exiting = memory_logger.get_logs()
    assert (entering.message, entering.metadata) == ("Entering add", {"args": [2, 3]})
    assert (exiting.message, exiting.metadata) == ("Exiting add", {"result": 5})


@pytest.mark.asyncio
async def test_log_function_call_async_failure(memory_logger: InMemoryLogger) -> None:
    @log_function_call(name="charge", logger=memory_logger)
    async def charge(order_id: int, *, amount: int) -> None:
        raise ValueError("declined")

    with pytest.raises(ValueError):
        await charge(7, amount=10)
    entering, failed = memory_logger.get_logs()
    assert entering.metadata == {"args": [7], "kwargs": {"amount": 10}}
    assert (failed.level.label, failed.message) == ("error", "Error in charge")


def test_bare_decorator_uses_global_logger() -> None:
    log = init_logger(logger=InMemoryLogger(level="debug"))

    @log_function_call
    def ping() -> str:
        return "pong"

    assert ping() == "pong"
    assert [r.message for r in log.get_logs()] == ["Entering ping", "Exiting ping"]  # type: ignore[attr-defined]


# ═════════════════════════════════════════════════════════════════════════════
# Batches, Audits & Loggable Errors
# ═════════════════════════════════════════════════════════════════════════════


def test_batch_logger_flushes_in_order(memory_logger: InMemoryLogger) -> None:
    batch = BatchLogger(memory_logger).info("one").warn("two", {"k": 1}).error("three").debug("four")
    assert len(batch) == 4
    assert memory_logger.get_logs() == []
    batch.flush()
    assert [(r.level.label, r.message) for r in memory_logger.get_logs()] == [
        ("info", "one"), ("warn", "two"), ("error", "three"), ("debug", "four"),
    ]
    assert len(batch) == 0
    batch.flush()
    assert len(memory_logger.get_logs()) == 4


def test_batch_logger_clear(memory_logger: InMemoryLogger) -> None:
    batch = BatchLogger(memory_logger).add("http", "GET /")
    batch.clear()
    batch.flush()
    assert memory_logger.get_logs() == []


def test_audit_log(memory_logger: InMemoryLogger) -> None:
    audit_log("delete", "user:42", actor="admin", details={"reason": "gdpr"}, logger=memory_logger)
    [record] = memory_logger.get_logs()
    assert record.message == "Audit: delete on user:42"
    assert record.metadata == {"audit_action": "delete", "audit_resource": "user:42", "actor": "admin",
                               "reason": "gdpr"}


def test_loggable_error_logs_itself(memory_logger: InMemoryLogger) -> None:
    err = LoggableError("quota exceeded", "QUOTA", {"limit": 10})
    err.log(logger=memory_logger)
    err.log("warn", logger=memory_logger)
    first, second = memory_logger.get_logs()
    assert (first.level.label, first.metadata) == ("error", {"code": "QUOTA", "limit": 10})
    assert first.error is not None and first.error.type == "LoggableError"
    assert (second.level.label, second.message) == ("warn", "quota exceeded")


def test_loggable_error_uses_global_logger() -> None:
    log = init_logger(logger=InMemoryLogger())
    LoggableError("bad", "E1").log("info")
    assert log.get_logs()[0].metadata == {"code": "E1"}  # type: ignore[attr-defined]
