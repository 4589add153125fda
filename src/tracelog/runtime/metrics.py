"""Process-local logger metrics on prometheus_client.

Each LoggerMetrics owns a private CollectorRegistry so the counters never
collide with an application's default registry and can be rebuilt from
scratch with reset_metrics().

Example:
    >>> metrics = get_metrics()
    >>> metrics.record_log("error")
    >>> metrics.value("logger_logs_total", level="error")
    1.0
    >>> print(metrics.render().decode())  # Prometheus text exposition
"""

from __future__ import annotations

from dataclasses import dataclass, field

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

__all__ = ["CONTENT_TYPE_LATEST", "LATENCY_BUCKETS", "LoggerMetrics", "get_metrics", "reset_metrics"]


@dataclass(slots=True)
class LoggerMetrics:
    """Counters, gauge and histogram describing the logging pipeline."""

    registry: CollectorRegistry = field(default_factory=CollectorRegistry)
    logs_total: Counter = field(init=False, repr=False)
    errors_total: Counter = field(init=False, repr=False)
    loki_batch_latency: Histogram = field(init=False, repr=False)
    memory_usage: Gauge = field(init=False, repr=False)
    dropped_total: Counter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        r = self.registry
        self.logs_total = Counter("logger_logs_total", "Log records emitted", ["level"], registry=r)
        self.errors_total = Counter("logger_errors_total", "Error records emitted", registry=r)
        self.loki_batch_latency = Histogram(
            "logger_loki_batch_latency_seconds", "Latency of Loki batch pushes",
            buckets=LATENCY_BUCKETS, registry=r,
        )
        self.memory_usage = Gauge("logger_memory_usage_bytes", "Resident memory of the process", registry=r)
        self.dropped_total = Counter("logger_dropped_logs_total", "Log records discarded", ["reason"], registry=r)

    def record_log(self, level: str) -> None:
        self.logs_total.labels(level=level).inc()
        if level == "error":
            self.errors_total.inc()

    def record_dropped(self, reason: str, count: int = 1) -> None:
        self.dropped_total.labels(reason=reason).inc(count)

    def value(self, name: str, **labels: str) -> float:
        """Current value of one sample, 0.0 when it has not been observed yet."""
        return self.registry.get_sample_value(name, labels) or 0.0

    def total(self, name: str) -> float:
        """Sum of a sample across every label set."""
        return sum(s.value for m in self.registry.collect() for s in m.samples if s.name == name)

    def summary(self) -> dict[str, float]:
        return {
            "logs_total": self.total("logger_logs_total"),
            "errors_total": self.total("logger_errors_total"),
            "dropped_total": self.total("logger_dropped_logs_total"),
        }

    def render(self) -> bytes:
        """Prometheus text exposition of every metric."""
        return generate_latest(self.registry)


_metrics: LoggerMetrics | None = None


def get_metrics() -> LoggerMetrics:
    global _metrics
    if _metrics is None:
        _metrics = LoggerMetrics()
    return _metrics


def reset_metrics() -> LoggerMetrics:
    """Replace the global metrics with a fresh, zeroed set."""
    global _metrics
    _metrics = LoggerMetrics()
    return _metrics
