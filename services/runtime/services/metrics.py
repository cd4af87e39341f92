"""Prometheus metrics for user function invocations."""

import time
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class InvocationTimer:
    """Duration timer that observes into the histogram exactly once."""

    def __init__(self, histogram):
        self._histogram = histogram
        self._start = time.perf_counter()
        self.duration: Optional[float] = None

    @property
    def stopped(self) -> bool:
        return self.duration is not None

    def stop(self) -> Optional[float]:
        """Record the elapsed time. Later calls are no-ops and return None."""
        if self.duration is not None:
            return None
        self.duration = time.perf_counter() - self._start
        self._histogram.observe(self.duration)
        return self.duration


class FunctionMetrics:
    """
    The three per-function instruments.

    Each instrument is labelled with ``<module>-<HTTP method>``.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None, label: str = "method"):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.time_histogram = Histogram(
            "function_duration_seconds",
            "Duration of user function in seconds",
            [label],
            registry=self.registry,
        )
        self.calls_counter = Counter(
            "function_calls_total",
            "Number of calls to user function",
            [label],
            registry=self.registry,
        )
        self.errors_counter = Counter(
            "function_failures_total",
            "Number of exceptions in user function",
            [label],
            registry=self.registry,
        )

    def start_timer(self, label: str) -> InvocationTimer:
        return InvocationTimer(self.time_histogram.labels(label))

    def inc_calls(self, label: str) -> None:
        self.calls_counter.labels(label).inc()

    def inc_errors(self, label: str) -> None:
        self.errors_counter.labels(label).inc()

    def render(self) -> bytes:
        """Current snapshot in the Prometheus text exposition format."""
        return generate_latest(self.registry)
