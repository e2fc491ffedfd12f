# resize_proxy/infra/metrics.py
"""
In-process resize metrics.

Counters and windowed histograms keyed as ``name{label=value,...}``.  Each
worker process keeps its own numbers; ``GET /metrics`` returns a snapshot.
"""
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Deque, Dict

from resize_proxy.infra.logging_config import get_logger

logger = get_logger(__name__)

# Observations kept per histogram for min/max/percentiles.
# count, sum and avg cover the whole process lifetime.
HISTOGRAM_WINDOW = 1024


def metric_key(name: str, labels: dict | None = None) -> str:
    """``resize_requests_total`` + ``{"mode": "fit"}`` → ``resize_requests_total{mode=fit}``"""
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}{{{rendered}}}"


@dataclass
class Histogram:
    """Distribution of observed values (durations, byte counts)."""
    samples: Deque[float] = field(default_factory=lambda: deque(maxlen=HISTOGRAM_WINDOW))
    count: int = 0
    total: float = 0.0

    def observe(self, value: float) -> None:
        self.samples.append(value)
        self.count += 1
        self.total += value

    def get_stats(self) -> dict:
        if not self.count:
            return {"count": 0, "sum": 0.0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0, "p99": 0}

        window = sorted(self.samples)
        last = len(window) - 1

        def quantile(q: float) -> float:
            return window[min(int(len(window) * q), last)]

        return {
            "count": self.count,
            "sum": self.total,
            "min": window[0],
            "max": window[-1],
            "avg": self.total / self.count,
            "p50": quantile(0.50),
            "p95": quantile(0.95),
            "p99": quantile(0.99),
        }


class MetricsCollector:
    """Thread-safe store for counters and histograms."""

    def __init__(self):
        self._lock = Lock()
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, Histogram] = {}

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = metric_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        key = metric_key(name, labels)
        with self._lock:
            histogram = self._histograms.get(key)
            if histogram is None:
                histogram = self._histograms[key] = Histogram()
            histogram.observe(value)

    def get_metrics(self) -> dict:
        """Snapshot of every counter and histogram"""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "histograms": {k: h.get_stats() for k, h in self._histograms.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.info("Metrics reset")


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Process-wide collector used by AppMetrics and GET /metrics"""
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Record the duration of a ``with`` block, including failed ones."""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self.elapsed: float | None = None
        self._started = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed = time.perf_counter() - self._started
        observe_histogram(self.metric_name, self.elapsed, **self.labels)


class AppMetrics:
    """Resize pipeline metrics"""

    @staticmethod
    def resize_requested(mode: str) -> None:
        inc_counter("resize_requests_total", mode=mode)

    @staticmethod
    def resize_succeeded(mode: str) -> None:
        inc_counter("resize_success_total", mode=mode)

    @staticmethod
    def resize_failed(kind: str) -> None:
        inc_counter("resize_failures_total", kind=kind)

    @staticmethod
    def source_downloaded(size_bytes: int) -> None:
        observe_histogram("source_download_bytes", float(size_bytes))

    @staticmethod
    def track_resize_time(mode: str) -> Timer:
        return Timer("resize_duration_seconds", mode=mode)
