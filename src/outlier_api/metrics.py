from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock
from typing import TypedDict

from prometheus_client import CollectorRegistry, Histogram, generate_latest
from prometheus_client import Counter as PromCounter

LATENCY_BUCKET_THRESHOLDS_MS = (1, 10, 100, 1000, 10000)


class MetricsSnapshot(TypedDict):
    calculation_counts: dict[str, int]
    http_status_counts: dict[str, int]
    latency_ms_buckets: dict[str, int]
    error_counts: dict[str, int]
    values_processed: int


def _latency_bucket(latency_ms: float) -> str:
    if latency_ms < 0:
        latency_ms = 0
    for threshold in LATENCY_BUCKET_THRESHOLDS_MS:
        if latency_ms <= threshold:
            return f"le_{threshold}ms"
    return f"gt_{LATENCY_BUCKET_THRESHOLDS_MS[-1]}ms"


@dataclass
class ServiceMetrics:
    lock: Lock = field(default_factory=Lock)
    calculation_counts: Counter[str] = field(default_factory=Counter)
    http_status_counts: Counter[int] = field(default_factory=Counter)
    latency_ms_buckets: Counter[str] = field(default_factory=Counter)
    error_counts: Counter[str] = field(default_factory=Counter)
    values_processed: int = 0
    _registry: CollectorRegistry = field(init=False, repr=False)
    _calculation_total: PromCounter = field(init=False, repr=False)
    _values_total: PromCounter = field(init=False, repr=False)
    _http_status_total: PromCounter = field(init=False, repr=False)
    _error_total: PromCounter = field(init=False, repr=False)
    _calculation_latency_ms: Histogram = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._registry = CollectorRegistry()
        self._calculation_total = PromCounter(
            "outlier_calculation_total",
            "Total percentile calculations by input source.",
            ["source"],
            registry=self._registry,
        )
        self._values_total = PromCounter(
            "outlier_values_processed_total",
            "Total dataset values passed to the percentile engine.",
            registry=self._registry,
        )
        self._http_status_total = PromCounter(
            "outlier_http_status_total",
            "Total HTTP responses by status code.",
            ["status_code"],
            registry=self._registry,
        )
        self._error_total = PromCounter(
            "outlier_error_total",
            "Total rejected requests by error code.",
            ["error_code"],
            registry=self._registry,
        )
        histogram_buckets = tuple(float(value) for value in LATENCY_BUCKET_THRESHOLDS_MS)
        self._calculation_latency_ms = Histogram(
            "outlier_calculation_latency_ms",
            "Percentile calculation latency in milliseconds.",
            buckets=histogram_buckets + (float("inf"),),
            registry=self._registry,
        )

    def record_calculation(self, source: str, count: int, latency_ms: float) -> None:
        bucket = _latency_bucket(latency_ms)
        with self.lock:
            self.calculation_counts[source] += 1
            self.values_processed += count
            self.latency_ms_buckets[bucket] += 1
            self._calculation_total.labels(source=source).inc()
            self._values_total.inc(count)
            self._calculation_latency_ms.observe(max(0.0, latency_ms))

    def record_http_status(self, status_code: int) -> None:
        with self.lock:
            self.http_status_counts[status_code] += 1
            self._http_status_total.labels(status_code=str(status_code)).inc()

    def record_error(self, error_code: str) -> None:
        with self.lock:
            self.error_counts[error_code] += 1
            self._error_total.labels(error_code=error_code).inc()

    def snapshot(self) -> MetricsSnapshot:
        with self.lock:
            return {
                "calculation_counts": dict(self.calculation_counts),
                "http_status_counts": {
                    str(status): count for status, count in self.http_status_counts.items()
                },
                "latency_ms_buckets": dict(self.latency_ms_buckets),
                "error_counts": dict(self.error_counts),
                "values_processed": self.values_processed,
            }

    def prometheus_text(self) -> str:
        return generate_latest(self._registry).decode("utf-8")
