"""
Prometheus metrics for request coordination.

Every collector is registered on the registry passed in, so tests and
embedding applications can keep separate registries.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class CoordinatorMetrics:
    """
    Prometheus collectors for the request coordinator and cache.

    Example:
        ```python
        registry = CollectorRegistry()
        metrics = CoordinatorMetrics(registry)
        coordinator = RequestCoordinator(cache, metrics=metrics)
        ```
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics.

        Args:
            registry: Prometheus registry (None = a fresh private registry)
        """
        self.registry = registry if registry is not None else CollectorRegistry()

        self.operations_total = Counter(
            "sahayak_operations_total",
            "Coordinated operations by outcome",
            ["result"],  # "success", "error", "cache_hit"
            registry=self.registry,
        )

        self.duplicates_rejected_total = Counter(
            "sahayak_duplicate_operations_total",
            "Operations rejected because the same key was in flight",
            registry=self.registry,
        )

        self.operation_duration_seconds = Histogram(
            "sahayak_operation_duration_seconds",
            "Duration of coordinated operations",
            ["result"],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.in_flight_operations = Gauge(
            "sahayak_in_flight_operations",
            "Operations currently in flight",
            registry=self.registry,
        )

        self.cache_lookups_total = Counter(
            "sahayak_cache_lookups_total",
            "Coordinator cache lookups",
            ["result"],  # "hit", "miss"
            registry=self.registry,
        )

        self.background_refresh_failures_total = Counter(
            "sahayak_background_refresh_failures_total",
            "Silent refreshes that raised",
            registry=self.registry,
        )

    def record_operation(self, result: str, duration_seconds: float) -> None:
        self.operations_total.labels(result=result).inc()
        self.operation_duration_seconds.labels(result=result).observe(duration_seconds)

    def record_duplicate(self) -> None:
        self.duplicates_rejected_total.inc()

    def record_cache_lookup(self, hit: bool) -> None:
        self.cache_lookups_total.labels(result="hit" if hit else "miss").inc()

    def record_refresh_failure(self) -> None:
        self.background_refresh_failures_total.inc()

    def set_in_flight(self, count: int) -> None:
        self.in_flight_operations.set(count)

    def export(self) -> bytes:
        """Render metrics in Prometheus text format."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
