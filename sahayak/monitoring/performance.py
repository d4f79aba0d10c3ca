"""
Sahayak Performance Monitor
Per-endpoint response time and error tracking for coordinated calls
"""

import statistics
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class EndpointMetrics:
    """Metrics for a single endpoint or operation key"""

    endpoint: str
    success_count: int = 0
    error_count: int = 0
    slow_count: int = 0
    min_time_ms: float = float("inf")
    max_time_ms: float = 0
    response_times: Deque[float] = field(default_factory=lambda: deque(maxlen=100))

    @property
    def total_count(self) -> int:
        return self.success_count + self.error_count

    @property
    def error_rate(self) -> float:
        """Failed fraction of all recorded requests (0.0 - 1.0)"""
        if self.total_count == 0:
            return 0.0
        return self.error_count / self.total_count

    @property
    def avg_time_ms(self) -> float:
        """Calculate average response time"""
        if not self.response_times:
            return 0.0
        return statistics.mean(self.response_times)

    @property
    def p95_time_ms(self) -> float:
        """Calculate 95th percentile response time"""
        if not self.response_times:
            return 0.0
        sorted_times = sorted(self.response_times)
        index = int(len(sorted_times) * 0.95)
        return sorted_times[min(index, len(sorted_times) - 1)]

    def record(self, success: bool, time_ms: float, slow: bool = False):
        """Record a request"""
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
        if slow:
            self.slow_count += 1

        self.min_time_ms = min(self.min_time_ms, time_ms)
        self.max_time_ms = max(self.max_time_ms, time_ms)
        self.response_times.append(time_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "endpoint": self.endpoint,
            "total_count": self.total_count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "slow_count": self.slow_count,
            "error_rate": round(self.error_rate, 3),
            "avg_time_ms": round(self.avg_time_ms, 1),
            "min_time_ms": round(self.min_time_ms, 1) if self.response_times else 0.0,
            "max_time_ms": round(self.max_time_ms, 1),
            "p95_time_ms": round(self.p95_time_ms, 1),
        }


class PerformanceMonitor:
    """Request performance monitor"""

    def __init__(self, slow_threshold_seconds: float = 5.0, history_size: int = 100):
        """
        Initialize performance monitor.

        Args:
            slow_threshold_seconds: Requests slower than this log a warning
            history_size: Response times kept per endpoint
        """
        self.slow_threshold_ms = slow_threshold_seconds * 1000
        self.history_size = history_size
        self.endpoint_metrics: Dict[str, EndpointMetrics] = {}
        self.cache_hits = 0
        self.cache_misses = 0

        logger.info("Performance monitor initialized")

    async def track_request(self, endpoint: str, request: Callable[[], Awaitable[T]]) -> T:
        """
        Await `request`, recording its duration and outcome under `endpoint`.

        The request's exception is re-raised after being recorded.
        """
        start = time.perf_counter()
        try:
            result = await request()
        except BaseException:
            self.record_request(endpoint, False, (time.perf_counter() - start) * 1000)
            raise
        self.record_request(endpoint, True, (time.perf_counter() - start) * 1000)
        return result

    def record_request(self, endpoint: str, success: bool, time_ms: float):
        """Record a completed request"""
        metrics = self.endpoint_metrics.get(endpoint)
        if metrics is None:
            metrics = EndpointMetrics(
                endpoint, response_times=deque(maxlen=self.history_size)
            )
            self.endpoint_metrics[endpoint] = metrics

        slow = time_ms > self.slow_threshold_ms
        if slow:
            logger.warning(f"Slow request: {endpoint} took {time_ms:.0f}ms")

        metrics.record(success, time_ms, slow)

    def record_cache_hit(self):
        """Record a cache hit"""
        self.cache_hits += 1

    def record_cache_miss(self):
        """Record a cache miss"""
        self.cache_misses += 1

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total else 0.0

    def get_endpoint_metrics(self, endpoint: str) -> Optional[Dict[str, Any]]:
        metrics = self.endpoint_metrics.get(endpoint)
        return metrics.to_dict() if metrics else None

    def get_performance_report(self) -> Dict[str, Any]:
        """Summary across all endpoints plus per-endpoint detail"""
        total = sum(m.total_count for m in self.endpoint_metrics.values())
        errors = sum(m.error_count for m in self.endpoint_metrics.values())
        all_times = [t for m in self.endpoint_metrics.values() for t in m.response_times]

        return {
            "total_requests": total,
            "total_errors": errors,
            "error_rate": round(errors / total, 3) if total else 0.0,
            "avg_time_ms": round(statistics.mean(all_times), 1) if all_times else 0.0,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": round(self.cache_hit_rate, 3),
            "endpoints": {
                name: metrics.to_dict() for name, metrics in self.endpoint_metrics.items()
            },
        }

    def reset(self):
        """Drop all recorded metrics"""
        self.endpoint_metrics.clear()
        self.cache_hits = 0
        self.cache_misses = 0
