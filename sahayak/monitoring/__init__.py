"""
Request performance monitoring.
"""

from sahayak.monitoring.performance import EndpointMetrics, PerformanceMonitor

__all__ = ["EndpointMetrics", "PerformanceMonitor"]
