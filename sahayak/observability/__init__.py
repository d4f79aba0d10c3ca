"""
Prometheus observability for Sahayak.
"""

from sahayak.observability.metrics import CoordinatorMetrics

__all__ = ["CoordinatorMetrics"]
