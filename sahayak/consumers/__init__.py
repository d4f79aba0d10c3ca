"""
Consumer state containers built on the request coordinator.
"""

from sahayak.consumers.base import OptimizedConsumer
from sahayak.consumers.dashboard import (
    DashboardConsumer,
    DashboardData,
    DashboardService,
    DashboardState,
)
from sahayak.consumers.state import ConsumerState

__all__ = [
    "ConsumerState",
    "OptimizedConsumer",
    "DashboardConsumer",
    "DashboardData",
    "DashboardService",
    "DashboardState",
]
