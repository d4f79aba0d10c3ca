"""
Request orchestration: deduplication, batching, tiered loading,
optimistic updates and background refresh.
"""

from sahayak.orchestration.coordinator import CallResult, OrchestratorStats, RequestCoordinator
from sahayak.orchestration.optimistic import OptimisticUpdateController
from sahayak.orchestration.progressive import (
    ProgressiveLoader,
    ProgressStream,
    ProgressTier,
    classify_operation,
    partition_operations,
)
from sahayak.orchestration.refresh import BackgroundRefreshScheduler, StalenessPolicy

__all__ = [
    "CallResult",
    "OrchestratorStats",
    "RequestCoordinator",
    "OptimisticUpdateController",
    "ProgressiveLoader",
    "ProgressStream",
    "ProgressTier",
    "classify_operation",
    "partition_operations",
    "BackgroundRefreshScheduler",
    "StalenessPolicy",
]
