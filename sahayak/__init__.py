"""
Sahayak - request optimization and caching core.

Multi-tier caching, request deduplication and batching, progressive
loading, optimistic updates and background refresh for async clients.
"""

__version__ = "1.0.0"

from sahayak.cache import CacheEntry, CacheGroups, CacheManager, CachePriority, CacheStats, OfflineFirstCache
from sahayak.config import SahayakSettings, get_settings, get_settings_for_profile
from sahayak.consumers import ConsumerState, DashboardConsumer, OptimizedConsumer
from sahayak.core import Container, SahayakRuntime
from sahayak.events import EventBus
from sahayak.exceptions import (
    CacheIOError,
    ConfigurationError,
    DuplicateOperationError,
    OperationFailure,
    SahayakError,
    TierOrchestrationError,
)
from sahayak.orchestration import (
    BackgroundRefreshScheduler,
    CallResult,
    OptimisticUpdateController,
    OrchestratorStats,
    ProgressiveLoader,
    ProgressStream,
    ProgressTier,
    RequestCoordinator,
    StalenessPolicy,
)

__all__ = [
    "__version__",
    # Cache
    "CacheEntry",
    "CacheGroups",
    "CacheManager",
    "CachePriority",
    "CacheStats",
    "OfflineFirstCache",
    # Orchestration
    "RequestCoordinator",
    "CallResult",
    "OrchestratorStats",
    "ProgressiveLoader",
    "ProgressStream",
    "ProgressTier",
    "OptimisticUpdateController",
    "BackgroundRefreshScheduler",
    "StalenessPolicy",
    # Consumers
    "ConsumerState",
    "OptimizedConsumer",
    "DashboardConsumer",
    # Runtime
    "Container",
    "SahayakRuntime",
    "EventBus",
    "SahayakSettings",
    "get_settings",
    "get_settings_for_profile",
    # Exceptions
    "SahayakError",
    "CacheIOError",
    "ConfigurationError",
    "DuplicateOperationError",
    "OperationFailure",
    "TierOrchestrationError",
]
