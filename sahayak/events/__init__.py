"""
Lifecycle events for request coordination.

A lightweight event bus lets observers (metrics, logging, UI adapters)
follow operations, cache hits and tier progress without coupling to the
coordinator.
"""

from sahayak.events.bus import EventBus
from sahayak.events.middleware import (
    EventLogMiddleware,
    EventMiddleware,
    EventTypeFilter,
    describe_event,
)
from sahayak.events.types import (
    BackgroundRefreshFailedEvent,
    CacheHitEvent,
    CacheMissEvent,
    DuplicateOperationEvent,
    Event,
    EventPriority,
    OperationCompletedEvent,
    OperationFailedEvent,
    OperationStartedEvent,
    TierCompletedEvent,
)

__all__ = [
    # Core
    "Event",
    "EventBus",
    "EventPriority",
    # Event types
    "OperationStartedEvent",
    "OperationCompletedEvent",
    "OperationFailedEvent",
    "DuplicateOperationEvent",
    "CacheHitEvent",
    "CacheMissEvent",
    "TierCompletedEvent",
    "BackgroundRefreshFailedEvent",
    # Middleware
    "EventMiddleware",
    "EventLogMiddleware",
    "EventTypeFilter",
    "describe_event",
]
