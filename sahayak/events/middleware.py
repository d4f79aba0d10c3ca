"""
Middleware for coordination events.

`SahayakRuntime` installs these on its event bus from the observability
settings: a log line per event, and a filter muting noisy event types.
"""

from typing import Iterable, Protocol

from loguru import logger

from sahayak.events.types import (
    BackgroundRefreshFailedEvent,
    CacheHitEvent,
    CacheMissEvent,
    DuplicateOperationEvent,
    Event,
    OperationCompletedEvent,
    OperationFailedEvent,
    OperationStartedEvent,
    TierCompletedEvent,
)


class EventMiddleware(Protocol):
    """Protocol for event middleware."""

    async def __call__(self, event: Event) -> Event | None:
        """
        Process event.

        Args:
            event: Event to process

        Returns:
            Processed event or None to stop propagation
        """
        ...


def describe_event(event: Event) -> str:
    """One-line summary of a coordination event."""
    if isinstance(event, OperationStartedEvent):
        return f"started {event.operation_key}"
    if isinstance(event, OperationCompletedEvent):
        origin = "cache" if event.from_cache else "network"
        return f"completed {event.operation_key} from {origin} in {event.duration_ms:.1f}ms"
    if isinstance(event, OperationFailedEvent):
        return f"failed {event.operation_key} after {event.duration_ms:.1f}ms: {event.error_type}: {event.error_message}"
    if isinstance(event, DuplicateOperationEvent):
        return f"rejected duplicate {event.operation_key}"
    if isinstance(event, CacheHitEvent):
        return f"cache hit {event.cache_key}"
    if isinstance(event, CacheMissEvent):
        return f"cache miss {event.cache_key}"
    if isinstance(event, TierCompletedEvent):
        return (
            f"tier {event.namespace}:{event.tier} done "
            f"({len(event.succeeded)} ok, {len(event.failed)} failed)"
        )
    if isinstance(event, BackgroundRefreshFailedEvent):
        return f"background refresh failed for {event.consumer_id}: {event.error_type}: {event.error_message}"
    return event.__class__.__name__


class EventLogMiddleware:
    """Logs each event; failures always log at WARNING."""

    __name__ = "event_log_middleware"

    FAILURE_EVENTS = (OperationFailedEvent, BackgroundRefreshFailedEvent)

    def __init__(self, log_level: str = "DEBUG"):
        self.log_level = log_level

    async def __call__(self, event: Event) -> Event:
        level = "WARNING" if isinstance(event, self.FAILURE_EVENTS) else self.log_level
        logger.bind(event_id=str(event.id), source=event.source).log(level, f"Event: {describe_event(event)}")
        return event


class EventTypeFilter:
    """Drops events whose type name is muted."""

    __name__ = "event_type_filter"

    def __init__(self, muted: Iterable[str]):
        """
        Args:
            muted: Event class names to drop, e.g. ``"CacheHitEvent"``
        """
        self.muted = frozenset(muted)

    async def __call__(self, event: Event) -> Event | None:
        if event.__class__.__name__ in self.muted:
            logger.trace(f"Event muted: {event.__class__.__name__}")
            return None
        return event
