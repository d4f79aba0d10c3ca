"""
Event type definitions for Sahayak.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventPriority(int, Enum):
    """Event priority levels."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class Event(BaseModel):
    """
    Base event class.

    All events must inherit from this class.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    """Unique event identifier."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    """When the event occurred."""

    source: str
    """Component that generated the event."""

    priority: EventPriority = EventPriority.NORMAL
    """Event priority."""

    metadata: dict[str, Any] = Field(default_factory=dict)
    """Additional event metadata."""


class OperationStartedEvent(Event):
    """Event emitted when the coordinator starts an operation."""

    operation_key: str
    """Key the operation is registered under."""

    cache_key: str | None = None
    """Cache key consulted for the operation, if any."""


class OperationCompletedEvent(Event):
    """Event emitted when an operation resolves."""

    operation_key: str
    duration_ms: float
    from_cache: bool = False


class OperationFailedEvent(Event):
    """Event emitted when a wrapped operation raises."""

    operation_key: str
    error_type: str
    error_message: str
    duration_ms: float


class DuplicateOperationEvent(Event):
    """Event emitted when a duplicate operation key is rejected."""

    operation_key: str


class CacheHitEvent(Event):
    """Event emitted on a coordinator cache hit."""

    cache_key: str


class CacheMissEvent(Event):
    """Event emitted on a coordinator cache miss."""

    cache_key: str


class TierCompletedEvent(Event):
    """Event emitted after a progressive-loading tier resolves."""

    namespace: str
    tier: str
    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class BackgroundRefreshFailedEvent(Event):
    """Event emitted when a silent refresh raises."""

    consumer_id: str
    error_type: str
    error_message: str
