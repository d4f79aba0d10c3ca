"""
Cache entry model and its JSON envelope for persistent tiers.
"""

import json
from dataclasses import dataclass, replace
from datetime import datetime
from enum import IntEnum
from typing import Any, Generic, TypeVar

from pydantic_core import PydanticSerializationError, to_jsonable_python

from sahayak.exceptions import CacheIOError

T = TypeVar("T")


class CachePriority(IntEnum):
    """Cache priority levels; lower values are evicted first."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cache entry with expiry, priority and access metadata."""

    data: T
    created_at: datetime
    last_accessed: datetime
    expiry: datetime | None = None
    priority: CachePriority = CachePriority.NORMAL
    access_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        """An entry without expiry never expires."""
        if self.expiry is None:
            return False
        return now > self.expiry

    def touch(self, now: datetime) -> "CacheEntry[T]":
        """Copy of this entry with one more recorded access."""
        return replace(
            self,
            last_accessed=max(now, self.created_at),
            access_count=self.access_count + 1,
        )

    def to_json(self) -> str:
        """
        Serialize to the persistent envelope.

        Raises:
            CacheIOError: If the payload is not JSON-encodable
        """
        try:
            data = to_jsonable_python(self.data)
            return json.dumps(
                {
                    "data": data,
                    "expiry": self.expiry.isoformat() if self.expiry else None,
                    "priority": int(self.priority),
                    "created_at": self.created_at.isoformat(),
                    "last_accessed": self.last_accessed.isoformat(),
                    "access_count": self.access_count,
                }
            )
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise CacheIOError(f"Cache payload is not JSON-encodable: {e}") from e

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry[Any]":
        """
        Parse the persistent envelope.

        Raises:
            CacheIOError: If the envelope is malformed
        """
        try:
            payload = json.loads(raw)
            expiry = payload.get("expiry")
            return cls(
                data=payload["data"],
                expiry=datetime.fromisoformat(expiry) if expiry else None,
                priority=CachePriority(payload.get("priority", CachePriority.NORMAL)),
                created_at=datetime.fromisoformat(payload["created_at"]),
                last_accessed=datetime.fromisoformat(payload["last_accessed"]),
                access_count=int(payload.get("access_count", 0)),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CacheIOError(f"Malformed cache entry: {e}") from e
