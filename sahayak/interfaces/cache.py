"""
Cache protocol for the multi-tier request cache.
"""

from datetime import timedelta
from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class CacheProtocol(Protocol):
    """
    Protocol for cache implementations consumed by the request coordinator.

    Caches are fail-soft: none of these methods may raise because a
    backing store is unavailable.
    """

    async def get(
        self,
        key: str,
        secure: bool = False,
        as_type: type[T] | None = None,
    ) -> T | None:
        """
        Get value from cache.

        Args:
            key: Cache key
            secure: Look in the encrypted tier instead of the plain one
            as_type: Type persisted payloads are validated into

        Returns:
            Cached value or None if not found/expired
        """
        ...

    async def store(
        self,
        key: str,
        data: Any,
        expiry: timedelta | float | None = None,
        secure: bool = False,
        priority: Any = None,
    ) -> None:
        """
        Store value with optional expiry.

        Args:
            key: Cache key
            data: Value to cache
            expiry: Time until expiry (None = never expires)
            secure: Persist to the encrypted tier
            priority: Eviction priority
        """
        ...

    async def remove(self, key: str, secure: bool = False) -> None:
        """
        Remove value from memory and the selected persistent tier.

        Args:
            key: Cache key
            secure: Remove from the encrypted tier
        """
        ...

    async def invalidate_group(self, group_name: str) -> None:
        """
        Invalidate every key belonging to a named cache group.

        Args:
            group_name: Group name (e.g. "chat")
        """
        ...

    async def clear(self, include_secure: bool = False) -> None:
        """
        Clear all cache entries.

        Args:
            include_secure: Also drop the encrypted tier
        """
        ...

    async def get_stats(self) -> Any:
        """
        Get cache statistics.
        """
        ...
