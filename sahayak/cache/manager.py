"""
Sahayak Cache Manager
Multi-tier cache: bounded memory tier in front of a plain persistent store
and an optional encrypted store, with priority-aware eviction.
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional, TypeVar

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from sahayak.cache.entry import CacheEntry, CachePriority
from sahayak.cache.groups import CacheGroups, is_prefix_pattern
from sahayak.exceptions import CacheIOError
from sahayak.interfaces.storage import KeyValueStore
from sahayak.utils.clock import Clock, to_timedelta, utcnow

T = TypeVar("T")


@dataclass(frozen=True)
class CacheStats:
    """
    Cache statistics.

    `approx_hit_rate` is the mean access count of the entries currently
    in memory. It is a rough popularity indicator, not a hits/lookups
    ratio, and can exceed 1.0.
    """

    memory_item_count: int
    disk_item_count: int
    approx_hit_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "memory_item_count": self.memory_item_count,
            "disk_item_count": self.disk_item_count,
            "approx_hit_rate": round(self.approx_hit_rate, 3),
        }


class CacheManager:
    """
    Multi-level cache manager with memory, disk and secure tiers.

    Lookups fall through memory -> requested persistent tier; persistent
    hits are promoted into memory. Persistent failures never reach the
    caller: they are logged and treated as a miss (reads) or skipped
    (writes), while the memory tier keeps working.
    """

    def __init__(
        self,
        plain_store: KeyValueStore,
        secure_store: Optional[KeyValueStore] = None,
        groups: Optional[CacheGroups] = None,
        max_memory_items: int = 100,
        eviction_fraction: float = 0.2,
        key_prefix: str = "cache_",
        sweep_interval: timedelta | float = timedelta(hours=1),
        clock: Clock = utcnow,
    ):
        """
        Initialize cache manager.

        Args:
            plain_store: Persistent tier for ordinary entries
            secure_store: Encrypted tier, used only when a call passes secure=True
            groups: Cache group registry (defaults to the built-in groups)
            max_memory_items: Memory tier capacity
            eviction_fraction: Fraction of capacity removed per eviction pass
            key_prefix: Prefix for keys written to persistent tiers
            sweep_interval: Period of the persistent expiry sweep
            clock: Source of timestamps
        """
        if max_memory_items < 1:
            raise ValueError("max_memory_items must be at least 1")

        self.plain_store = plain_store
        self.secure_store = secure_store
        self.groups = groups or CacheGroups()
        self.max_memory_items = max_memory_items
        self.eviction_fraction = eviction_fraction
        self.key_prefix = key_prefix
        self.sweep_interval = to_timedelta(sweep_interval)
        self._clock = clock

        self._memory: dict[str, CacheEntry[Any]] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self.evictions = 0

    # Lifecycle

    async def start(self) -> None:
        """Drop expired memory entries and start the periodic persistent sweep."""
        self._sweep_memory()
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Cache manager started (memory capacity={self.max_memory_items}, "
            f"sweep every {self.sweep_interval})"
        )

    async def dispose(self) -> None:
        """Stop the periodic sweep."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    # Public API

    async def get(
        self,
        key: str,
        secure: bool = False,
        as_type: Optional[type[T]] = None,
    ) -> Optional[T]:
        """
        Get cached data with fallback hierarchy: memory -> persistent -> None.

        Args:
            key: Cache key
            secure: Read the encrypted tier instead of the plain one
            as_type: Validate the payload into this type

        Returns:
            Cached value, or None on miss, expiry or any tier failure
        """
        now = self._clock()

        memory_entry = self._memory.get(key)
        if memory_entry is not None:
            if not memory_entry.is_expired(now):
                touched = memory_entry.touch(now)
                self._memory[key] = touched
                return self._coerce(key, touched.data, as_type)
            del self._memory[key]

        store = self._store_for(secure)
        if store is None:
            return None

        try:
            raw = await store.read(self._storage_key(key))
            if raw is None:
                return None
            persisted = CacheEntry.from_json(raw)
        except CacheIOError as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None

        if persisted.is_expired(now):
            await self._delete_persistent(store, key)
            return None

        # Another task may have stored a fresher value while we were reading.
        current = self._memory.get(key)
        if current is not None and not current.is_expired(now):
            return self._coerce(key, current.data, as_type)

        promoted = persisted.touch(now)
        self._add_to_memory(key, promoted)
        return self._coerce(key, promoted.data, as_type)

    async def store(
        self,
        key: str,
        data: Any,
        expiry: timedelta | float | None = None,
        secure: bool = False,
        priority: CachePriority = CachePriority.NORMAL,
    ) -> None:
        """
        Store data in memory and the requested persistent tier.

        Args:
            key: Cache key
            data: Value to cache (replaces any previous value)
            expiry: Lifetime as timedelta or seconds; None never expires
            secure: Persist to the encrypted tier
            priority: Eviction priority
        """
        now = self._clock()
        lifetime = to_timedelta(expiry)
        entry = CacheEntry(
            data=data,
            expiry=now + lifetime if lifetime is not None else None,
            priority=CachePriority(priority),
            created_at=now,
            last_accessed=now,
        )

        self._add_to_memory(key, entry)

        store = self._store_for(secure)
        if store is None:
            return

        try:
            await store.write(self._storage_key(key), entry.to_json())
        except CacheIOError as e:
            logger.warning(f"Cache store error for key {key}: {e}")

    async def remove(self, key: str, secure: bool = False) -> None:
        """
        Remove item from memory and the selected persistent tier.

        Args:
            key: Cache key
            secure: Remove from the encrypted tier
        """
        self._memory.pop(key, None)

        store = self._store_for(secure)
        if store is not None:
            await self._delete_persistent(store, key)

    async def contains(self, key: str, secure: bool = False) -> bool:
        """Check for a live entry without recording an access."""
        now = self._clock()
        memory_entry = self._memory.get(key)
        if memory_entry is not None and not memory_entry.is_expired(now):
            return True

        store = self._store_for(secure)
        if store is None:
            return False
        try:
            raw = await store.read(self._storage_key(key))
            return raw is not None and not CacheEntry.from_json(raw).is_expired(now)
        except CacheIOError as e:
            logger.warning(f"Cache contains error for key {key}: {e}")
            return False

    async def invalidate_group(self, group_name: str) -> None:
        """
        Invalidate every key of a cache group.

        Args:
            group_name: Registered group name
        """
        patterns = self.groups.get(group_name)
        if not patterns:
            logger.debug(f"Unknown cache group: {group_name}")
            return

        for pattern in sorted(patterns):
            if is_prefix_pattern(pattern):
                await self._invalidate_prefix(pattern[:-1])
            else:
                await self.remove(pattern)

        logger.info(f"Invalidated cache group '{group_name}'")

    async def clear(self, include_secure: bool = False) -> None:
        """
        Clear all caches.

        Args:
            include_secure: Also drop the encrypted tier
        """
        self._memory.clear()

        try:
            await self.plain_store.clear()
        except CacheIOError as e:
            logger.warning(f"Cache clear error: {e}")

        if include_secure and self.secure_store is not None:
            try:
                await self.secure_store.clear()
            except CacheIOError as e:
                logger.warning(f"Secure cache clear error: {e}")

    async def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        try:
            disk_items = len(await self._persistent_keys(self.plain_store))
        except CacheIOError as e:
            logger.warning(f"Cache stats error: {e}")
            disk_items = 0

        return CacheStats(
            memory_item_count=len(self._memory),
            disk_item_count=disk_items,
            approx_hit_rate=self._calculate_hit_rate(),
        )

    async def sweep_expired(self) -> int:
        """
        Remove expired entries from memory and the plain persistent tier.

        Returns:
            Number of entries removed
        """
        removed = self._sweep_memory()
        now = self._clock()

        try:
            storage_keys = await self._persistent_keys(self.plain_store)
        except CacheIOError as e:
            logger.warning(f"Cache sweep could not list keys: {e}")
            return removed

        for storage_key in storage_keys:
            try:
                raw = await self.plain_store.read(storage_key)
                if raw is None:
                    continue
                if CacheEntry.from_json(raw).is_expired(now):
                    await self.plain_store.delete(storage_key)
                    removed += 1
            except CacheIOError as e:
                logger.warning(f"Cache sweep error for {storage_key}: {e}")

        if removed:
            logger.debug(f"Swept {removed} expired cache entries")
        return removed

    @property
    def memory_keys(self) -> list[str]:
        return list(self._memory)

    def peek_entry(self, key: str) -> Optional[CacheEntry[Any]]:
        """Memory entry with its metadata, without recording an access."""
        return self._memory.get(key)

    # Private methods

    def _store_for(self, secure: bool) -> Optional[KeyValueStore]:
        if not secure:
            return self.plain_store
        if self.secure_store is None:
            logger.warning("Secure cache tier requested but not configured")
        return self.secure_store

    def _storage_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def _persistent_keys(self, store: KeyValueStore) -> list[str]:
        return [k for k in await store.list_keys() if k.startswith(self.key_prefix)]

    async def _delete_persistent(self, store: KeyValueStore, key: str) -> None:
        try:
            await store.delete(self._storage_key(key))
        except CacheIOError as e:
            logger.warning(f"Cache remove error for key {key}: {e}")

    def _coerce(self, key: str, data: Any, as_type: Optional[type[T]]) -> Optional[T]:
        if as_type is None:
            return data
        try:
            return TypeAdapter(as_type).validate_python(data)
        except ValidationError as e:
            logger.warning(f"Cached value for {key} does not match {as_type}: {e}")
            return None

    def _add_to_memory(self, key: str, entry: CacheEntry[Any]) -> None:
        self._memory[key] = entry
        if len(self._memory) > self.max_memory_items:
            self._evict_from_memory()

    def _evict_from_memory(self) -> None:
        # Lowest priority first, then least recently accessed
        ordered = sorted(
            self._memory.items(),
            key=lambda item: (item[1].priority, item[1].last_accessed),
        )
        to_remove = math.ceil(round(self.max_memory_items * self.eviction_fraction, 9))
        for key, _ in ordered[:to_remove]:
            del self._memory[key]
        self.evictions += min(to_remove, len(ordered))
        logger.debug(f"Evicted {min(to_remove, len(ordered))} entries from memory cache")

    async def _invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._memory if k.startswith(prefix)]:
            del self._memory[key]

        storage_prefix = self._storage_key(prefix)
        try:
            for storage_key in await self.plain_store.list_keys():
                if storage_key.startswith(storage_prefix):
                    await self.plain_store.delete(storage_key)
        except CacheIOError as e:
            logger.warning(f"Cache invalidation error for prefix {prefix}: {e}")

    def _sweep_memory(self) -> int:
        now = self._clock()
        expired = [k for k, entry in self._memory.items() if entry.is_expired(now)]
        for key in expired:
            del self._memory[key]
        return len(expired)

    async def _sweep_loop(self) -> None:
        interval = self.sweep_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            await self.sweep_expired()

    def _calculate_hit_rate(self) -> float:
        if not self._memory:
            return 0.0
        total_access = sum(entry.access_count for entry in self._memory.values())
        return total_access / len(self._memory)
