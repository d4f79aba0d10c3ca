"""
Offline-first read-through over the cache manager.
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from sahayak.cache.manager import CacheManager

T = TypeVar("T")


class OfflineFirstCache:
    """
    Serve cached data immediately and refresh it from the network behind
    the caller's back.
    """

    def __init__(self, cache: CacheManager):
        self.cache = cache
        self._pending: set[asyncio.Task] = set()

    async def get_offline_first(
        self,
        cache_key: str,
        network_call: Callable[[], Awaitable[T]],
        cache_expiry: timedelta | float = timedelta(minutes=15),
        refresh_in_background: bool = True,
    ) -> Optional[T]:
        """
        Get data, preferring the cache.

        Args:
            cache_key: Key to read and populate
            network_call: Zero-argument coroutine factory fetching fresh data
            cache_expiry: Lifetime of stored results
            refresh_in_background: Refresh a cache hit without blocking

        Returns:
            Cached or fetched data; None when both are unavailable
        """
        cached = await self.cache.get(cache_key)
        if cached is not None:
            if refresh_in_background:
                task = asyncio.create_task(
                    self._refresh(cache_key, network_call, cache_expiry)
                )
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            return cached

        try:
            fresh = await network_call()
        except Exception as e:
            logger.warning(f"Network call failed for {cache_key} and no cached data: {e}")
            return None

        await self.cache.store(cache_key, fresh, expiry=cache_expiry)
        return fresh

    @property
    def pending_refreshes(self) -> int:
        return len(self._pending)

    async def aclose(self) -> None:
        """Wait for background refreshes still running."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _refresh(
        self,
        cache_key: str,
        network_call: Callable[[], Awaitable[T]],
        cache_expiry: timedelta | float,
    ) -> None:
        try:
            fresh = await network_call()
            await self.cache.store(cache_key, fresh, expiry=cache_expiry)
        except Exception as e:
            logger.warning(f"Background refresh failed for {cache_key}: {e}")
