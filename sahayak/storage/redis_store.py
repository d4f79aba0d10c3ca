"""
Redis-backed key/value store for the plain persistent cache tier.
"""

import redis
import redis.asyncio as aioredis
from loguru import logger

from sahayak.exceptions import CacheIOError


class RedisKeyValueStore:
    """
    Key/value store on top of an asyncio Redis client.

    All keys live under `namespace`, so `list_keys` and `clear` only touch
    this store's keys even on a shared database.
    """

    def __init__(self, client: aioredis.Redis, namespace: str = "sahayak:"):
        """
        Initialize Redis store.

        Args:
            client: asyncio Redis client created with decode_responses=True
            namespace: Prefix applied to every key
        """
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "sahayak:") -> "RedisKeyValueStore":
        """Create a store from a redis:// URL."""
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info(f"Redis cache store configured at {url}")
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def read(self, key: str) -> str | None:
        try:
            return await self.client.get(self._key(key))
        except (redis.RedisError, UnicodeDecodeError) as e:
            raise CacheIOError(f"Redis get error: {e}", key=key) from e

    async def write(self, key: str, value: str) -> None:
        try:
            await self.client.set(self._key(key), value)
        except redis.RedisError as e:
            raise CacheIOError(f"Redis set error: {e}", key=key) from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except redis.RedisError as e:
            raise CacheIOError(f"Redis delete error: {e}", key=key) from e

    async def list_keys(self) -> list[str]:
        keys = []
        try:
            # SCAN rather than KEYS to avoid blocking the server
            async for raw_key in self.client.scan_iter(match=f"{self.namespace}*", count=100):
                keys.append(raw_key[len(self.namespace):])
        except redis.RedisError as e:
            raise CacheIOError(f"Redis scan error: {e}") from e
        return keys

    async def clear(self) -> None:
        keys = await self.list_keys()
        if not keys:
            return
        try:
            await self.client.delete(*(self._key(k) for k in keys))
        except redis.RedisError as e:
            raise CacheIOError(f"Redis clear error: {e}") from e

    async def ping(self) -> bool:
        """Check connectivity."""
        try:
            return bool(await self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis not available: {e}")
            return False

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self.client.aclose()
