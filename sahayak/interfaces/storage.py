"""
Storage protocol for persistent cache tiers.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol for persistent key/value backends.

    Backends store opaque strings. Implementations must raise
    `CacheIOError` on backend failure rather than leaking driver
    exceptions, so the cache layer can absorb them uniformly.
    """

    async def read(self, key: str) -> str | None:
        """
        Read a value.

        Args:
            key: Storage key

        Returns:
            Stored string or None if absent
        """
        ...

    async def write(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Args:
            key: Storage key
            value: String to store
        """
        ...

    async def delete(self, key: str) -> None:
        """
        Delete a value. Deleting an absent key is a no-op.

        Args:
            key: Storage key
        """
        ...

    async def list_keys(self) -> list[str]:
        """
        List every stored key.

        Returns:
            Keys currently present in the backend
        """
        ...

    async def clear(self) -> None:
        """
        Remove every stored key.
        """
        ...
