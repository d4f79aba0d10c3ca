"""
Encrypted-at-rest key/value store for the secure cache tier.
"""

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from sahayak.exceptions import CacheIOError
from sahayak.interfaces.storage import KeyValueStore


class EncryptedKeyValueStore:
    """
    Wraps another store and encrypts every value with Fernet.

    Keys are stored in the clear so they can still be listed; only the
    values are sensitive.
    """

    def __init__(self, inner: KeyValueStore, key: bytes | str):
        """
        Initialize encrypted store.

        Args:
            inner: Backend that holds the ciphertext
            key: URL-safe base64 Fernet key (see `generate_key`)
        """
        self.inner = inner
        self.cipher = Fernet(key)

    @staticmethod
    def generate_key() -> bytes:
        """Generate a fresh Fernet key."""
        return Fernet.generate_key()

    async def read(self, key: str) -> str | None:
        token = await self.inner.read(key)
        if token is None:
            return None
        try:
            return self.cipher.decrypt(token.encode()).decode()
        except InvalidToken as e:
            logger.warning(f"Secure cache entry could not be decrypted: {key}")
            raise CacheIOError("Secure entry failed integrity check", key=key) from e

    async def write(self, key: str, value: str) -> None:
        token = self.cipher.encrypt(value.encode()).decode()
        await self.inner.write(key, token)

    async def delete(self, key: str) -> None:
        await self.inner.delete(key)

    async def list_keys(self) -> list[str]:
        return await self.inner.list_keys()

    async def clear(self) -> None:
        await self.inner.clear()
