"""
Persistent key/value backends for the cache tiers.
"""

from sahayak.storage.file import FileKeyValueStore
from sahayak.storage.memory import InMemoryKeyValueStore
from sahayak.storage.redis_store import RedisKeyValueStore
from sahayak.storage.secure import EncryptedKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "RedisKeyValueStore",
    "EncryptedKeyValueStore",
]
