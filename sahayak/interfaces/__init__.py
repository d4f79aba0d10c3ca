"""
Protocol-based interfaces for Sahayak components.

This module defines the contracts that storage backends and caches
follow, enabling dependency injection, testing, and swappable
implementations.
"""

from sahayak.interfaces.cache import CacheProtocol
from sahayak.interfaces.storage import KeyValueStore

__all__ = [
    "CacheProtocol",
    "KeyValueStore",
]
