"""
Multi-tier cache for Sahayak.
"""

from sahayak.cache.entry import CacheEntry, CachePriority
from sahayak.cache.groups import DEFAULT_GROUPS, CacheGroups
from sahayak.cache.manager import CacheManager, CacheStats
from sahayak.cache.offline_first import OfflineFirstCache

__all__ = [
    "CacheEntry",
    "CachePriority",
    "CacheGroups",
    "DEFAULT_GROUPS",
    "CacheManager",
    "CacheStats",
    "OfflineFirstCache",
]
