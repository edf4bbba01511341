"""
In-memory caching.

- BoundedCache (bounded.py): fixed-capacity cache with LRU eviction
"""

from assetcache.cache.bounded import BoundedCache

__all__ = ["BoundedCache"]
