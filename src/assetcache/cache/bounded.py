"""
Bounded in-memory cache with least-recently-used eviction.

Entries live in an OrderedDict ordered by recency: the first entry is the
least recently used, the last one the most recently used. Lookups and
reordering are O(1).
"""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, Generic, Hashable, TypeVar

from assetcache.exceptions import ConfigurationError
from assetcache.logging import get_logger
from assetcache.types import CacheStats

if TYPE_CHECKING:
    from assetcache.config import Settings

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """Fixed-capacity key/value cache evicting the least recently used entry.

    Not thread-safe; callers sharing an instance across threads must
    guard it themselves.

    Args:
        capacity: Maximum number of entries, must be a positive integer.

    Raises:
        ConfigurationError: If capacity is not a positive integer.
    """

    def __init__(self, capacity: int = 1000) -> None:
        # bool is an int subclass but never a meaningful capacity
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(
                "BoundedCache capacity must be a positive integer",
                context={"capacity": capacity},
            )
        self._capacity = capacity
        self._entries: OrderedDict[K, V] = OrderedDict()
        self.stats = CacheStats()

    @classmethod
    def from_settings(cls, settings: Settings) -> BoundedCache[K, V]:
        """Build a cache sized by CACHE_CAPACITY."""
        return cls(capacity=settings.CACHE_CAPACITY)

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value for key and mark it most recently used.

        A miss returns ``default`` and leaves the recency order untouched.
        """
        try:
            self._entries.move_to_end(key)
        except KeyError:
            self.stats.misses += 1
            return default
        self.stats.hits += 1
        return self._entries[key]

    def set(self, key: K, value: V) -> None:
        """Insert or overwrite key as the most recently used entry.

        Inserting a new key into a full cache evicts exactly one entry,
        the least recently used, before the insertion.
        """
        if key in self._entries:
            self._entries.move_to_end(key)
            self._entries[key] = value
            return

        if len(self._entries) >= self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            self.stats.evictions += 1
            logger.debug("Evicted LRU entry", key=repr(evicted), capacity=self._capacity)

        self._entries[key] = value

    def has(self, key: K) -> bool:
        """Report presence without touching recency."""
        return key in self._entries

    def delete(self, key: K) -> bool:
        """Remove key if present. Returns True when something was removed."""
        return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        """Drop every entry and reset stats; capacity is kept."""
        self._entries.clear()
        self.stats.reset()

    def size(self) -> int:
        return len(self._entries)

    def keys(self) -> list[K]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __repr__(self) -> str:
        return f"BoundedCache(capacity={self._capacity}, size={len(self._entries)})"


_MISSING = object()
