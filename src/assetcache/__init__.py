"""Bounded LRU cache and asynchronous namespaced record store."""

from assetcache.cache import BoundedCache
from assetcache.exceptions import (
    CacheError,
    ConfigurationError,
    InvalidRecord,
    NamespaceNotFound,
    StoreNotReady,
    StoreUnavailable,
    TransactionFailure,
)
from assetcache.store import AsyncKeyedStore, MemoryKeyedStore, SQLiteKeyedStore
from assetcache.types import CacheStats, StoreState

__version__ = "0.1.0"

__all__ = [
    "AsyncKeyedStore",
    "BoundedCache",
    "CacheError",
    "CacheStats",
    "ConfigurationError",
    "InvalidRecord",
    "MemoryKeyedStore",
    "NamespaceNotFound",
    "SQLiteKeyedStore",
    "StoreNotReady",
    "StoreState",
    "StoreUnavailable",
    "TransactionFailure",
    "__version__",
]
