"""
Asynchronous namespaced key/value stores.

- AsyncKeyedStore (base.py): lifecycle, namespace checks, record encoding
- SQLiteKeyedStore (sqlite.py): durable store on aiosqlite
- MemoryKeyedStore (memory.py): same contract held in memory
"""

from assetcache.store.base import AsyncKeyedStore, normalize_id
from assetcache.store.memory import MemoryKeyedStore
from assetcache.store.sqlite import SQLiteKeyedStore

__all__ = [
    "AsyncKeyedStore",
    "MemoryKeyedStore",
    "SQLiteKeyedStore",
    "normalize_id",
]
