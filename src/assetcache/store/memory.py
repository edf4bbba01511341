"""
In-memory keyed store.

Same contract as SQLiteKeyedStore without touching disk; records are kept
as encoded JSON so reads hand out independent copies. Useful in tests and
for short-lived sessions.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from assetcache.logging import get_logger
from assetcache.store.base import (
    AsyncKeyedStore,
    UpgradeCallback,
    run_upgrade_callback,
    upgrade_failed,
)
from assetcache.types import DEFAULT_KEY_FIELD, Record

logger = get_logger(__name__)


class MemoryKeyedStore(AsyncKeyedStore):
    """Keyed store held in process memory.

    Writes stage a copy of the namespace and swap it in only when every
    record encoded, which gives bulk_set the same all-or-nothing behavior as
    a database transaction.
    """

    def __init__(
        self,
        name: str = "memory",
        *,
        key_field: str = DEFAULT_KEY_FIELD,
        on_upgrade: UpgradeCallback | None = None,
    ) -> None:
        super().__init__(key_field=key_field, on_upgrade=on_upgrade)
        self._name = name
        self._data: dict[str, dict[str, bytes]] = {}
        self._catalog_revision = 0

    @property
    def name(self) -> str:
        return self._name

    async def _open(self) -> None:
        logger.debug("Opened memory store", store=self._name)

    async def _close_engine(self) -> None:
        self._data.clear()

    async def _declare(self, names: set[str]) -> tuple[set[str], int, list[str]]:
        added = sorted(names - self._data.keys())
        if added:
            old, new = self._catalog_revision, self._catalog_revision + 1
            try:
                await run_upgrade_callback(self.on_upgrade, old, new, added)
            except Exception as e:
                raise upgrade_failed(self._name, e) from e
            for name in added:
                self._data[name] = {}
            self._catalog_revision = new
        return set(self._data), self._catalog_revision, added

    async def _get(self, namespace: str, key: str) -> dict[str, Any] | None:
        data = self._data[namespace].get(key)
        return self.decode(data) if data is not None else None

    async def _get_all(self, namespace: str) -> list[dict[str, Any]]:
        return [self.decode(data) for _, data in sorted(self._data[namespace].items())]

    async def _count(self, namespace: str) -> int:
        return len(self._data[namespace])

    async def _put_many(self, namespace: str, records: Iterable[Record], *, operation: str) -> None:
        staged = dict(self._data[namespace])
        count = 0
        for record in records:
            key, data = self.encode(record)
            staged[key] = data
            count += 1
        self._data[namespace] = staged
        logger.debug("Records written", operation=operation, count=count)

    async def _delete(self, namespace: str, key: str) -> None:
        self._data[namespace].pop(key, None)

    async def _clear(self, namespace: str) -> None:
        self._data[namespace] = {}
