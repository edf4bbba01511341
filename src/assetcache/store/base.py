"""
Base class for asynchronous namespaced key/value stores.

AsyncKeyedStore owns the parts every engine shares:
- the UNINITIALIZED -> INITIALIZING -> READY -> CLOSED lifecycle
- namespace declaration checks
- record key extraction and JSON encoding (orjson)

Engines implement the abstract coroutines that open the engine, upgrade the
namespace catalog and run the reads/writes.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

import orjson

from assetcache.exceptions import (
    InvalidRecord,
    NamespaceNotFound,
    StoreNotReady,
    StoreUnavailable,
)
from assetcache.logging import get_logger, log_context
from assetcache.types import DEFAULT_KEY_FIELD, Record, StoreState

logger = get_logger(__name__)

# on_upgrade(old_revision, new_revision, added_namespaces)
UpgradeCallback = Callable[[int, int, list[str]], Awaitable[None] | None]


def normalize_id(value: Any) -> str:
    """Turn a record id into its storage key.

    Strings are used as-is and integers by their decimal form.

    Raises:
        TypeError: For any other type (bool included).
        ValueError: For an empty string.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeError(f"record id must be str or int, got {type(value).__name__}")
    key = str(value)
    if not key:
        raise ValueError("record id must not be empty")
    return key


def _validate_namespaces(namespaces: Iterable[str]) -> set[str]:
    if isinstance(namespaces, str):
        namespaces = [namespaces]
    names = set()
    for name in namespaces:
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"namespace names must be non-empty strings, got {name!r}")
        names.add(name)
    return names


async def run_upgrade_callback(
    callback: UpgradeCallback | None, old: int, new: int, added: list[str]
) -> None:
    """Run an upgrade callback, awaiting it when it is a coroutine function."""
    if callback is None:
        return
    result = callback(old, new, added)
    if inspect.isawaitable(result):
        await result


class AsyncKeyedStore(ABC):
    """Asynchronous store of records partitioned into declared namespaces.

    Records are mappings identified by ``record[key_field]``. Values must be
    JSON-serializable; reads return fresh decoded copies, so mutating a
    returned record never changes what is stored.

    Args:
        key_field: Record field holding the id.
        on_upgrade: Optional callback run when init() adds namespaces. It
            receives (old_revision, new_revision, added_namespaces) and runs
            inside the upgrade, so raising aborts the upgrade. It must not
            call back into the store.
    """

    def __init__(
        self,
        *,
        key_field: str = DEFAULT_KEY_FIELD,
        on_upgrade: UpgradeCallback | None = None,
    ) -> None:
        self.key_field = key_field
        self.on_upgrade = on_upgrade
        self._state = StoreState.UNINITIALIZED
        self._declared: set[str] = set()
        self._revision = 0
        self._init_lock = asyncio.Lock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name used in logs and errors."""

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def revision(self) -> int:
        """Catalog revision; grows by one each time init() adds namespaces."""
        return self._revision

    @property
    def is_ready(self) -> bool:
        return self._state is StoreState.READY

    async def __aenter__(self) -> AsyncKeyedStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # Lifecycle

    async def init(self, namespaces: Iterable[str]) -> None:
        """Open the store and declare namespaces.

        Safe to call again once READY: already declared namespaces are a
        no-op, new ones are created without touching existing data.

        Raises:
            StoreUnavailable: If the engine cannot be opened or upgraded.
            StoreNotReady: If the store was closed.
            ValueError: If a namespace name is empty or not a string.
        """
        names = _validate_namespaces(namespaces)

        async with self._init_lock:
            if self._state is StoreState.CLOSED:
                raise StoreNotReady(
                    "Store is closed", context={"store": self.name, "state": self._state.value}
                )

            with log_context(store=self.name):
                first_open = self._state is StoreState.UNINITIALIZED
                if first_open:
                    self._state = StoreState.INITIALIZING
                    try:
                        await self._open()
                    except BaseException:
                        self._state = StoreState.UNINITIALIZED
                        raise

                try:
                    declared, revision, added = await self._declare(names)
                except BaseException:
                    if first_open:
                        await self._close_engine()
                        self._state = StoreState.UNINITIALIZED
                    raise

                self._declared = declared
                self._revision = revision
                self._state = StoreState.READY

                if added:
                    logger.info(
                        "Namespaces created",
                        added=added,
                        revision=revision,
                    )
                if first_open:
                    logger.info(
                        "Store initialized",
                        namespaces=sorted(declared),
                        revision=revision,
                    )

    async def close(self) -> None:
        """Release the engine. Further operations fail with StoreNotReady."""
        async with self._init_lock:
            if self._state is StoreState.CLOSED:
                return
            if self._state is StoreState.READY:
                await self._close_engine()
                logger.info("Store closed", store=self.name)
            self._state = StoreState.CLOSED
            self._declared = set()

    # Operations

    async def namespaces(self) -> list[str]:
        """Return the declared namespace names, sorted."""
        self._require_ready()
        return sorted(self._declared)

    async def get(self, namespace: str, record_id: str | int) -> dict[str, Any] | None:
        """Return the record stored under record_id, or None."""
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            return await self._get(namespace, normalize_id(record_id))

    async def get_all(self, namespace: str) -> list[dict[str, Any]]:
        """Return every record in namespace. Order is not part of the contract."""
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            return await self._get_all(namespace)

    async def count(self, namespace: str) -> int:
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            return await self._count(namespace)

    async def set(self, namespace: str, record: Record) -> None:
        """Insert or replace record, keyed by its key field."""
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            await self._put_many(namespace, [record], operation="set")

    async def bulk_set(self, namespace: str, records: Iterable[Record]) -> None:
        """Insert or replace records in one all-or-nothing transaction.

        If the batch repeats an id, the last record with that id wins.
        """
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            await self._put_many(namespace, records, operation="bulk_set")

    async def delete(self, namespace: str, record_id: str | int) -> None:
        """Remove the record if it exists."""
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            await self._delete(namespace, normalize_id(record_id))

    async def clear(self, namespace: str) -> None:
        """Remove every record in namespace; the namespace stays declared."""
        self._require_namespace(namespace)
        with log_context(store=self.name, namespace=namespace):
            await self._clear(namespace)

    # Helpers for engines

    def _require_ready(self) -> None:
        if self._state is not StoreState.READY:
            raise StoreNotReady(
                "Store not initialized. Call init() first."
                if self._state is not StoreState.CLOSED
                else "Store is closed",
                context={"store": self.name, "state": self._state.value},
            )

    def _require_namespace(self, namespace: str) -> None:
        self._require_ready()
        if namespace not in self._declared:
            raise NamespaceNotFound(
                f"Namespace {namespace!r} was never declared",
                context={"namespace": namespace, "declared": sorted(self._declared)},
            )

    def record_key(self, record: Record) -> str:
        """Extract and normalize the id of a record.

        Raises:
            InvalidRecord: If the record is not a mapping or its id is
                missing or invalid.
        """
        if not isinstance(record, Mapping):
            raise InvalidRecord(
                "Record must be a mapping",
                context={"key_field": self.key_field, "reason": type(record).__name__},
            )
        try:
            return normalize_id(record[self.key_field])
        except KeyError:
            raise InvalidRecord(
                "Record has no id",
                context={"key_field": self.key_field, "reason": "missing"},
            ) from None
        except (TypeError, ValueError) as e:
            raise InvalidRecord(
                "Record id is invalid",
                context={"key_field": self.key_field, "reason": str(e)},
            ) from e

    def encode(self, record: Record) -> tuple[str, bytes]:
        """Return (key, JSON bytes) for a record."""
        key = self.record_key(record)
        try:
            return key, orjson.dumps(dict(record))
        except TypeError as e:
            raise InvalidRecord(
                "Record is not JSON-serializable",
                context={"key_field": self.key_field, "reason": str(e)},
            ) from e

    @staticmethod
    def decode(data: bytes | str) -> dict[str, Any]:
        return orjson.loads(data)

    # Engine hooks

    @abstractmethod
    async def _open(self) -> None:
        """Open the underlying engine. Raise StoreUnavailable on failure."""

    @abstractmethod
    async def _close_engine(self) -> None:
        """Release the underlying engine."""

    @abstractmethod
    async def _declare(self, names: set[str]) -> tuple[set[str], int, list[str]]:
        """Create missing namespaces.

        Returns:
            (all declared namespaces, catalog revision, namespaces added now)
        """

    @abstractmethod
    async def _get(self, namespace: str, key: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def _get_all(self, namespace: str) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def _count(self, namespace: str) -> int: ...

    @abstractmethod
    async def _put_many(
        self, namespace: str, records: Iterable[Record], *, operation: str
    ) -> None: ...

    @abstractmethod
    async def _delete(self, namespace: str, key: str) -> None: ...

    @abstractmethod
    async def _clear(self, namespace: str) -> None: ...


def upgrade_failed(store: str, error: BaseException) -> StoreUnavailable:
    """Wrap an exception raised while upgrading the namespace catalog."""
    return StoreUnavailable(
        "Namespace upgrade failed",
        context={"store": store, "reason": "upgrade_failed", "error": str(error)},
    )
