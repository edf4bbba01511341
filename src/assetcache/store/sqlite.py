"""
SQLite-backed keyed store using aiosqlite.

Layout:
- store_meta: layout version and catalog revision
- namespaces: declared namespace catalog
- records: one row per (namespace, record_id) with the record as JSON

One connection is opened in autocommit mode and every operation runs in an
explicit transaction. Transactions are serialized by an asyncio.Lock, so two
coroutines never share an open transaction and readers never see a
half-applied bulk write.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import AsyncIterator, Iterable, Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from assetcache.exceptions import StoreUnavailable, TransactionFailure
from assetcache.logging import get_logger
from assetcache.store.base import (
    AsyncKeyedStore,
    UpgradeCallback,
    run_upgrade_callback,
    upgrade_failed,
)
from assetcache.types import DEFAULT_KEY_FIELD, Record, utc_now

if TYPE_CHECKING:
    from assetcache.config import Settings

logger = get_logger(__name__)

# Bump when the table layout changes; files written by a newer layout are refused.
LAYOUT_VERSION = 1

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS store_meta (
        key TEXT PRIMARY KEY,
        value INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS namespaces (
        name TEXT PRIMARY KEY,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        namespace TEXT NOT NULL,
        record_id TEXT NOT NULL,
        data BLOB NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (namespace, record_id)
    ) WITHOUT ROWID
    """,
)

MEMORY_DB = ":memory:"


class SQLiteKeyedStore(AsyncKeyedStore):
    """Durable keyed store in a single SQLite database file.

    Args:
        db_path: Database file, created with its parent directory on init().
            ``":memory:"`` keeps everything in memory for the store's lifetime.
        key_field: Record field holding the id.
        on_upgrade: See AsyncKeyedStore.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        key_field: str = DEFAULT_KEY_FIELD,
        on_upgrade: UpgradeCallback | None = None,
    ) -> None:
        super().__init__(key_field=key_field, on_upgrade=on_upgrade)
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> SQLiteKeyedStore:
        """Build a store at CACHE_DIR/STORE_NAME.db."""
        return cls(settings.db_path, **kwargs)

    @property
    def name(self) -> str:
        if isinstance(self.db_path, Path):
            return self.db_path.stem
        return MEMORY_DB

    # Engine lifecycle

    async def _open(self) -> None:
        path = str(self.db_path)
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(path, isolation_level=None)
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailable(
                "Could not open store",
                context={"path": path, "reason": "io_error", "error": str(e)},
            ) from e

        try:
            await db.execute("BEGIN IMMEDIATE")
            for statement in SCHEMA:
                await db.execute(statement)
            layout = await self._read_meta(db, "layout_version")
            if layout is None:
                await self._write_meta(db, "layout_version", LAYOUT_VERSION)
                await self._write_meta(db, "revision", 0)
            await db.execute("COMMIT")
        except BaseException as e:
            # statements already queued on the worker thread still run; closing
            # the connection drops whatever lock they took
            await asyncio.shield(db.close())
            if isinstance(e, sqlite3.Error):
                raise StoreUnavailable(
                    "Could not open store",
                    context={"path": path, "reason": "io_error", "error": str(e)},
                ) from e
            raise

        if layout is not None and layout > LAYOUT_VERSION:
            await db.close()
            raise StoreUnavailable(
                "Store was written by a newer layout version",
                context={
                    "path": path,
                    "reason": "version_conflict",
                    "found": layout,
                    "supported": LAYOUT_VERSION,
                },
            )

        self._db = db
        logger.debug("Opened SQLite store", path=path, layout_version=LAYOUT_VERSION)

    async def _close_engine(self) -> None:
        async with self._lock:
            if self._db is not None:
                await self._db.close()
                self._db = None

    async def _declare(self, names: set[str]) -> tuple[set[str], int, list[str]]:
        try:
            async with self._transaction("init", write=True) as db:
                async with db.execute("SELECT name FROM namespaces") as cursor:
                    existing = {row[0] for row in await cursor.fetchall()}
                revision = await self._read_meta(db, "revision") or 0

                added = sorted(names - existing)
                if added:
                    now = utc_now().isoformat()
                    await db.executemany(
                        "INSERT INTO namespaces (name, created_at) VALUES (?, ?)",
                        [(name, now) for name in added],
                    )
                    old, revision = revision, revision + 1
                    await self._write_meta(db, "revision", revision)
                    try:
                        await run_upgrade_callback(self.on_upgrade, old, revision, added)
                    except Exception as e:
                        raise upgrade_failed(self.name, e) from e
        except TransactionFailure as e:
            raise StoreUnavailable(
                "Could not upgrade namespace catalog",
                context={"path": str(self.db_path), "reason": "upgrade_failed", "error": str(e)},
            ) from e

        return existing | names, revision, added

    # Transactions

    def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            # close() raced with an operation that passed the ready check
            self._require_ready()
            raise StoreUnavailable("Store connection is gone", context={"store": self.name})
        return self._db

    @asynccontextmanager
    async def _transaction(
        self,
        operation: str,
        namespace: str | None = None,
        *,
        write: bool = False,
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Run the body in one transaction, rolling back on any failure.

        sqlite3 errors surface as TransactionFailure; everything else is
        re-raised unchanged after the rollback.
        """
        context = {"operation": operation, "namespace": namespace}
        async with self._lock:
            db = self._connection()
            try:
                await db.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            except sqlite3.Error as e:
                raise TransactionFailure(f"{operation} failed to start", context=context) from e
            except BaseException:
                # cancelled while the BEGIN was queued; it still runs on the worker
                await self._rollback(db, operation)
                raise

            try:
                yield db
            except BaseException as e:
                await self._rollback(db, operation)
                if isinstance(e, sqlite3.Error):
                    logger.warning("Transaction failed", error=str(e), **context)
                    raise TransactionFailure(f"{operation} failed", context=context) from e
                raise

            try:
                await db.execute("COMMIT")
            except BaseException as e:
                # a cancelled COMMIT may still land; the rollback is then a no-op
                await self._rollback(db, operation)
                if isinstance(e, sqlite3.Error):
                    raise TransactionFailure(
                        f"{operation} failed to commit", context=context
                    ) from e
                raise

    @staticmethod
    async def _rollback(db: aiosqlite.Connection, operation: str) -> None:
        """Roll back the open transaction, even if the caller is being cancelled.

        The worker thread runs statements in order, so a ROLLBACK queued here
        lands before any BEGIN from the next transaction.
        """
        try:
            await asyncio.shield(db.execute("ROLLBACK"))
        except sqlite3.Error as e:
            # SQLite already rolled back on its own (e.g. after SQLITE_FULL)
            logger.debug("Rollback skipped", operation=operation, error=str(e))

    @staticmethod
    async def _read_meta(db: aiosqlite.Connection, key: str) -> int | None:
        async with db.execute("SELECT value FROM store_meta WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    @staticmethod
    async def _write_meta(db: aiosqlite.Connection, key: str, value: int) -> None:
        await db.execute(
            "INSERT OR REPLACE INTO store_meta (key, value) VALUES (?, ?)", (key, value)
        )

    # Reads and writes

    async def _get(self, namespace: str, key: str) -> dict[str, Any] | None:
        async with self._transaction("get", namespace) as db:
            async with db.execute(
                "SELECT data FROM records WHERE namespace = ? AND record_id = ?",
                (namespace, key),
            ) as cursor:
                row = await cursor.fetchone()
        return self.decode(row[0]) if row else None

    async def _get_all(self, namespace: str) -> list[dict[str, Any]]:
        async with self._transaction("get_all", namespace) as db:
            async with db.execute(
                "SELECT data FROM records WHERE namespace = ? ORDER BY record_id",
                (namespace,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [self.decode(row[0]) for row in rows]

    async def _count(self, namespace: str) -> int:
        async with self._transaction("count", namespace) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM records WHERE namespace = ?", (namespace,)
            ) as cursor:
                row = await cursor.fetchone()
        return row[0]

    def _rows(self, namespace: str, records: Iterable[Record]) -> Iterator[tuple[str, str, bytes, str]]:
        now = utc_now().isoformat()
        for record in records:
            key, data = self.encode(record)
            yield namespace, key, data, now

    async def _put_many(self, namespace: str, records: Iterable[Record], *, operation: str) -> None:
        batch = list(records)
        async with self._transaction(operation, namespace, write=True) as db:
            # Rows are encoded while executemany consumes them; a bad record
            # midway rolls back the rows already written in this transaction.
            await db.executemany(
                "INSERT OR REPLACE INTO records (namespace, record_id, data, updated_at) "
                "VALUES (?, ?, ?, ?)",
                self._rows(namespace, batch),
            )
        logger.debug("Records written", operation=operation, count=len(batch))

    async def _delete(self, namespace: str, key: str) -> None:
        async with self._transaction("delete", namespace, write=True) as db:
            await db.execute(
                "DELETE FROM records WHERE namespace = ? AND record_id = ?", (namespace, key)
            )

    async def _clear(self, namespace: str) -> None:
        async with self._transaction("clear", namespace, write=True) as db:
            cursor = await db.execute("DELETE FROM records WHERE namespace = ?", (namespace,))
            removed = cursor.rowcount
            await cursor.close()
        logger.debug("Namespace cleared", removed=removed)
