from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import (
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

import anyio
import anysqlite

from swcache._core._storages._async_base import AsyncBaseStorage
from swcache._core._storages._packing import pack, unpack
from swcache._core.models import CacheStore, Snapshot
from swcache._exceptions import StorageFailure
from swcache._utils import ensure_cache_dict

logger = logging.getLogger("swcache.storages")


class AsyncSqliteStorage(AsyncBaseStorage):
    """
    Stores generations in a SQLite database.

    Every operation holds a lock for its whole transaction, so a batch never
    shares its uncommitted rows with a concurrent write on the connection.

    Args:
        connection: An already opened connection. When given, no cache
            directory is created.
        database_path: Where the database lives when no connection is given.
            Relative paths without a directory land in ``.cache/swcache``.
    """

    def __init__(
        self,
        *,
        connection: Optional[anysqlite.Connection] = None,
        database_path: Union[str, Path] = "swcache.db",
    ) -> None:
        self.connection = connection
        self.database_path: Path = database_path if isinstance(database_path, Path) else Path(database_path)
        self._initialized = False
        self._lock = anyio.Lock()

    async def _ensure_connection(self) -> anysqlite.Connection:
        """Ensure connection is established and database is initialized."""
        if self.connection is None:
            parent = self.database_path.parent if self.database_path.parent != Path(".") else None
            full_path = ensure_cache_dict(parent) / self.database_path.name
            self.connection = await anysqlite.connect(str(full_path))
        if not self._initialized:
            await self._initialize_database()
            self._initialized = True
        return self.connection

    async def _initialize_database(self) -> None:
        """Initialize the database schema."""
        assert self.connection is not None
        cursor = await self.connection.cursor()

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS stores (
                name TEXT PRIMARY KEY,
                created_at REAL NOT NULL
            )
        """)

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                store TEXT NOT NULL,
                identity TEXT NOT NULL,
                data BLOB NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (store, identity)
            )
        """)

        await self.connection.commit()

    async def open_store(self, generation: str) -> CacheStore:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "INSERT OR IGNORE INTO stores (name, created_at) VALUES (?, ?)",
                (generation, time.time()),
            )
            await connection.commit()
        return CacheStore(name=generation)

    async def put(self, store: CacheStore, identity: str, snapshot: Snapshot) -> None:
        await self.put_many(store, [(identity, snapshot)])

    async def put_many(self, store: CacheStore, items: Sequence[Tuple[str, Snapshot]]) -> None:
        rows: List[Tuple[str, str, bytes, float]] = [
            (store.name, identity, pack(snapshot), snapshot.created_at) for identity, snapshot in items
        ]

        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            try:
                await cursor.execute(
                    "INSERT OR IGNORE INTO stores (name, created_at) VALUES (?, ?)",
                    (store.name, time.time()),
                )
                for row in rows:
                    await cursor.execute(
                        "INSERT OR REPLACE INTO entries (store, identity, data, created_at) VALUES (?, ?, ?, ?)",
                        row,
                    )
                await connection.commit()
            except Exception as exc:
                await connection.rollback()
                raise StorageFailure(f"Could not write {len(rows)} entries into store {store.name!r}") from exc

    async def get(self, store: CacheStore, identity: str) -> Optional[Snapshot]:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "SELECT data FROM entries WHERE store = ? AND identity = ?",
                (store.name, identity),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return unpack(row[0])

    async def list_store_ids(self) -> Set[str]:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("SELECT name FROM stores")
            return {row[0] for row in await cursor.fetchall()}

    async def delete_store(self, store_id: str) -> None:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("DELETE FROM entries WHERE store = ?", (store_id,))
            await cursor.execute("DELETE FROM stores WHERE name = ?", (store_id,))
            await connection.commit()
        logger.debug(f"Deleted store {store_id!r}")

    async def close(self) -> None:
        async with self._lock:
            if self.connection is not None:
                await self.connection.close()
                self.connection = None
