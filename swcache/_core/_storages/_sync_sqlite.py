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

import threading
import sqlite3

from swcache._core._storages._sync_base import SyncBaseStorage
from swcache._core._storages._packing import pack, unpack
from swcache._core.models import CacheStore, Snapshot
from swcache._exceptions import StorageFailure
from swcache._utils import ensure_cache_dict

logger = logging.getLogger("swcache.storages")


class SyncSqliteStorage(SyncBaseStorage):
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
        connection: Optional[sqlite3.Connection] = None,
        database_path: Union[str, Path] = "swcache.db",
    ) -> None:
        self.connection = connection
        self.database_path: Path = database_path if isinstance(database_path, Path) else Path(database_path)
        self._initialized = False
        self._lock = threading.Lock()

    def _ensure_connection(self) -> sqlite3.Connection:
        """Ensure connection is established and database is initialized."""
        if self.connection is None:
            parent = self.database_path.parent if self.database_path.parent != Path(".") else None
            full_path = ensure_cache_dict(parent) / self.database_path.name
            self.connection = sqlite3.connect(str(full_path))
        if not self._initialized:
            self._initialize_database()
            self._initialized = True
        return self.connection

    def _initialize_database(self) -> None:
        """Initialize the database schema."""
        assert self.connection is not None
        cursor = self.connection.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS stores (
                name TEXT PRIMARY KEY,
                created_at REAL NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                store TEXT NOT NULL,
                identity TEXT NOT NULL,
                data BLOB NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (store, identity)
            )
        """)

        self.connection.commit()

    def open_store(self, generation: str) -> CacheStore:
        with self._lock:
            connection = self._ensure_connection()
            cursor = connection.cursor()
            cursor.execute(
                "INSERT OR IGNORE INTO stores (name, created_at) VALUES (?, ?)",
                (generation, time.time()),
            )
            connection.commit()
        return CacheStore(name=generation)

    def put(self, store: CacheStore, identity: str, snapshot: Snapshot) -> None:
        self.put_many(store, [(identity, snapshot)])

    def put_many(self, store: CacheStore, items: Sequence[Tuple[str, Snapshot]]) -> None:
        rows: List[Tuple[str, str, bytes, float]] = [
            (store.name, identity, pack(snapshot), snapshot.created_at) for identity, snapshot in items
        ]

        with self._lock:
            connection = self._ensure_connection()
            cursor = connection.cursor()
            try:
                cursor.execute(
                    "INSERT OR IGNORE INTO stores (name, created_at) VALUES (?, ?)",
                    (store.name, time.time()),
                )
                for row in rows:
                    cursor.execute(
                        "INSERT OR REPLACE INTO entries (store, identity, data, created_at) VALUES (?, ?, ?, ?)",
                        row,
                    )
                connection.commit()
            except Exception as exc:
                connection.rollback()
                raise StorageFailure(f"Could not write {len(rows)} entries into store {store.name!r}") from exc

    def get(self, store: CacheStore, identity: str) -> Optional[Snapshot]:
        with self._lock:
            connection = self._ensure_connection()
            cursor = connection.cursor()
            cursor.execute(
                "SELECT data FROM entries WHERE store = ? AND identity = ?",
                (store.name, identity),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return unpack(row[0])

    def list_store_ids(self) -> Set[str]:
        with self._lock:
            connection = self._ensure_connection()
            cursor = connection.cursor()
            cursor.execute("SELECT name FROM stores")
            return {row[0] for row in cursor.fetchall()}

    def delete_store(self, store_id: str) -> None:
        with self._lock:
            connection = self._ensure_connection()
            cursor = connection.cursor()
            cursor.execute("DELETE FROM entries WHERE store = ?", (store_id,))
            cursor.execute("DELETE FROM stores WHERE name = ?", (store_id,))
            connection.commit()
        logger.debug(f"Deleted store {store_id!r}")

    def close(self) -> None:
        with self._lock:
            if self.connection is not None:
                self.connection.close()
                self.connection = None
