from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from unittest.mock import patch
from zoneinfo import ZoneInfo

import anysqlite
import pytest
from inline_snapshot import snapshot
from time_machine import travel

from swcache import (
    AsyncBaseStorage,
    AsyncInMemoryStorage,
    AsyncSqliteStorage,
    CacheStore,
    Snapshot,
    StorageFailure,
)
from tests.conftest import aprint_sqlite_state

IDENTITY = "GET https://unpkg.com/react.js"


async def make_memory_storage() -> AsyncBaseStorage:
    return AsyncInMemoryStorage()


async def make_sqlite_storage() -> AsyncBaseStorage:
    return AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))


STORAGE_FACTORIES = pytest.mark.parametrize(
    "make_storage", [make_memory_storage, make_sqlite_storage], ids=["memory", "sqlite"]
)

StorageFactory = Callable[[], Any]


@pytest.mark.anyio
@STORAGE_FACTORIES
async def test_put_and_get(make_storage: StorageFactory) -> None:
    storage = await make_storage()
    store = await storage.open_store("v1")
    stored = Snapshot(status_code=200, headers=(("content-type", "text/javascript"),), body=b"react", created_at=1.0)

    await storage.put(store, IDENTITY, stored)

    assert await storage.get(store, IDENTITY) == stored
    assert await storage.get(store, "GET https://unpkg.com/vue.js") is None
    assert await storage.get(CacheStore("v0"), IDENTITY) is None


@pytest.mark.anyio
@STORAGE_FACTORIES
async def test_last_write_wins(make_storage: StorageFactory) -> None:
    storage = await make_storage()
    store = CacheStore("v1")

    await storage.put(store, IDENTITY, Snapshot(status_code=200, body=b"first", created_at=1.0))
    await storage.put(store, IDENTITY, Snapshot(status_code=200, body=b"second", created_at=2.0))

    stored = await storage.get(store, IDENTITY)
    assert stored is not None
    assert stored.body == b"second"


@pytest.mark.anyio
@STORAGE_FACTORIES
async def test_stores_are_isolated(make_storage: StorageFactory) -> None:
    storage = await make_storage()

    await storage.put(CacheStore("v1"), IDENTITY, Snapshot(status_code=200, body=b"old", created_at=1.0))
    await storage.put(CacheStore("v2"), IDENTITY, Snapshot(status_code=200, body=b"new", created_at=2.0))
    await storage.delete_store("v1")

    assert await storage.list_store_ids() == {"v2"}
    assert await storage.get(CacheStore("v1"), IDENTITY) is None
    stored = await storage.get(CacheStore("v2"), IDENTITY)
    assert stored is not None
    assert stored.body == b"new"


@pytest.mark.anyio
@STORAGE_FACTORIES
async def test_put_many_and_listing(make_storage: StorageFactory) -> None:
    storage = await make_storage()
    assert await storage.list_store_ids() == set()

    await storage.open_store("empty")
    await storage.put_many(
        CacheStore("v1"),
        [
            ("GET https://app.example.com/", Snapshot(status_code=200, body=b"<html>", created_at=1.0)),
            ("GET https://app.example.com/app.js", Snapshot(status_code=200, body=b"app()", created_at=1.0)),
        ],
    )

    assert await storage.list_store_ids() == {"empty", "v1"}
    stored = await storage.get(CacheStore("v1"), "GET https://app.example.com/app.js")
    assert stored is not None
    assert stored.body == b"app()"


@pytest.mark.anyio
@STORAGE_FACTORIES
async def test_delete_unknown_store(make_storage: StorageFactory) -> None:
    storage = await make_storage()

    await storage.delete_store("never-created")

    assert await storage.list_store_ids() == set()


@pytest.mark.anyio
async def test_sqlite_put_many_is_atomic() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    items: Any = [
        (IDENTITY, Snapshot(status_code=200, body=b"react", created_at=1.0)),
        (None, Snapshot(status_code=200, body=b"broken", created_at=1.0)),
    ]

    with pytest.raises(StorageFailure):
        await storage.put_many(CacheStore("v1"), items)

    assert await storage.list_store_ids() == set()
    assert await storage.get(CacheStore("v1"), IDENTITY) is None


@pytest.mark.anyio
@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
async def test_sqlite_tables() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    await storage.put_many(
        CacheStore("v2.2.0"),
        [
            ("GET https://app.example.com/", Snapshot(status_code=200, body=b"<html>")),
            ("GET https://unpkg.com/react.js", Snapshot(status_code=200, body=b"react")),
        ],
    )
    await storage.open_store("v2.1.0")

    conn = await storage._ensure_connection()
    assert await aprint_sqlite_state(conn) == snapshot("""\
stores (2 rows)
  v2.1.0 | 2024-01-01
  v2.2.0 | 2024-01-01
entries (2 rows)
  v2.2.0 | GET https://app.example.com/ | 2024-01-01
  v2.2.0 | GET https://unpkg.com/react.js | 2024-01-01\
""")


@pytest.mark.anyio
async def test_sqlite_custom_connection_does_not_create_directory() -> None:
    with patch("swcache._core._storages._async_sqlite.ensure_cache_dict") as mock_ensure:
        storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
        await storage.open_store("v1")

        mock_ensure.assert_not_called()


@pytest.mark.anyio
async def test_sqlite_default_location(use_temp_dir: Any) -> None:
    storage = AsyncSqliteStorage()
    await storage.open_store("v1")
    await storage.close()

    assert Path(".cache/swcache/swcache.db").is_file()
    assert Path(".cache/swcache/.gitignore").read_text() == "# Automatically created by swcache\n*"

    reopened = AsyncSqliteStorage()
    assert await reopened.list_store_ids() == {"v1"}
    await reopened.close()
