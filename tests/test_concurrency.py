import anyio
import anysqlite
import pytest

from swcache import (
    AsyncCacheEngine,
    AsyncInMemoryStorage,
    AsyncSqliteStorage,
    CacheStore,
    EngineOptions,
    Request,
    Response,
    Snapshot,
    StorageFailure,
    make_identity,
)
from swcache._utils import make_async_iterator

LIBRARY = "https://cdn.jsdelivr.net/npm/vue@3"


@pytest.mark.anyio
async def test_concurrent_writes_keep_one_whole_snapshot() -> None:
    storage = AsyncInMemoryStorage()
    store = CacheStore("v1")
    bodies = [f"body-{index}".encode() for index in range(20)]

    async with anyio.create_task_group() as tg:
        for body in bodies:
            tg.start_soon(storage.put, store, "GET https://example.com/", Snapshot(status_code=200, body=body))

    stored = await storage.get(store, "GET https://example.com/")
    assert stored is not None
    assert stored.body in bodies


@pytest.mark.anyio
async def test_failed_batch_does_not_leak_into_concurrent_write() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    store = CacheStore("v1")
    snapshot = Snapshot(status_code=200, body=b"app")
    # sqlite cannot bind the last identity, so the batch fails after its first rows
    batch = [("GET https://example.com/a", snapshot), ("GET https://example.com/b", snapshot), (object(), snapshot)]

    async def write_batch() -> None:
        with pytest.raises(StorageFailure):
            await storage.put_many(store, batch)  # type: ignore[arg-type]

    async with anyio.create_task_group() as tg:
        tg.start_soon(write_batch)
        tg.start_soon(storage.put, store, "GET https://example.com/single", snapshot)

    assert await storage.get(store, "GET https://example.com/a") is None
    assert await storage.get(store, "GET https://example.com/b") is None
    stored = await storage.get(store, "GET https://example.com/single")
    assert stored is not None
    assert stored.body == b"app"


@pytest.mark.anyio
async def test_concurrent_requests_for_same_resource() -> None:
    calls = []

    async def send(request: Request) -> Response:
        calls.append(request.url)
        await anyio.sleep(0)
        return Response(status_code=200, stream=make_async_iterator([b"vue"]))

    storage = AsyncInMemoryStorage()
    engine = AsyncCacheEngine(request_sender=send, options=EngineOptions(generation="v1"), storage=storage)
    bodies = []

    async def fetch() -> None:
        response = await engine.on_request(Request(method="GET", url=LIBRARY, stream=make_async_iterator([])))
        bodies.append(await response.aread())

    async with anyio.create_task_group() as tg:
        for _ in range(5):
            tg.start_soon(fetch)

    assert bodies == [b"vue"] * 5
    assert 1 <= len(calls) <= 5
    stored = await storage.get(engine.store, make_identity("GET", LIBRARY))
    assert stored is not None
    assert stored.body == b"vue"
