from __future__ import annotations

import typing as tp

import anyio

from swcache._core._storages._async_base import AsyncBaseStorage
from swcache._core.models import CacheStore, Snapshot


class AsyncInMemoryStorage(AsyncBaseStorage):
    """
    Keeps every store in a process-local dictionary.

    Snapshots are immutable, so they are kept as-is without copying.
    """

    def __init__(self) -> None:
        self._stores: tp.Dict[str, tp.Dict[str, Snapshot]] = {}
        self._lock = anyio.Lock()

    async def open_store(self, generation: str) -> CacheStore:
        async with self._lock:
            self._stores.setdefault(generation, {})
        return CacheStore(name=generation)

    async def put(self, store: CacheStore, identity: str, snapshot: Snapshot) -> None:
        async with self._lock:
            self._stores.setdefault(store.name, {})[identity] = snapshot

    async def put_many(self, store: CacheStore, items: tp.Sequence[tp.Tuple[str, Snapshot]]) -> None:
        prepared = dict(items)
        async with self._lock:
            self._stores.setdefault(store.name, {}).update(prepared)

    async def get(self, store: CacheStore, identity: str) -> tp.Optional[Snapshot]:
        async with self._lock:
            entries = self._stores.get(store.name)
            if entries is None:
                return None
            return entries.get(identity)

    async def list_store_ids(self) -> tp.Set[str]:
        async with self._lock:
            return set(self._stores)

    async def delete_store(self, store_id: str) -> None:
        async with self._lock:
            self._stores.pop(store_id, None)
