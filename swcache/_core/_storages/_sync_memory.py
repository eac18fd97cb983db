from __future__ import annotations

import typing as tp

import threading

from swcache._core._storages._sync_base import SyncBaseStorage
from swcache._core.models import CacheStore, Snapshot


class SyncInMemoryStorage(SyncBaseStorage):
    """
    Keeps every store in a process-local dictionary.

    Snapshots are immutable, so they are kept as-is without copying.
    """

    def __init__(self) -> None:
        self._stores: tp.Dict[str, tp.Dict[str, Snapshot]] = {}
        self._lock = threading.Lock()

    def open_store(self, generation: str) -> CacheStore:
        with self._lock:
            self._stores.setdefault(generation, {})
        return CacheStore(name=generation)

    def put(self, store: CacheStore, identity: str, snapshot: Snapshot) -> None:
        with self._lock:
            self._stores.setdefault(store.name, {})[identity] = snapshot

    def put_many(self, store: CacheStore, items: tp.Sequence[tp.Tuple[str, Snapshot]]) -> None:
        prepared = dict(items)
        with self._lock:
            self._stores.setdefault(store.name, {}).update(prepared)

    def get(self, store: CacheStore, identity: str) -> tp.Optional[Snapshot]:
        with self._lock:
            entries = self._stores.get(store.name)
            if entries is None:
                return None
            return entries.get(identity)

    def list_store_ids(self) -> tp.Set[str]:
        with self._lock:
            return set(self._stores)

    def delete_store(self, store_id: str) -> None:
        with self._lock:
            self._stores.pop(store_id, None)
