from __future__ import annotations

import abc
import typing as tp

from ..models import CacheStore, Snapshot


class SyncBaseStorage(abc.ABC):
    """
    Persistent key-value containers ("stores"), one per generation.

    Stores are addressed by name, entries by request identity. Writes replace
    an entry wholesale; concurrent writes to one identity are last-writer-wins.
    """

    @abc.abstractmethod
    def open_store(self, generation: str) -> CacheStore:
        """Return the store for ``generation``, creating it if absent."""
        raise NotImplementedError()

    @abc.abstractmethod
    def put(self, store: CacheStore, identity: str, snapshot: Snapshot) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    def put_many(self, store: CacheStore, items: tp.Sequence[tp.Tuple[str, Snapshot]]) -> None:
        """Write every item or, if anything fails, none of them."""
        raise NotImplementedError()

    @abc.abstractmethod
    def get(self, store: CacheStore, identity: str) -> tp.Optional[Snapshot]:
        raise NotImplementedError()

    @abc.abstractmethod
    def list_store_ids(self) -> tp.Set[str]:
        raise NotImplementedError()

    @abc.abstractmethod
    def delete_store(self, store_id: str) -> None:
        """Delete a store and all of its entries. Unknown ids are ignored."""
        raise NotImplementedError()

    def close(self) -> None:
        pass
