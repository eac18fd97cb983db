from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

from typing_extensions import Protocol, assert_never

from swcache._core._classifier import RequestClass, classify
from swcache._core._control import (
    ClearCache,
    ControlMessage,
    GetVersion,
    SkipWaiting,
    cache_cleared_broadcast,
    parse_control_message,
    version_reply,
)
from swcache._core._lifecycle import EngineState
from swcache._core._options import EngineOptions
from swcache._core._storages._async_base import AsyncBaseStorage
from swcache._core._storages._async_sqlite import AsyncSqliteStorage
from swcache._core._strategies import (
    AnyState,
    Bypass,
    CacheFirstFetch,
    CacheFirstLookup,
    CacheFirstRecheck,
    NetworkFirstFallback,
    NetworkFirstFetch,
    NoContentAvailable,
    ReturnAsIs,
    ReturnCached,
    StoreAndReturn,
    create_initial_state,
)
from swcache._core.models import CacheStore, Request, Response, Snapshot, request_identity
from swcache._exceptions import InvalidStateError, NetworkFailure, ProvisioningFailure
from swcache._utils import make_async_iterator, resolve_locator

logger = logging.getLogger("swcache.engine")


class AsyncMessagePort(Protocol):
    async def post_message(self, message: Mapping[str, Any]) -> None: ...


async def populate(
    storage: AsyncBaseStorage,
    generation: str,
    locators: Sequence[str],
    send_request: Callable[[Request], Awaitable[Response]],
) -> CacheStore:
    """
    Fetch every locator and write the results into the store of ``generation``.

    Nothing is written unless every fetch succeeded with a 2xx status.

    Raises:
        ProvisioningFailure: a fetch failed, returned a non-2xx status, or the
            store could not be written.
    """
    items: List[tuple[str, Snapshot]] = []

    for url in locators:
        request = Request(method="GET", url=url, stream=make_async_iterator([]))
        try:
            response = await send_request(request)
            body = await response.aread()
        except NetworkFailure as exc:
            raise ProvisioningFailure(f"Could not fetch {url!r} while installing {generation!r}") from exc

        if not 200 <= response.status_code < 300:
            raise ProvisioningFailure(
                f"Fetching {url!r} while installing {generation!r} returned status {response.status_code}"
            )
        logger.debug(f"Fetched {url!r} for generation {generation!r}")
        items.append((request_identity(request), Snapshot.capture(response, body)))

    store = CacheStore(name=generation)
    try:
        await storage.put_many(store, items)
    except Exception as exc:
        raise ProvisioningFailure(f"Could not write the store of {generation!r}") from exc
    return store


async def reap_stale_stores(storage: AsyncBaseStorage, current_generation: str) -> List[str]:
    """
    Delete every store that does not belong to ``current_generation``.

    Returns the deleted store ids, sorted.
    """
    stale = sorted(store_id for store_id in await storage.list_store_ids() if store_id != current_generation)
    for store_id in stale:
        logger.info(f"Removing stale store {store_id!r}")
        await storage.delete_store(store_id)
    return stale


async def clear_all_stores(storage: AsyncBaseStorage) -> List[str]:
    store_ids = sorted(await storage.list_store_ids())
    for store_id in store_ids:
        await storage.delete_store(store_id)
    return store_ids


async def broadcast(consumers: Sequence[AsyncMessagePort], message: Mapping[str, Any]) -> None:
    for consumer in consumers:
        try:
            await consumer.post_message(message)
        except Exception:
            logger.warning(f"Could not deliver {message.get('type')!r} to {consumer!r}", exc_info=True)


async def handle_control_message(
    message: ControlMessage,
    *,
    generation: str,
    storage: AsyncBaseStorage,
    consumers: Sequence[AsyncMessagePort],
    skip_waiting: Callable[[], Awaitable[None]],
    reply: Optional[AsyncMessagePort] = None,
) -> None:
    logger.debug(f"Handling control message: {message.__class__.__name__}")

    if isinstance(message, SkipWaiting):
        await skip_waiting()
    elif isinstance(message, ClearCache):
        deleted = await clear_all_stores(storage)
        logger.info(f"Cleared {len(deleted)} stores")
        await broadcast(consumers, cache_cleared_broadcast())
    elif isinstance(message, GetVersion):
        if reply is None:
            logger.warning("GET_VERSION received without a reply port, dropping it")
            return
        await reply.post_message(version_reply(generation))
    else:
        assert_never(message)


class AsyncCacheEngine:
    """
    Request-interception cache for one generation.

    The host owns the dispatcher and calls the four entry points: ``on_install``
    once, ``on_activate`` when the previous generation's consumers are gone,
    ``on_request`` for every intercepted request and ``on_control_message`` for
    out-of-band commands.

    Args:
        request_sender: Callable performing a live fetch. It must raise
            ``NetworkFailure`` when no response could be obtained.
        options: Generation, manifest and classification rules.
        storage: Storage backend for the stores. Defaults to AsyncSqliteStorage.
    """

    def __init__(
        self,
        request_sender: Callable[[Request], Awaitable[Response]],
        options: EngineOptions,
        storage: AsyncBaseStorage | None = None,
    ) -> None:
        self.send_request = request_sender
        self.options = options
        self.storage = storage if storage is not None else AsyncSqliteStorage()
        self.state = EngineState.PARSED
        self.consumers: List[AsyncMessagePort] = []
        self.claimed: List[AsyncMessagePort] = []
        self._skip_waiting_requested = options.skip_waiting

    @property
    def generation(self) -> str:
        return self.options.generation

    @property
    def store(self) -> CacheStore:
        return CacheStore(name=self.options.generation)

    def connect(self, consumer: AsyncMessagePort) -> None:
        if consumer not in self.consumers:
            self.consumers.append(consumer)
        if self.state is EngineState.ACTIVATED and consumer not in self.claimed:
            self.claimed.append(consumer)

    def disconnect(self, consumer: AsyncMessagePort) -> None:
        if consumer in self.consumers:
            self.consumers.remove(consumer)
        if consumer in self.claimed:
            self.claimed.remove(consumer)

    async def on_install(self) -> None:
        if self.state is not EngineState.PARSED:
            raise InvalidStateError(f"Generation {self.generation!r} cannot be installed while {self.state.value}")

        self.state = EngineState.INSTALLING
        logger.info(f"Installing generation {self.generation!r}")

        try:
            locators = [resolve_locator(locator, self.options.origin) for locator in self.options.manifest]
            await populate(self.storage, self.generation, locators, self.send_request)
        except Exception as exc:
            self.state = EngineState.REDUNDANT
            logger.warning(f"Installing generation {self.generation!r} failed", exc_info=True)
            if isinstance(exc, ProvisioningFailure):
                raise
            raise ProvisioningFailure(f"Could not install generation {self.generation!r}") from exc

        self.state = EngineState.INSTALLED
        logger.info(f"Installed generation {self.generation!r} with {len(locators)} resources")

        if self._skip_waiting_requested:
            await self.on_activate()

    async def on_activate(self) -> None:
        if self.state is EngineState.ACTIVATED:
            return
        if self.state is not EngineState.INSTALLED:
            raise InvalidStateError(f"Generation {self.generation!r} cannot be activated while {self.state.value}")

        self.state = EngineState.ACTIVATING
        try:
            await reap_stale_stores(self.storage, self.generation)
        except Exception:
            self.state = EngineState.INSTALLED
            raise

        self.state = EngineState.ACTIVATED
        self.claimed = list(self.consumers)
        logger.info(f"Activated generation {self.generation!r}, claimed {len(self.claimed)} consumers")

    async def skip_waiting(self) -> None:
        if self.state is EngineState.INSTALLED:
            await self.on_activate()
        elif self.state in (EngineState.PARSED, EngineState.INSTALLING):
            self._skip_waiting_requested = True

    async def on_control_message(self, data: Any, reply: Optional[AsyncMessagePort] = None) -> None:
        message = parse_control_message(data)
        if message is None:
            return
        await handle_control_message(
            message,
            generation=self.generation,
            storage=self.storage,
            consumers=list(self.consumers),
            skip_waiting=self.skip_waiting,
            reply=reply,
        )

    async def on_request(self, request: Request) -> Response:
        request_class = classify(request.url, self.options.rules)
        state: AnyState = create_initial_state(request_class, request, self.options)

        while state:
            logger.debug(f"Handling state: {state.__class__.__name__}")
            if isinstance(state, Bypass):
                state = state.next(await self.send_request(request))
            elif isinstance(state, (CacheFirstLookup, CacheFirstRecheck, NetworkFirstFallback)):
                state = state.next(await self._lookup(request))
            elif isinstance(state, (CacheFirstFetch, NetworkFirstFetch)):
                state = state.next(await self._fetch(request))
            elif isinstance(state, ReturnCached):
                return self._finalize(state.to_response(asynchronous=True), request_class)
            elif isinstance(state, StoreAndReturn):
                return self._finalize(await self._handle_store_and_return(state, request), request_class)
            elif isinstance(state, ReturnAsIs):
                return self._finalize(state.response, request_class)
            elif isinstance(state, NoContentAvailable):
                return self._finalize(state.to_response(asynchronous=True), request_class)
            else:
                assert_never(state)

        raise RuntimeError("Unreachable")

    async def close(self) -> None:
        await self.storage.close()

    def _finalize(self, response: Response, request_class: RequestClass) -> Response:
        response.metadata.update(swcache_request_class=request_class.value)  # type: ignore
        if request_class is not RequestClass.BYPASS:
            response.metadata.update(swcache_generation=self.generation)  # type: ignore
        return response

    async def _fetch(self, request: Request) -> Response | NetworkFailure:
        try:
            return await self.send_request(request)
        except NetworkFailure as exc:
            return exc

    async def _lookup(self, request: Request) -> Optional[Snapshot]:
        if request.method.upper() not in self.options.storable_methods:
            return None
        try:
            return await self.storage.get(self.store, request_identity(request))
        except Exception:
            logger.warning(f"Could not read {request.url!r} from the store, treating it as a miss", exc_info=True)
            return None

    async def _handle_store_and_return(self, state: StoreAndReturn, request: Request) -> Response:
        response = state.response
        if request.method.upper() not in self.options.storable_methods:
            logger.debug(f"Not storing response to a {request.method} request")
            response.metadata.update(swcache_stored=False)  # type: ignore
            return response

        body = await response.aread()
        stored = await self._store_quietly(request_identity(request), Snapshot.capture(response, body))
        response.metadata.update(swcache_stored=stored)  # type: ignore
        return response

    async def _store_quietly(self, identity: str, snapshot: Snapshot) -> bool:
        try:
            await self.storage.put(self.store, identity, snapshot)
        except Exception:
            logger.warning(f"Could not store the response for {identity!r}", exc_info=True)
            return False
        return True
