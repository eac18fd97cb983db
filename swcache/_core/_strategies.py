from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Union

from swcache._core._classifier import RequestClass
from swcache._core._headers import Headers
from swcache._core._options import EngineOptions
from swcache._core.models import Request, Response, ResponseMetadata, Snapshot
from swcache._exceptions import NetworkFailure
from swcache._utils import generate_http_date, make_async_iterator, make_sync_iterator

logger = logging.getLogger("swcache.core.strategies")

OFFLINE_STATUS_CODE = 503


@dataclass
class State(ABC):
    options: EngineOptions

    @abstractmethod
    def next(self, *args: Any, **kwargs: Any) -> Union["State", None]:
        raise NotImplementedError("Subclasses must implement this method")


def make_offline_response(message: str, asynchronous: bool = True) -> Response:
    """
    Build the synthetic response returned when neither the network nor the store has content.

    Examples:
    --------
    >>> response = make_offline_response("Offline - content not available", asynchronous=False)
    >>> response.status_code
    503
    >>> response.read()
    b'Offline - content not available'
    """
    body = message.encode("utf-8")
    return Response(
        status_code=OFFLINE_STATUS_CODE,
        headers=Headers(
            {
                "Content-Type": "text/plain; charset=utf-8",
                "Content-Length": str(len(body)),
                "Date": generate_http_date(),
            }
        ),
        stream=make_async_iterator([body]) if asynchronous else make_sync_iterator([body]),
        metadata=ResponseMetadata(
            swcache_from_cache=False,
            swcache_stored=False,
            swcache_offline=True,
        ),
    )


# =============================================================================
# Terminal states
# =============================================================================


@dataclass
class ReturnCached(State):
    """
    A snapshot from the store answers the request.
    """

    snapshot: Snapshot

    def to_response(self, asynchronous: bool = True) -> Response:
        return self.snapshot.to_response(asynchronous=asynchronous)

    def next(self) -> None:
        return None


class StoreAndReturn(State):
    """
    The live response is returned and a copy of it is written to the store.

    ``swcache_stored`` stays False until the engine has written the copy. A
    failed write is logged and never changes the returned response.
    """

    def __init__(self, response: Response, options: EngineOptions) -> None:
        super().__init__(options)
        self.response = response
        response_meta = ResponseMetadata(
            swcache_from_cache=False,
            swcache_stored=False,
            swcache_offline=False,
        )
        self.response.metadata.update(response_meta)  # type: ignore

    def next(self) -> None:
        return None


class ReturnAsIs(State):
    """
    The live response is returned untouched and nothing is stored.
    """

    def __init__(self, response: Response, options: EngineOptions) -> None:
        super().__init__(options)
        self.response = response
        response_meta = ResponseMetadata(
            swcache_from_cache=False,
            swcache_stored=False,
            swcache_offline=False,
        )
        self.response.metadata.update(response_meta)  # type: ignore

    def next(self) -> None:
        return None


@dataclass
class NoContentAvailable(State):
    """
    Neither the live fetch nor the store produced usable content.
    """

    message: str

    def to_response(self, asynchronous: bool = True) -> Response:
        return make_offline_response(self.message, asynchronous=asynchronous)

    def next(self) -> None:
        return None


# =============================================================================
# Bypass
# =============================================================================


@dataclass
class Bypass(State):
    """
    The request is not intercepted: it goes to the network and nothing touches the store.

    Network failures are not handled here, they reach the caller unchanged.
    """

    request: Request

    def next(self, response: Response) -> ReturnAsIs:
        return ReturnAsIs(response=response, options=self.options)


# =============================================================================
# Cache first
# =============================================================================


@dataclass
class CacheFirstLookup(State):
    """
    Entry point of the cache-first strategy.

    State Transitions:
    -----------------
    - ReturnCached: the store holds a snapshot for the request
    - CacheFirstFetch: nothing stored yet, go to the network
    """

    request: Request

    def next(self, cached: Optional[Snapshot]) -> Union[ReturnCached, "CacheFirstFetch"]:
        if cached is not None:
            logger.debug("Serving response from store")
            return ReturnCached(snapshot=cached, options=self.options)
        return CacheFirstFetch(request=self.request, options=self.options)


@dataclass
class CacheFirstFetch(State):
    """
    The store had nothing, the network is tried.

    State Transitions:
    -----------------
    - StoreAndReturn: the network answered with 200
    - ReturnAsIs: the network answered with any other status, it is not stored
    - CacheFirstRecheck: the network could not be reached
    """

    request: Request

    def next(
        self, outcome: Union[Response, NetworkFailure]
    ) -> Union[StoreAndReturn, ReturnAsIs, "CacheFirstRecheck"]:
        if isinstance(outcome, NetworkFailure):
            logger.debug(f"Live fetch failed: {outcome}")
            return CacheFirstRecheck(request=self.request, options=self.options)

        if outcome.status_code == 200:
            logger.debug("Storing live response")
            return StoreAndReturn(response=outcome, options=self.options)

        logger.debug(f"Not storing response with status code {outcome.status_code}")
        return ReturnAsIs(response=outcome, options=self.options)


@dataclass
class CacheFirstRecheck(State):
    """
    The network failed after a miss. The store is consulted once more, since a
    concurrent request may have filled it in the meantime.
    """

    request: Request

    def next(self, cached: Optional[Snapshot]) -> Union[ReturnCached, NoContentAvailable]:
        if cached is not None:
            logger.debug("Serving response from store after network failure")
            return ReturnCached(snapshot=cached, options=self.options)
        return NoContentAvailable(message=self.options.library_offline_message, options=self.options)


# =============================================================================
# Network first
# =============================================================================


@dataclass
class NetworkFirstFetch(State):
    """
    Entry point of the network-first strategy.

    Any live response, whatever its status code, is returned and stored.

    State Transitions:
    -----------------
    - StoreAndReturn: the network answered
    - NetworkFirstFallback: the network could not be reached
    """

    request: Request

    def next(self, outcome: Union[Response, NetworkFailure]) -> Union[StoreAndReturn, "NetworkFirstFallback"]:
        if isinstance(outcome, NetworkFailure):
            logger.debug(f"Live fetch failed: {outcome}")
            return NetworkFirstFallback(request=self.request, options=self.options)

        logger.debug("Storing live response")
        return StoreAndReturn(response=outcome, options=self.options)


@dataclass
class NetworkFirstFallback(State):
    request: Request

    def next(self, cached: Optional[Snapshot]) -> Union[ReturnCached, NoContentAvailable]:
        if cached is not None:
            logger.debug("Serving response from store after network failure")
            return ReturnCached(snapshot=cached, options=self.options)
        return NoContentAvailable(message=self.options.app_offline_message, options=self.options)


AnyState = Union[
    Bypass,
    CacheFirstLookup,
    CacheFirstFetch,
    CacheFirstRecheck,
    NetworkFirstFetch,
    NetworkFirstFallback,
    ReturnCached,
    StoreAndReturn,
    ReturnAsIs,
    NoContentAvailable,
]


def create_initial_state(request_class: RequestClass, request: Request, options: EngineOptions) -> AnyState:
    if request_class is RequestClass.BYPASS:
        return Bypass(request=request, options=options)
    if request_class is RequestClass.CACHE_FIRST:
        return CacheFirstLookup(request=request, options=options)
    return NetworkFirstFetch(request=request, options=options)
