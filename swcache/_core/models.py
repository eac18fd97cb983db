from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    TypedDict,
)

from swcache._core._headers import Headers
from swcache._utils import make_async_iterator, make_sync_iterator, normalize_url


class _StreamedBody:
    """
    Body handling shared by requests and responses.

    The stream can be consumed once. ``read``/``aread`` keep the whole body and
    swap the stream for a fresh iterator over it, so the message stays readable.
    """

    stream: Iterator[bytes] | AsyncIterator[bytes]
    _content: Optional[bytes] = None

    @property
    def is_read(self) -> bool:
        return self._content is not None

    def _iter_stream(self) -> Iterator[bytes]:
        if self._content is not None:
            yield self._content
            return
        if not isinstance(self.stream, (Iterator, Iterable)):
            raise TypeError(f"{type(self).__name__} stream is not an Iterator")
        yield from self.stream

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if self._content is not None:
            yield self._content
            return
        if not isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            raise TypeError(f"{type(self).__name__} stream is not an AsyncIterator")
        async for chunk in self.stream:
            yield chunk

    def read(self) -> bytes:
        if self._content is None:
            self._content = b"".join(self._iter_stream())
            self.stream = make_sync_iterator([self._content])
        return self._content

    async def aread(self) -> bytes:
        if self._content is None:
            self._content = b"".join([chunk async for chunk in self._aiter_stream()])
            self.stream = make_async_iterator([self._content])
        return self._content


class RequestMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "swcache_" to avoid collisions with user data
    swcache_generation: str
    """Generation the request was resolved against."""


@dataclass
class Request(_StreamedBody):
    method: str
    url: str
    headers: Headers = field(default_factory=lambda: Headers({}))
    stream: Iterator[bytes] | AsyncIterator[bytes] = field(default_factory=lambda: iter([]))
    metadata: RequestMetadata | Mapping[str, Any] = field(default_factory=dict)


class ResponseMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "swcache_" to avoid collisions with user data
    swcache_request_class: str
    """Class the request was assigned to: "bypass", "cache_first" or "network_first"."""

    swcache_from_cache: bool
    """Indicates whether the response was served from a store."""

    swcache_stored: bool
    """Indicates whether the response is being written to the store."""

    swcache_offline: bool
    """Indicates that neither the network nor the store had content (synthetic 503)."""

    swcache_generation: str
    """Generation whose store was consulted."""

    swcache_created_at: float
    """Timestamp when the served snapshot was captured."""


@dataclass
class Response(_StreamedBody):
    status_code: int
    headers: Headers = field(default_factory=lambda: Headers({}))
    stream: Iterator[bytes] | AsyncIterator[bytes] = field(default_factory=lambda: iter([]))
    metadata: ResponseMetadata | Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CacheStore:
    """
    A named container of snapshots. The name is the generation id and never changes.
    """

    name: str


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable capture of a response at the time it was stored.
    """

    status_code: int
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b""
    created_at: float = field(default_factory=time.time)

    @classmethod
    def capture(cls, response: Response, body: bytes) -> "Snapshot":
        return cls(
            status_code=response.status_code,
            headers=tuple(response.headers.multi_items()),
            body=body,
        )

    def to_response(self, asynchronous: bool = True) -> Response:
        """
        Build a fresh response carrying this snapshot's content.

        Every call returns an independent response with its own stream.
        """
        stream: Iterator[bytes] | AsyncIterator[bytes] = (
            make_async_iterator([self.body]) if asynchronous else make_sync_iterator([self.body])
        )
        return Response(
            status_code=self.status_code,
            headers=Headers.from_items(self.headers),
            stream=stream,
            metadata=ResponseMetadata(
                swcache_from_cache=True,
                swcache_stored=False,
                swcache_offline=False,
                swcache_created_at=self.created_at,
            ),
        )


def make_identity(method: str, url: str) -> str:
    """
    Canonical request identity: upper-cased method and normalized URL.

    Examples:
        >>> make_identity("get", "HTTPS://Example.com")
        'GET https://example.com/'
    """
    return f"{method.upper()} {normalize_url(url)}"


def request_identity(request: Request) -> str:
    return make_identity(request.method, request.url)
