from __future__ import annotations

import typing as t
from typing import AsyncIterable, AsyncIterator, Iterator, cast

from swcache._async_engine import AsyncCacheEngine
from swcache._core._headers import Headers
from swcache._core._options import EngineOptions
from swcache._core._storages._async_base import AsyncBaseStorage
from swcache._core.models import Request, Response
from swcache._exceptions import NetworkFailure
from swcache._utils import make_async_iterator

try:
    import httpx
except ImportError as e:
    raise ImportError(
        "httpx is required to use swcache.httpx module. "
        "Please install swcache with the 'httpx' extra, "
        "e.g., 'pip install swcache[httpx]'."
    ) from e

# 128 KB
CHUNK_SIZE = 131072

# Hop-by-hop framing, httpx decides it again for every message it sends.
DROPPED_HEADERS = ["transfer-encoding"]


def _copy_headers(headers: httpx.Headers, excluded: t.List[str]) -> Headers:
    return Headers.from_items([(key, value) for key, value in headers.multi_items() if key.lower() not in excluded])


def _request_to_httpx(request: Request) -> httpx.Request:
    return httpx.Request(
        method=request.method,
        url=request.url,
        headers=request.headers.multi_items(),
        stream=_BodyStream(request._aiter_stream()),
        extensions=dict(request.metadata),
    )


def _response_to_httpx(response: Response) -> httpx.Response:
    return httpx.Response(
        status_code=response.status_code,
        headers=response.headers.multi_items(),
        stream=_BodyStream(response._aiter_stream()),
        extensions=dict(response.metadata),
    )


def _request_from_httpx(request: httpx.Request) -> Request:
    headers = _copy_headers(request.headers, DROPPED_HEADERS)
    try:
        body = make_async_iterator([request.content])
    except httpx.RequestNotRead:
        body = cast(AsyncIterator[bytes], request.stream)
    return Request(method=request.method, url=str(request.url), headers=headers, stream=body)


def _response_from_httpx(response: httpx.Response) -> Response:
    """
    Wrap a live httpx response without reading it.

    A response whose body was already read can only hand out the decoded
    content, so its encoding headers are rewritten to describe that content.
    """
    excluded = list(DROPPED_HEADERS)
    if not response.is_stream_consumed:
        return Response(
            status_code=response.status_code,
            headers=_copy_headers(response.headers, excluded),
            stream=_translate_network_errors(response.aiter_raw(chunk_size=CHUNK_SIZE)),
        )

    if "content-encoding" in response.headers:
        excluded += ["content-encoding", "content-length"]
    headers = _copy_headers(response.headers, excluded)
    if "content-encoding" in response.headers:
        headers["content-length"] = str(len(response.content))
    return Response(
        status_code=response.status_code,
        headers=headers,
        stream=make_async_iterator([response.content]),
    )


async def _translate_network_errors(stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    try:
        async for chunk in stream:
            yield chunk
    except httpx.TransportError as exc:
        raise NetworkFailure(str(exc)) from exc


class _BodyStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    def __init__(self, iterator: Iterator[bytes] | AsyncIterator[bytes]) -> None:
        self.iterator = iterator

    async def __aiter__(self) -> AsyncIterator[bytes]:
        assert isinstance(self.iterator, (AsyncIterator, AsyncIterable))
        async for chunk in self.iterator:
            yield chunk


class AsyncCacheTransport(httpx.AsyncBaseTransport):
    """
    An httpx transport that routes every request through a cache engine.

    The wrapped transport performs the live fetches; its transport errors
    become ``NetworkFailure`` so the engine can fall back to its stores.
    """

    def __init__(
        self,
        next_transport: httpx.AsyncBaseTransport,
        options: EngineOptions,
        storage: AsyncBaseStorage | None = None,
    ) -> None:
        self.next_transport = next_transport
        self.engine = AsyncCacheEngine(
            request_sender=self.request_sender,
            options=options,
            storage=storage,
        )
        self.storage = self.engine.storage

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        response = await self.engine.on_request(_request_from_httpx(request))
        return _response_to_httpx(response)

    async def aclose(self) -> None:
        await self.next_transport.aclose()
        await self.engine.close()
        await super().aclose()

    async def request_sender(self, request: Request) -> Response:
        try:
            response = await self.next_transport.handle_async_request(_request_to_httpx(request))
        except httpx.TransportError as exc:
            raise NetworkFailure(str(exc)) from exc
        return _response_from_httpx(response)


class AsyncCacheClient(httpx.AsyncClient):
    """
    An ``httpx.AsyncClient`` whose transport is wrapped by a cache engine.

    Accepts every ``httpx.AsyncClient`` argument plus the required ``options``
    and an optional ``storage``. The engine is reachable as ``client.engine`` so
    the host can drive ``on_install``, ``on_activate`` and ``on_control_message``.
    Requests routed through proxy mounts are not intercepted.
    """

    def __init__(self, *args: t.Any, **kwargs: t.Any) -> None:
        self.options: EngineOptions = kwargs.pop("options")
        self.storage: AsyncBaseStorage | None = kwargs.pop("storage", None)
        super().__init__(*args, **kwargs)

    @property
    def engine(self) -> AsyncCacheEngine:
        assert isinstance(self._transport, AsyncCacheTransport)
        return self._transport.engine

    def _init_transport(self, *args: t.Any, **kwargs: t.Any) -> httpx.AsyncBaseTransport:
        return AsyncCacheTransport(
            next_transport=super()._init_transport(*args, **kwargs),
            options=self.options,
            storage=self.storage,
        )
