import gzip
from typing import Any, Dict, List, Mapping

import httpx
import pytest
from httpx import ByteStream, MockTransport
from inline_snapshot import snapshot

from swcache import AsyncInMemoryStorage, EngineOptions, EngineState, NetworkFailure
from swcache.httpx import AsyncCacheClient

LIBRARY = "https://unpkg.com/htmx.org@1.9.12"


class Network:
    def __init__(self, resources: Dict[str, bytes]) -> None:
        self.resources = resources
        self.online = True
        self.seen: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.seen.append(f"{request.method} {request.url}")
        if not self.online:
            raise httpx.ConnectError("Connection refused", request=request)
        if request.method == "POST":
            return httpx.Response(201, content=b"echo: " + request.content)
        if str(request.url) not in self.resources:
            return httpx.Response(404, content=b"Not found")
        return httpx.Response(200, content=self.resources[str(request.url)], headers={"Content-Type": "text/plain"})


def make_client(network: Network, **options: Any) -> AsyncCacheClient:
    return AsyncCacheClient(
        options=EngineOptions(generation="v1", **options),
        storage=AsyncInMemoryStorage(),
        transport=MockTransport(handler=network.handler),
    )


@pytest.mark.anyio
async def test_simple_caching(caplog: pytest.LogCaptureFixture) -> None:
    network = Network({LIBRARY: b"htmx"})
    client = make_client(network)

    with caplog.at_level("DEBUG", logger="swcache"):
        await client.get(LIBRARY)
        response = await client.get(LIBRARY)

    assert response.text == "htmx"
    assert network.seen == [f"GET {LIBRARY}"]
    assert caplog.messages == snapshot(
        [
            "Host 'unpkg.com' matched 'unpkg.com'",
            "Handling state: CacheFirstLookup",
            "Handling state: CacheFirstFetch",
            "Storing live response",
            "Handling state: StoreAndReturn",
            "Host 'unpkg.com' matched 'unpkg.com'",
            "Handling state: CacheFirstLookup",
            "Serving response from store",
            "Handling state: ReturnCached",
        ]
    )
    assert response.extensions["swcache_from_cache"] is True
    assert response.extensions["swcache_request_class"] == "cache_first"


@pytest.mark.anyio
async def test_network_first_offline_fallback() -> None:
    network = Network({"https://app.example.com/": b"<html>"})
    client = make_client(network)

    first = await client.get("https://app.example.com/")
    network.online = False
    second = await client.get("https://app.example.com/")
    missing = await client.get("https://app.example.com/settings")

    assert first.extensions["swcache_from_cache"] is False
    assert second.text == "<html>"
    assert second.extensions["swcache_from_cache"] is True
    assert missing.status_code == 503
    assert missing.text == "Offline - content not available"
    assert missing.headers["Content-Type"] == "text/plain; charset=utf-8"


@pytest.mark.anyio
async def test_cache_first_offline_miss() -> None:
    network = Network({})
    network.online = False
    client = make_client(network)

    response = await client.get(LIBRARY)

    assert response.status_code == 503
    assert response.text == "Offline - library not available"


@pytest.mark.anyio
async def test_bypassed_request_failure_is_raised() -> None:
    network = Network({})
    network.online = False
    client = make_client(network)

    with pytest.raises(NetworkFailure):
        await client.get("https://demo.firebaseio.com/todos.json")


@pytest.mark.anyio
async def test_request_body_is_forwarded() -> None:
    network = Network({})
    client = make_client(network)

    response = await client.post("https://app.example.com/api/items", content=b"payload")

    assert response.status_code == 201
    assert response.content == b"echo: payload"
    assert response.extensions["swcache_stored"] is False


@pytest.mark.anyio
async def test_encoded_content_caching() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            stream=ByteStream(gzip.compress(b"a" * 1000)),
            headers={"Content-Encoding": "gzip", "Content-Type": "text/plain"},
        )

    client = AsyncCacheClient(
        options=EngineOptions(generation="v1"),
        storage=AsyncInMemoryStorage(),
        transport=MockTransport(handler=handler),
    )

    response = await client.get(LIBRARY)

    assert response.content == b"a" * 1000
    assert response.headers.get("Content-Encoding") == "gzip"

    async with client.stream("GET", LIBRARY) as second_response:
        assert second_response.extensions["swcache_from_cache"] is True
        assert second_response.headers.get("Content-Encoding") == "gzip"
        content = b""
        async for chunk in second_response.aiter_raw():
            content += chunk
        assert gzip.decompress(content) == response.content


@pytest.mark.anyio
async def test_abandoned_stream_is_still_stored() -> None:
    network = Network({LIBRARY: b"htmx"})
    client = make_client(network)

    async with client.stream("GET", LIBRARY) as response:
        assert response.extensions["swcache_stored"] is True

    network.online = False
    response = await client.get(LIBRARY)

    assert response.text == "htmx"
    assert response.extensions["swcache_from_cache"] is True


@pytest.mark.anyio
async def test_engine_lifecycle_through_client() -> None:
    network = Network({"https://app.example.com/": b"<html>", "https://app.example.com/app.js": b"app()"})
    client = make_client(network, origin="https://app.example.com", manifest=["/", "/app.js"])
    replies: List[Mapping[str, Any]] = []

    class Reply:
        async def post_message(self, message: Mapping[str, Any]) -> None:
            replies.append(message)

    await client.engine.on_install()
    await client.engine.on_control_message({"type": "SKIP_WAITING"})
    await client.engine.on_control_message({"type": "GET_VERSION"}, reply=Reply())

    network.online = False
    response = await client.get("https://app.example.com/app.js")

    assert client.engine.state is EngineState.ACTIVATED
    assert replies == [{"version": "v1"}]
    assert response.text == "app()"
    await client.aclose()
