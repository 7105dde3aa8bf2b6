import json
from typing import Any

import httpx
import pytest

from discovery_client.cache import EphemeralCache
from discovery_client.client import ApiClient, cache_key_for
from discovery_client.errors import ClientError, TransportError, UsageError
from discovery_client.http_client import HttpxTransport
from discovery_client.models import RequestDescriptor, ServiceDefaults
from discovery_client.retry import RetryEngine
from discovery_client.tools import ClientToolDependencies

SEARCH_URL = "https://search.example.test/search/v1/1234/queries"


class FakeBackend:
    """Discovery plus a tiny 'search' service backed by a dict."""

    def __init__(self) -> None:
        self.queries: dict[str, Any] = {"initial": {"name": "initial"}}
        self.requests: list[httpx.Request] = []
        self.next_status: list[int] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.startswith("/endpoints/"):
            services = json.loads(request.content.decode())
            return httpx.Response(200, json={name: f"{name}.example.test" for name in services})
        if self.next_status:
            return httpx.Response(self.next_status.pop(0), json={"error": "injected"})
        if request.method == "GET":
            return httpx.Response(200, json=sorted(self.queries))
        if request.method in ("POST", "PUT"):
            if request.headers.get("content-type", "").startswith("application/json"):
                payload = json.loads(request.content.decode())
            else:
                payload = dict(httpx.QueryParams(request.content.decode()))
            self.queries[payload["name"]] = payload
            return httpx.Response(201, json={"created": payload["name"]})
        if request.method == "DELETE":
            self.queries.clear()
            return httpx.Response(204)
        return httpx.Response(405)

    def service_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if not r.url.path.startswith("/endpoints/")]


def _build_client(handler, locations, fake_sleep, clock=None) -> ApiClient:
    transport = HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return ApiClient.build(
        transport,
        locations,
        watch_list=("aims",),
        engine=RetryEngine(transport, sleep=fake_sleep),
        cache=EphemeralCache(clock=clock) if clock else None,
    )


def _queries(**kwargs: Any) -> RequestDescriptor:
    return RequestDescriptor(service_name="search", account_id="1234", path="queries", **kwargs)


@pytest.mark.anyio
async def test_get_resolves_endpoint_and_caches_response(locations, fake_sleep, clock) -> None:
    backend = FakeBackend()
    client = _build_client(backend, locations, fake_sleep, clock)

    assert await client.get(_queries()) == ["initial"]
    assert await client.fetch(_queries()) == ["initial"]

    service_calls = backend.service_requests()
    assert len(service_calls) == 1
    assert str(service_calls[0].url) == SEARCH_URL
    assert client.cache.get(SEARCH_URL) == ["initial"]

    clock.advance(61)
    await client.get(_queries())
    assert len(backend.service_requests()) == 2
    await client.aclose()


@pytest.mark.anyio
async def test_ttl_flags_control_read_caching(locations, fake_sleep) -> None:
    backend = FakeBackend()
    client = _build_client(backend, locations, fake_sleep)

    await client.get(_queries(ttl=False))
    await client.get(_queries(ttl=False))
    assert len(backend.service_requests()) == 2

    concrete = RequestDescriptor(url="https://files.example.test/export")
    await client.get(concrete)
    await client.get(concrete)
    assert len(backend.service_requests()) == 4

    await client.get(RequestDescriptor(url="https://files.example.test/export", ttl=True))
    await client.get(RequestDescriptor(url="https://files.example.test/export", ttl=True))
    assert len(backend.service_requests()) == 5
    await client.aclose()


@pytest.mark.anyio
async def test_writes_invalidate_cached_reads(locations, fake_sleep) -> None:
    backend = FakeBackend()
    client = _build_client(backend, locations, fake_sleep)

    assert await client.get(_queries()) == ["initial"]
    assert await client.get(_queries(params={"page": "2"})) == ["initial"]

    assert await client.post(_queries(data={"name": "logins"})) == {"created": "logins"}
    assert await client.get(_queries()) == ["initial", "logins"]
    assert await client.get(_queries(params={"page": "2"})) == ["initial", "logins"]

    await client.form(_queries(data={"name": "alerts"}))
    assert await client.get(_queries()) == ["alerts", "initial", "logins"]

    await client.set(_queries(data={"name": "zones"}))
    assert "zones" in await client.get(_queries())

    assert await client.delete(_queries()) is None
    assert await client.get(_queries()) == []
    await client.aclose()


@pytest.mark.anyio
async def test_write_invalidates_even_when_it_fails(locations, fake_sleep) -> None:
    backend = FakeBackend()
    client = _build_client(backend, locations, fake_sleep)

    await client.get(_queries())
    backend.next_status = [409]
    with pytest.raises(ClientError) as exc:
        await client.put(_queries(data={"name": "conflict"}))
    assert exc.value.status_code == 409
    assert client.cache.get(SEARCH_URL) is None
    await client.aclose()


@pytest.mark.anyio
async def test_error_responses_are_never_cached(locations, fake_sleep, sleeps) -> None:
    backend = FakeBackend()
    client = _build_client(backend, locations, fake_sleep)

    backend.next_status = [404]
    with pytest.raises(ClientError):
        await client.get(_queries(retry_count=3))
    assert sleeps == []
    assert client.cache.get(SEARCH_URL) is None

    backend.next_status = [503, 503]
    assert await client.get(_queries(retry_count=3, retry_interval=100)) == ["initial"]
    assert sleeps == [0.1, 0.2]
    assert client.cache.get(SEARCH_URL) == ["initial"]
    await client.aclose()


@pytest.mark.anyio
async def test_timeout_surfaces_transport_error(locations, fake_sleep) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.TimeoutException("mock timeout", request=request)

    client = _build_client(handler, locations, fake_sleep)
    with pytest.raises(TransportError) as exc:
        await client.get(RequestDescriptor(url="https://files.example.test/export"))
    assert "timed out" in str(exc.value)
    await client.aclose()


@pytest.mark.anyio
async def test_discovery_outage_is_not_fatal(locations, fake_sleep) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/endpoints/"):
            return httpx.Response(500)
        return httpx.Response(200, json={"host": request.url.host, "path": request.url.path})

    client = _build_client(handler, locations, fake_sleep)
    assert await client.get(_queries()) == {"host": "api.example.test", "path": "/search/v1/1234/queries"}
    await client.aclose()


@pytest.mark.anyio
async def test_execute_returns_raw_response_and_reset_clears_state(locations, fake_sleep) -> None:
    backend = FakeBackend()
    client = _build_client(backend, locations, fake_sleep)

    response = await client.execute(_queries())
    assert response.status_code == 200
    assert response.url == SEARCH_URL
    assert await client.resolve_endpoint("search", "1234") == "https://search.example.test"

    client.reset()
    assert len(client.cache) == 0
    await client.resolve_endpoint("search", "1234")
    discovery_calls = [r for r in backend.requests if r.url.path.startswith("/endpoints/")]
    assert len(discovery_calls) == 2
    await client.aclose()


@pytest.mark.anyio
async def test_validation_rejects_incomplete_requests(locations, fake_sleep) -> None:
    client = _build_client(lambda request: httpx.Response(200), locations, fake_sleep)
    with pytest.raises(UsageError):
        await client.get(RequestDescriptor(path="queries"))
    with pytest.raises(ValueError):
        await client.resolve_endpoint("   ")
    await client.aclose()


def test_cache_key_sorts_query_parameters() -> None:
    assert cache_key_for("https://svc/a", {}) == "https://svc/a"
    assert cache_key_for("https://svc/a", {"b": "2", "a": "1"}) == "https://svc/a?a=1&b=2"


def test_tool_dependencies_require_attached_client(locations, fake_sleep) -> None:
    dependencies = ClientToolDependencies()
    with pytest.raises(RuntimeError):
        dependencies.require_client()

    client = _build_client(FakeBackend(), locations, fake_sleep)
    dependencies.attach_client(client)
    assert dependencies.require_client() is client
    dependencies.detach_client()
    assert dependencies.api_client is None


@pytest.mark.anyio
async def test_build_keeps_injected_collaborators(locations, fake_sleep, clock) -> None:
    transport = HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(FakeBackend())))
    cache = EphemeralCache(clock=clock)
    engine = RetryEngine(transport, sleep=fake_sleep)
    defaults = ServiceDefaults(version="v3", ttl=5000)

    client = ApiClient.build(transport, locations, defaults=defaults, engine=engine, cache=cache)

    assert len(cache) == 0
    assert client.cache is cache
    assert client.engine is engine
    assert client.events is engine.events
    assert client.defaults is defaults
    await client.aclose()


@pytest.mark.anyio
async def test_empty_successful_reads_are_cached(locations, fake_sleep) -> None:
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(204)

    client = _build_client(handler, locations, fake_sleep)
    descriptor = RequestDescriptor(url="https://files.example.test/ping", ttl=True)

    assert await client.get(descriptor) is None
    assert await client.get(descriptor) is None
    assert calls == 1
    await client.aclose()


@pytest.mark.anyio
async def test_undecodable_json_body_is_returned_as_text(locations, fake_sleep) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "application/json"}, content=b"\xff\xfe{")

    client = _build_client(handler, locations, fake_sleep)
    data = await client.get(RequestDescriptor(url="https://files.example.test/export"))

    assert isinstance(data, str)
    assert data.endswith("{")
    await client.aclose()
