"""
API client facade for discovery-routed backend services.

Wires the cache, endpoint resolver, request normalizer and retry engine
together and exposes the HTTP verbs. GET responses are cached per URL for
the request's TTL; every write invalidates the cached reads of its URL
before it is sent.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import urlencode

from discovery_client.cache import EphemeralCache
from discovery_client.errors import UsageError
from discovery_client.events import RequestEvents
from discovery_client.http_client import HttpxTransport
from discovery_client.locations import LocationDirectory
from discovery_client.models import ApiResponse, RequestDescriptor, ServiceDefaults
from discovery_client.normalizer import RequestNormalizer
from discovery_client.resolver import EndpointResolver
from discovery_client.retry import RetryEngine, Transport
from discovery_client.settings import DEFAULT_WATCH_LIST, Settings

logger = logging.getLogger(__name__)

_MISSING = object()


def _require_non_empty(value: str, field_name: str) -> str:
    """Normalize and validate non-empty request arguments."""
    cleaned = value.strip()
    if not cleaned:
        raise UsageError(f"{field_name} must be a non-empty string.")
    return cleaned


def cache_key_for(url: str, params: dict[str, Any]) -> str:
    """Cache key of a GET: the URL plus its query string with sorted keys."""
    query = urlencode(sorted(params.items()), doseq=True)
    return f"{url}?{query}" if query else url


@dataclass(slots=True)
class ApiClient:
    """Typed entry point for talking to discovered services."""

    transport: Transport
    locations: LocationDirectory
    defaults: ServiceDefaults
    cache: EphemeralCache
    events: RequestEvents
    engine: RetryEngine
    resolver: EndpointResolver
    normalizer: RequestNormalizer

    @classmethod
    def build(
        cls,
        transport: Transport,
        locations: LocationDirectory,
        *,
        defaults: ServiceDefaults | None = None,
        watch_list: tuple[str, ...] = DEFAULT_WATCH_LIST,
        default_account_id: str | None = None,
        retry_deadline: float | None = None,
        engine: RetryEngine | None = None,
        cache: EphemeralCache | None = None,
    ) -> "ApiClient":
        """Assemble a client around ``transport``; ``engine``/``cache`` may be injected."""
        defaults = defaults if defaults is not None else ServiceDefaults()
        cache = cache if cache is not None else EphemeralCache()
        if engine is None:
            engine = RetryEngine(transport, RequestEvents(), deadline=retry_deadline)
        resolver = EndpointResolver(engine, cache, locations, watch_list)
        normalizer = RequestNormalizer(resolver, locations, defaults, default_account_id)
        return cls(transport, locations, defaults, cache, engine.events, engine, resolver, normalizer)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiClient":
        """Factory that builds the client from Settings."""
        return cls.build(
            HttpxTransport.from_settings(settings),
            settings.location_directory(),
            defaults=settings.service_defaults(),
            watch_list=settings.watch_list,
            default_account_id=settings.default_account_id,
            retry_deadline=settings.retry_deadline,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP resources."""
        aclose = getattr(self.transport, "aclose", None)
        if aclose is not None:
            await aclose()

    def reset(self) -> None:
        """Drop every cached response and endpoint map."""
        self.resolver.reset()
        self.cache.reset()
        logger.info("Client cache and endpoint maps cleared")

    async def resolve_endpoint(self, service_name: str, account_id: str | None = None) -> str:
        """Return the base URL serving ``service_name`` for ``account_id``."""
        name = _require_non_empty(service_name, "service_name")
        account = account_id or self.normalizer.default_account_id or "0"
        return await self.resolver.resolve(account, name)

    async def get(self, request: RequestDescriptor) -> Any:
        """GET, served from the cache while a previous response is fresh."""
        normalized = await self.normalizer.normalize(replace(request, method="GET"))
        url = normalized.url or ""
        key = cache_key_for(url, normalized.params)
        ttl_ms = normalized.cache_ttl_ms(self.defaults.ttl)
        if ttl_ms:
            cached = self.cache.get(key, _MISSING)
            if cached is not _MISSING:
                logger.debug("Serving GET from cache", extra={"url": key})
                return cached

        logger.debug("Sending GET", extra={"url": key})
        response = await self.engine.execute(normalized)
        if ttl_ms:
            self.cache.set(key, response.data, ttl_ms)
        return response.data

    async def fetch(self, request: RequestDescriptor) -> Any:
        """Alias for :meth:`get`."""
        return await self.get(request)

    async def post(self, request: RequestDescriptor) -> Any:
        return await self._write(replace(request, method="POST"))

    async def form(self, request: RequestDescriptor) -> Any:
        """Submit ``request.data`` as form fields."""
        return await self._write(replace(request, method="POST", form=True))

    async def put(self, request: RequestDescriptor) -> Any:
        return await self._write(replace(request, method="PUT"))

    async def set(self, request: RequestDescriptor) -> Any:
        """Alias for :meth:`put`."""
        return await self.put(request)

    async def delete(self, request: RequestDescriptor) -> Any:
        return await self._write(replace(request, method="DELETE"))

    async def execute(self, request: RequestDescriptor) -> ApiResponse:
        """Normalize and send ``request`` as-is, bypassing the read cache."""
        normalized = await self.normalizer.normalize(request)
        return await self.engine.execute(normalized)

    async def _write(self, request: RequestDescriptor) -> Any:
        normalized = await self.normalizer.normalize(request)
        url = normalized.url or ""
        self.cache.delete(url)
        self.cache.delete_prefix(f"{url}?")
        logger.debug("Sending write", extra={"method": normalized.method, "url": url})
        response = await self.engine.execute(normalized)
        return response.data

