"""Endpoint resolution through the discovery service.

For each account the resolver keeps at most one pending discovery task.
Concurrent callers for the same account share that task; a caller needing a
service the task does not cover supersedes it with a broader lookup. Results
are cached for fifteen minutes. Discovery failures never reach the caller:
every requested service is routed to the default host for five minutes
instead, after which discovery is attempted again.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from discovery_client.cache import EphemeralCache
from discovery_client.errors import ApiClientError, ResolutionError
from discovery_client.locations import LocationDirectory, ensure_scheme
from discovery_client.models import RequestDescriptor
from discovery_client.retry import RetryEngine

logger = logging.getLogger(__name__)

ENDPOINTS_TTL_MS = 15 * 60 * 1000
FALLBACK_TTL_MS = 5 * 60 * 1000
DISCOVERY_RETRY_COUNT = 3
DISCOVERY_RETRY_INTERVAL_MS = 1000

EndpointMap = dict[str, str]


def _merge_services(*groups: Iterable[str]) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for name in group:
            if name not in merged:
                merged.append(name)
    return merged


def _cache_key(account_id: str) -> str:
    return f"endpoints:{account_id}"


class EndpointResolver:
    """Maps (account, service) to the base URL that serves it."""

    def __init__(
        self,
        engine: RetryEngine,
        cache: EphemeralCache,
        locations: LocationDirectory,
        watch_list: Sequence[str] = (),
    ) -> None:
        self._engine = engine
        self._cache = cache
        self._locations = locations
        self._watch_list = tuple(watch_list)
        self._pending: dict[str, asyncio.Task[EndpointMap]] = {}
        self._known: dict[str, list[str]] = {}

    async def resolve(self, account_id: str, service_name: str) -> str:
        endpoints: EndpointMap | None = self._cache.get(_cache_key(account_id))
        if endpoints is not None and service_name in endpoints:
            return endpoints[service_name]

        task = self._pending.get(account_id)
        if task is not None and task.done():
            # Settled tasks are only authoritative through the cache.
            task = None
        known = self._known.get(account_id, [])

        if task is None or service_name not in known:
            if endpoints is not None or task is not None:
                self._cache.delete(_cache_key(account_id))
            services = _merge_services(self._watch_list, known, [service_name])
            task = asyncio.create_task(self._discover(account_id, services))
            self._pending[account_id] = task
            self._known[account_id] = services
            logger.debug(
                "Started endpoint discovery",
                extra={"account_id": account_id, "services": services},
            )

        resolved = await asyncio.shield(task)
        return resolved.get(service_name) or self._locations.default_host

    def reset(self) -> None:
        """Forget every cached map, pending lookup and known service."""
        for account_id in self._pending:
            self._cache.delete(_cache_key(account_id))
        self._pending.clear()
        self._known.clear()

    def discovery_url(self, account_id: str) -> str:
        base = self._locations.default_host
        return f"{base}/endpoints/v1/{account_id}/residency/default/endpoints"

    async def _discover(self, account_id: str, services: list[str]) -> EndpointMap:
        try:
            endpoints = await self._lookup(account_id, services)
            ttl_ms = ENDPOINTS_TTL_MS
        except ResolutionError as exc:
            logger.warning(
                "Endpoint discovery failed, routing to default host",
                extra={"account_id": account_id, "services": services, "error": str(exc)},
            )
            endpoints = {name: self._locations.default_host for name in services}
            ttl_ms = FALLBACK_TTL_MS
        except Exception:  # noqa: BLE001
            logger.exception(
                "Endpoint discovery failed unexpectedly, routing to default host",
                extra={"account_id": account_id, "services": services},
            )
            endpoints = {name: self._locations.default_host for name in services}
            ttl_ms = FALLBACK_TTL_MS

        if self._pending.get(account_id) is asyncio.current_task():
            self._cache.set(_cache_key(account_id), endpoints, ttl_ms)
        return endpoints

    async def _lookup(self, account_id: str, services: list[str]) -> EndpointMap:
        request = RequestDescriptor(
            url=self.discovery_url(account_id),
            method="POST",
            data=list(services),
            retry_count=DISCOVERY_RETRY_COUNT,
            retry_interval=DISCOVERY_RETRY_INTERVAL_MS,
        )
        try:
            response = await self._engine.execute(request)
        except ApiClientError as exc:
            raise ResolutionError(f"Discovery lookup for account {account_id} failed: {exc}") from exc

        payload: Any = response.data
        if not isinstance(payload, dict):
            raise ResolutionError(
                f"Discovery lookup for account {account_id} returned {type(payload).__name__}, expected an object."
            )

        endpoints: EndpointMap = {}
        for name in services:
            host = payload.get(name)
            if isinstance(host, str) and host.strip():
                endpoints[name] = ensure_scheme(host)
            else:
                logger.warning(
                    "Discovery response omitted a service, routing to default host",
                    extra={"account_id": account_id, "service_name": name},
                )
                endpoints[name] = self._locations.default_host
        for name, host in payload.items():
            if name not in endpoints and isinstance(host, str) and host.strip():
                endpoints[name] = ensure_scheme(host)
        return endpoints
