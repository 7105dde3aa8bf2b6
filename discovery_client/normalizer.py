"""Turns logical request descriptors into concrete, fully addressed requests."""

import logging
from dataclasses import replace

from discovery_client.errors import UsageError
from discovery_client.locations import LocationDirectory
from discovery_client.models import DISCOVERY_STACK, RequestDescriptor, ServiceDefaults
from discovery_client.resolver import EndpointResolver

logger = logging.getLogger(__name__)

NO_ACCOUNT = "0"


def version_segment(version: str | int | None) -> str | None:
    """``"v2"`` -> ``"v2"``, ``2`` -> ``"v2"``, ``0``/``""``/``None`` -> no segment."""
    if isinstance(version, bool):
        return None
    if isinstance(version, str):
        return version or None
    if isinstance(version, int) and version > 0:
        return f"v{version}"
    return None


def service_path(descriptor: RequestDescriptor) -> str:
    """Build ``/<service>[/<version>][/<account_id>][/<path>]`` for a service request."""
    if not descriptor.service_name or not descriptor.service_name.strip():
        raise UsageError("A service request requires a non-empty service_name.")
    parts = [f"/{descriptor.service_name.strip()}"]
    segment = version_segment(descriptor.version)
    if segment:
        parts.append(f"/{segment}")
    if descriptor.account_id and descriptor.account_id != NO_ACCOUNT:
        parts.append(f"/{descriptor.account_id}")
    if descriptor.path:
        parts.append(descriptor.path if descriptor.path.startswith("/") else f"/{descriptor.path}")
    return "".join(parts)


def apply_defaults(descriptor: RequestDescriptor, defaults: ServiceDefaults) -> RequestDescriptor:
    """Fill unset service fields from the process-wide defaults."""
    return replace(
        descriptor,
        residency=descriptor.residency if descriptor.residency is not None else defaults.residency,
        version=descriptor.version if descriptor.version is not None else defaults.version,
        stack=descriptor.stack if descriptor.stack is not None else defaults.stack,
        ttl=descriptor.ttl if descriptor.ttl is not None else defaults.ttl,
    )


def fold_deprecated(descriptor: RequestDescriptor) -> RequestDescriptor:
    """Move ``accept_header``/``response_type`` into their standard fields."""
    if descriptor.accept_header is None and descriptor.response_type is None:
        return descriptor
    headers = dict(descriptor.headers)
    if descriptor.accept_header is not None:
        headers["Accept"] = descriptor.accept_header
    return replace(
        descriptor,
        headers=headers,
        response_format=descriptor.response_type or descriptor.response_format,
        accept_header=None,
        response_type=None,
    )


class RequestNormalizer:
    def __init__(
        self,
        resolver: EndpointResolver,
        locations: LocationDirectory,
        defaults: ServiceDefaults | None = None,
        default_account_id: str | None = None,
    ) -> None:
        self._resolver = resolver
        self._locations = locations
        self._defaults = defaults if defaults is not None else ServiceDefaults()
        self._default_account_id = default_account_id

    @property
    def default_account_id(self) -> str | None:
        return self._default_account_id

    async def normalize(self, descriptor: RequestDescriptor) -> RequestDescriptor:
        """Return a new descriptor with ``url`` resolved; ``descriptor`` is left untouched."""
        normalized = descriptor
        if descriptor.has_service_identity:
            normalized = apply_defaults(descriptor, self._defaults)
            path = service_path(normalized)
            host = await self._host_for(normalized)
            normalized = replace(normalized, url=f"{host}{path}")
        elif not descriptor.url:
            raise UsageError("A request needs either a service_name or an absolute url.")
        return fold_deprecated(normalized)

    async def _host_for(self, descriptor: RequestDescriptor) -> str:
        stack = descriptor.stack or DISCOVERY_STACK
        if descriptor.bypass_discovery or stack != DISCOVERY_STACK:
            return self._locations.resolve_base_url(stack)
        account_id = descriptor.account_id or self._default_account_id or NO_ACCOUNT
        host = await self._resolver.resolve(account_id, descriptor.service_name or "")
        logger.debug(
            "Resolved service host",
            extra={"service_name": descriptor.service_name, "account_id": account_id, "host": host},
        )
        return host
