"""Request and response types shared across the client."""

from dataclasses import dataclass, field
from typing import Any, Literal

ResponseFormat = Literal["json", "text", "bytes"]

DISCOVERY_STACK = "global"


@dataclass(frozen=True, slots=True)
class ServiceDefaults:
    """Process-wide values merged under every service-addressed request."""

    residency: str = "default"
    version: str | int = "v1"
    stack: str = DISCOVERY_STACK
    ttl: int = 60000


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """Logical description of a single API request.

    Setting ``service_name`` makes the normalizer derive ``url`` from the
    service's resolved host. Fields left as ``None`` fall back to
    ``ServiceDefaults``; explicit values, including ``0``, take precedence.

    ``ttl`` is either a duration in milliseconds or a flag: ``True`` uses the
    default policy, ``False`` disables read caching.
    """

    service_name: str | None = None
    stack: str | None = None
    residency: str | None = None
    version: str | int | None = None
    account_id: str | None = None
    path: str | None = None
    url: str | None = None
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    form: bool = False
    ttl: int | bool | None = None
    retry_count: int | None = None
    retry_interval: int | None = None
    bypass_discovery: bool = False
    response_format: ResponseFormat = "json"
    # Deprecated shorthands, folded into headers / response_format on normalize.
    accept_header: str | None = None
    response_type: ResponseFormat | None = None

    @property
    def has_service_identity(self) -> bool:
        return self.service_name is not None

    def cache_ttl_ms(self, default_ttl: int) -> int:
        """Effective read-cache TTL in milliseconds (0 disables caching)."""
        if self.ttl is True:
            return default_ttl
        if self.ttl is None or self.ttl is False:
            return 0
        return max(int(self.ttl), 0)


@dataclass(frozen=True, slots=True)
class ApiResponse:
    """A response as surfaced by the transport, for any status code."""

    status_code: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code <= 299
