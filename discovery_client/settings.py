"""Environment-driven configuration for the discovery-aware API client."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from discovery_client.locations import LocationDirectory
from discovery_client.models import DISCOVERY_STACK, ServiceDefaults

DEFAULT_WATCH_LIST = ("aims", "subscriptions", "search")


def _positive_number(name: str, default: str, cast: type) -> float | int:
    raw = os.getenv(name, "").strip() or default
    try:
        value = cast(raw)
    except ValueError as exc:
        kind = "an integer" if cast is int else "a numeric value"
        raise ValueError(f"{name} must be {kind}.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be greater than zero.")
    return value


def _parse_locations(raw: str) -> dict[str, str]:
    locations: dict[str, str] = {}
    for item in raw.split(","):
        if not item.strip():
            continue
        stack, sep, url = item.partition("=")
        if not sep or not stack.strip() or not url.strip():
            raise ValueError("SERVICE_LOCATIONS entries must look like 'stack=https://host'.")
        locations[stack.strip()] = url.strip()
    return locations


@dataclass(frozen=True, slots=True)
class Settings:
    """Container for runtime configuration."""

    global_api_url: str
    api_timeout: float = 30.0
    default_residency: str = "default"
    default_version: str = "v1"
    default_stack: str = DISCOVERY_STACK
    default_cache_ttl_ms: int = 60000
    watch_list: tuple[str, ...] = DEFAULT_WATCH_LIST
    service_locations: dict[str, str] = field(default_factory=dict)
    default_account_id: str | None = None
    retry_deadline: float | None = None
    mcp_sse_port: int = 8000

    @classmethod
    def load(cls) -> "Settings":
        """
        Load configuration from environment variables.

        Python-dotenv is used so developers can rely on a local .env file without
        exporting variables globally.
        """
        load_dotenv()

        global_api_url = os.getenv("GLOBAL_API_URL", "").strip()
        if not global_api_url:
            raise ValueError("GLOBAL_API_URL is required but was not provided.")

        watch_raw = os.getenv("DISCOVERY_WATCH_LIST")
        if watch_raw is None:
            watch_list = DEFAULT_WATCH_LIST
        else:
            watch_list = tuple(name.strip() for name in watch_raw.split(",") if name.strip())

        retry_deadline = None
        if os.getenv("RETRY_DEADLINE", "").strip():
            retry_deadline = float(_positive_number("RETRY_DEADLINE", "0", float))

        return cls(
            global_api_url=global_api_url,
            api_timeout=float(_positive_number("API_TIMEOUT", "30", float)),
            default_residency=os.getenv("DEFAULT_RESIDENCY", "").strip() or "default",
            default_version=os.getenv("DEFAULT_VERSION", "").strip() or "v1",
            default_stack=os.getenv("DEFAULT_STACK", "").strip() or DISCOVERY_STACK,
            default_cache_ttl_ms=int(_positive_number("DEFAULT_CACHE_TTL_MS", "60000", int)),
            watch_list=watch_list,
            service_locations=_parse_locations(os.getenv("SERVICE_LOCATIONS", "")),
            default_account_id=os.getenv("DEFAULT_ACCOUNT_ID", "").strip() or None,
            retry_deadline=retry_deadline,
            mcp_sse_port=int(_positive_number("MCP_SSE_PORT", "8000", int)),
        )

    def service_defaults(self) -> ServiceDefaults:
        return ServiceDefaults(
            residency=self.default_residency,
            version=self.default_version,
            stack=self.default_stack,
            ttl=self.default_cache_ttl_ms,
        )

    def location_directory(self) -> LocationDirectory:
        return LocationDirectory(
            global_api_url=self.global_api_url,
            stacks=dict(self.service_locations),
        )
