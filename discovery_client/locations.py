"""Static location table for hosts that are not resolved through discovery."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from discovery_client.errors import UsageError
from discovery_client.models import DISCOVERY_STACK


def ensure_scheme(host: str) -> str:
    """Prefix ``https://`` unless the host already names a scheme."""
    cleaned = host.strip().rstrip("/")
    if "://" in cleaned:
        return cleaned
    return f"https://{cleaned}"


@dataclass(frozen=True, slots=True)
class LocationDirectory:
    """Maps a service stack id to its base URL."""

    global_api_url: str
    stacks: Mapping[str, str] = field(default_factory=dict)

    def resolve_base_url(self, stack: str) -> str:
        if stack in self.stacks:
            return ensure_scheme(self.stacks[stack])
        if stack == DISCOVERY_STACK:
            return ensure_scheme(self.global_api_url)
        raise UsageError(f"No location is configured for service stack '{stack}'.")

    @property
    def default_host(self) -> str:
        """Host that serves every service when discovery is unavailable."""
        return self.resolve_base_url(DISCOVERY_STACK)
