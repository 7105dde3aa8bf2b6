"""
Discovery-aware HTTP client for multi-tenant backend services.

Resolves the host serving each (account, service) pair through the discovery
service, retries transient failures and caches successful reads.
"""

from discovery_client.cache import EphemeralCache
from discovery_client.client import ApiClient
from discovery_client.errors import (
    ApiClientError,
    ClientError,
    ResolutionError,
    ResponseError,
    ServerError,
    TransportError,
    UsageError,
)
from discovery_client.events import BeforeRequestEvent, RequestEvents
from discovery_client.models import ApiResponse, RequestDescriptor, ServiceDefaults
from discovery_client.settings import Settings

__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiResponse",
    "BeforeRequestEvent",
    "ClientError",
    "EphemeralCache",
    "RequestDescriptor",
    "RequestEvents",
    "ResolutionError",
    "ResponseError",
    "ServerError",
    "ServiceDefaults",
    "Settings",
    "TransportError",
    "UsageError",
]
