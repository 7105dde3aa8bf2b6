"""MCP tool registrations exposing the discovery-aware API client."""

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Awaitable, Callable, Literal

from fastmcp import Context, FastMCP
from pydantic import Field

from discovery_client.client import ApiClient
from discovery_client.errors import ApiClientError, ResponseError
from discovery_client.models import RequestDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ClientToolDependencies:
    """Runtime dependencies required by the MCP tools."""

    api_client: ApiClient | None = None

    def attach_client(self, client: ApiClient) -> None:
        self.api_client = client

    def detach_client(self) -> None:
        self.api_client = None

    def require_client(self) -> ApiClient:
        if self.api_client is None:
            raise RuntimeError("API client is not initialized.")
        return self.api_client


def register_client_tools(
    mcp: FastMCP,
    dependencies: ClientToolDependencies,
) -> None:
    """Register MCP tools that proxy to discovered backend services."""

    def _validate_non_empty(value: str, field_name: str) -> str:
        if not value or not value.strip():
            raise ValueError(f"{field_name} must be a non-empty string.")
        return value.strip()

    def _log_tool_event(tool_name: str, event: str, **fields: object) -> None:
        logger.info(
            "client_tool_event",
            extra={"tool": tool_name, "event": event, **fields},
        )

    async def _with_error_handling(
        tool_name: str,
        action: Callable[[], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        try:
            return await action()
        except ResponseError as exc:
            logger.warning("%s failed with status %s", tool_name, exc.status_code, exc_info=True)
            _log_tool_event(tool_name, "response_error", status_code=exc.status_code)
            return {"error": str(exc), "status": exc.status_code, "data": exc.response.data}
        except ApiClientError as exc:
            logger.warning("%s failed due to API error", tool_name, exc_info=True)
            _log_tool_event(tool_name, "api_error", error=str(exc))
            return {"error": str(exc)}
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s failed unexpectedly", tool_name)
            _log_tool_event(tool_name, "unexpected_error", error=str(exc))
            return {"error": f"Unexpected error: {exc}"}

    @mcp.tool(
        name="resolve_service_endpoint",
        description="Returns the base URL currently serving a backend service for an account, as reported by the discovery service (or the default host while discovery is unavailable).",
    )
    async def resolve_service_endpoint(
        service_name: Annotated[str, Field(description="The backend service name (e.g., 'search').")],
        account_id: Annotated[str | None, Field(description="Account whose endpoints should be resolved. Defaults to the configured account.")] = None,
    ) -> dict[str, Any]:
        """Resolve the host for a service."""

        service_value = _validate_non_empty(service_name, "service_name")
        client = dependencies.require_client()

        async def _call() -> dict[str, Any]:
            endpoint = await client.resolve_endpoint(service_value, account_id)
            _log_tool_event(
                "resolve_service_endpoint",
                "success",
                service_name=service_value,
                endpoint=endpoint,
            )
            return {"service_name": service_value, "account_id": account_id or "", "endpoint": endpoint}

        return await _with_error_handling("resolve_service_endpoint", _call)

    @mcp.tool(
        name="call_service",
        description="Issues a request against a backend service, resolving its host through discovery. GET responses are cached briefly; writes invalidate the cache. Transient failures are retried.",
    )
    async def call_service(
        service_name: Annotated[str, Field(description="The backend service name (e.g., 'search').")],
        path: Annotated[str, Field(description="Path within the service, e.g. 'queries/recent'.")],
        ctx: Context,
        method: Annotated[Literal["GET", "POST", "PUT", "DELETE"], Field(description="HTTP method.")] = "GET",
        account_id: Annotated[str | None, Field(description="Account whose data is addressed.")] = None,
        version: Annotated[str | None, Field(description="Service version, e.g. 'v2'. Defaults to the configured version.")] = None,
        params: Annotated[dict[str, str] | None, Field(description="Query string parameters.")] = None,
        body: Annotated[Any, Field(description="JSON body for POST/PUT.")] = None,
        retry_count: Annotated[int, Field(ge=0, le=10, description="Maximum number of retries on transient failures.")] = 2,
    ) -> dict[str, Any]:
        """Send a request to a service and return its status and payload."""

        service_value = _validate_non_empty(service_name, "service_name")
        client = dependencies.require_client()
        request = RequestDescriptor(
            service_name=service_value,
            path=path,
            account_id=account_id,
            version=version,
            params=dict(params or {}),
            data=body,
            retry_count=retry_count,
        )
        verbs = {"GET": client.get, "POST": client.post, "PUT": client.put, "DELETE": client.delete}

        async def _call() -> dict[str, Any]:
            data = await verbs[method](request)
            await ctx.info(f"{method} {service_value}/{path.lstrip('/')} completed.")
            _log_tool_event("call_service", "success", service_name=service_value, method=method)
            return {"status": "ok", "data": data}

        return await _with_error_handling("call_service", _call)

    @mcp.tool(
        name="reset_client_state",
        description="Clears cached responses and discovered endpoints so the next call re-resolves every service.",
    )
    async def reset_client_state() -> dict[str, Any]:
        """Reset the client's caches."""

        client = dependencies.require_client()

        async def _call() -> dict[str, Any]:
            client.reset()
            _log_tool_event("reset_client_state", "success")
            return {"status": "reset"}

        return await _with_error_handling("reset_client_state", _call)

    logger.info("API client MCP tools registered.")
