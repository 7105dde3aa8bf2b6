"""
MCP server exposing the discovery-aware API client as tools.

The API client is created on ``startup`` and closed on shutdown; the tools
registered at construction reach it through ``ClientToolDependencies`` and
report an error while no client is attached.
"""

import asyncio
import logging

from fastmcp import FastMCP  # type: ignore[import-not-found]

from discovery_client.client import ApiClient
from discovery_client.settings import Settings
from discovery_client.tools import ClientToolDependencies, register_client_tools


class ServerApp:
    """Pairs one FastMCP app with the ApiClient its tools call into."""

    def __init__(self, settings: Settings) -> None:
        self._logger = logging.getLogger(__name__)
        self._settings = settings
        self._api_client: ApiClient | None = None
        self._tool_dependencies = ClientToolDependencies()
        self._mcp_app = FastMCP(
            name="Discovery API Client MCP Server",
            instructions=(
                "Resolve backend service endpoints per account and call those services "
                "with caching and automatic retries."
            ),
        )
        register_client_tools(self._mcp_app, self._tool_dependencies)

    def startup(self) -> None:
        """Create the API client; discovery runs lazily on the first tool call."""
        self._api_client = ApiClient.from_settings(self._settings)
        self._tool_dependencies.attach_client(self._api_client)
        self._logger.info(
            "API client attached",
            extra={
                "global_api_url": self._settings.global_api_url,
                "watch_list": list(self._settings.watch_list),
            },
        )

    def shutdown(self) -> None:
        """Close the client when no event loop is running (after ``serve_forever``)."""
        asyncio.run(self.shutdown_async())

    async def shutdown_async(self) -> None:
        """Detach the tools first so no call starts on a closing client."""
        client, self._api_client = self._api_client, None
        self._tool_dependencies.detach_client()
        if client is not None:
            await client.aclose()
        self._logger.info("API client closed")

    def serve_forever(self) -> None:
        host = "0.0.0.0"
        port = self._settings.mcp_sse_port
        self._logger.info("Starting SSE transport", extra={"host": host, "port": port})
        self._mcp_app.run(transport="sse", host=host, port=port)

    async def serve_sse_async(self, host: str = "0.0.0.0") -> None:
        """SSE transport on the caller's loop, as used by the smoke script."""
        await self._mcp_app.run_http_async(
            transport="sse",
            host=host,
            port=self._settings.mcp_sse_port,
        )

    @property
    def mcp(self) -> FastMCP:
        return self._mcp_app

    @property
    def api_client(self) -> ApiClient | None:
        return self._api_client


def build_server(settings: Settings) -> ServerApp:
    return ServerApp(settings)
