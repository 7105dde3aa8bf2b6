"""Run the Discovery API Client MCP server over SSE."""

import logging
import os
import sys

from discovery_client.server import build_server
from discovery_client.settings import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _configure_logging() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)


def main() -> int:
    _configure_logging()
    logger = logging.getLogger("discovery-client")
    try:
        settings = Settings.load()
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    server = build_server(settings)
    server.startup()
    logger.info(
        "MCP SSE server ready at http://localhost:%s/sse (discovery via %s)",
        settings.mcp_sse_port,
        settings.global_api_url,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutdown requested (Ctrl+C).")
    except Exception:
        logger.exception("Server stopped due to an unexpected error.")
        raise
    finally:
        server.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
