"""Entrypoint for the Magento Admin MCP server."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from magento_admin_mcp import __version__
from magento_admin_mcp.config import load_settings
from magento_admin_mcp.logging_utils import configure_logging
from magento_admin_mcp.mcp_runtime import StdioMCPServer
from magento_admin_mcp.tools import register_tools

SERVER_NAME = "magento-admin-mcp"


def build_server() -> StdioMCPServer:
    """Create and configure the MCP server instance."""

    settings = load_settings()
    configure_logging()

    server = StdioMCPServer(
        name=SERVER_NAME,
        version=__version__,
        instructions=settings.server.instructions,
    )
    logging.info("Initializing Magento Admin MCP Server v%s", __version__)
    logging.info("Environment: %s", settings.server.default_environment)
    if settings.logging.file:
        logging.info("Log file configured at: %s", settings.logging.file)
    if not settings.cache.fastly_configured:
        logging.info("Fastly not configured; cache purge tools will report purged=false")
    register_tools(server)
    return server


def run_entrypoint() -> None:
    """Run the server based on transport settings."""
    settings = load_settings()
    if settings.server.transport_mode == "http":
        _run_http()
        return
    get_server().run()


def _run_http() -> None:
    settings = load_settings()
    configure_logging()
    import uvicorn

    from magento_admin_mcp.transport.http_server import create_http_app

    app = create_http_app(settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


_server: StdioMCPServer | None = None
_server_lock = threading.Lock()


def get_server() -> StdioMCPServer:
    """Lazily build and return the module-level server instance."""
    global _server
    if _server is not None:
        return _server
    with _server_lock:
        if _server is None:
            _server = build_server()
        return _server


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
