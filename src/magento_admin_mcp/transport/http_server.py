"""Starlette app serving MCP over HTTP."""

from __future__ import annotations

import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from magento_admin_mcp.config import Settings, load_settings

logger = logging.getLogger(__name__)


def create_http_app(settings: Settings | None = None) -> Starlette:
    """Build the HTTP app: ``/mcp`` for JSON-RPC, ``/health`` and ``/ready`` for probes.

    The HTTP transport serves a single operator session, the same one the
    stdio transport uses.
    """
    settings = settings or load_settings()

    middleware: list[Middleware] = []
    if settings.server.http_enable_cors and settings.server.http_allowed_origins:
        from starlette.middleware.cors import CORSMiddleware

        middleware.append(
            Middleware(
                CORSMiddleware,
                allow_origins=list(settings.server.http_allowed_origins),
                allow_methods=["POST", "GET", "OPTIONS"],
                allow_headers=["Content-Type", "Accept", "MCP-Protocol-Version"],
            )
        )

    async def mcp_handler(request: Request) -> Response:
        from magento_admin_mcp.transport.mcp_handler import handle_mcp_request

        return await handle_mcp_request(request)

    async def health_handler(request: Request) -> Response:
        return JSONResponse({"status": "healthy"})

    async def ready_handler(request: Request) -> Response:
        return JSONResponse({"status": "ready"})

    routes = [
        Route("/mcp", endpoint=mcp_handler, methods=["POST", "OPTIONS"]),
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/ready", endpoint=ready_handler, methods=["GET"]),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.http_allowed_origins = tuple(settings.server.http_allowed_origins)
    logger.info("HTTP transport ready on %s:%d", settings.server.host, settings.server.port)
    return app
