"""HTTP JSON-RPC handler for MCP tools."""

from __future__ import annotations

import inspect
import json
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from magento_admin_mcp import __version__
from magento_admin_mcp.config import load_settings
from magento_admin_mcp.mcp_runtime import ToolResult
from magento_admin_mcp.tools import get_tool_registry
from magento_admin_mcp.utils.serialization import json_default

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2025-06-18", "2025-11-25")
DEFAULT_PROTOCOL_VERSION = "2025-03-26"
MAX_BATCH_REQUESTS = 50
SERVER_NAME = "magento-admin-mcp"


async def handle_mcp_request(request: Request) -> Response:
    origin_error = _validate_origin(request)
    if origin_error is not None:
        return origin_error

    if request.method == "OPTIONS":
        return Response(status_code=204)

    if request.method != "POST":
        return _error_response(
            None,
            "Method not allowed",
            status_code=405,
            code="method_not_allowed",
            protocol_version=_protocol_version(request),
        )

    try:
        payload = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response(
            None,
            "Invalid JSON",
            code=-32700,
            protocol_version=_protocol_version(request),
        )

    if isinstance(payload, list):
        return await _handle_batch(payload, request)
    if not isinstance(payload, dict):
        return _error_response(
            None,
            "Invalid JSON-RPC request",
            status_code=400,
            code=-32600,
            protocol_version=_protocol_version(request),
        )

    result = await _handle_single(payload)
    if result is None:
        return Response(
            status_code=202,
            headers={"MCP-Protocol-Version": _protocol_version(request)},
        )
    return _json_response(result, headers={"MCP-Protocol-Version": _protocol_version(request)})


async def _handle_batch(payloads: list[object], request: Request) -> Response:
    if not payloads or len(payloads) > MAX_BATCH_REQUESTS:
        message = (
            f"Batch request too large (max {MAX_BATCH_REQUESTS})"
            if payloads
            else "Invalid JSON-RPC batch request"
        )
        return _error_response(
            None,
            message,
            status_code=400,
            code=-32600,
            protocol_version=_protocol_version(request),
        )

    responses: list[dict[str, object]] = []
    for item in payloads:
        if not isinstance(item, dict):
            responses.append(_error_body(None, "Invalid JSON-RPC batch entry", code=-32600))
            continue
        response = await _handle_single(item)
        if response is not None:
            responses.append(response)

    if not responses:
        return Response(
            status_code=202,
            headers={"MCP-Protocol-Version": _protocol_version(request)},
        )
    return _json_response(responses, headers={"MCP-Protocol-Version": _protocol_version(request)})


async def _handle_single(payload: dict[str, object]) -> dict[str, object] | None:
    request_id = payload.get("id")
    method = payload.get("method")
    params = payload.get("params", {})
    params_dict = params if isinstance(params, dict) else {}

    if request_id is None:
        # Notifications and client responses get no reply.
        return None

    if not isinstance(method, str):
        return _error_body(request_id, "Invalid JSON-RPC method", code=-32600)

    if method == "initialize":
        settings = load_settings()
        requested_version = params_dict.get("protocolVersion")
        if isinstance(requested_version, str) and requested_version in SUPPORTED_PROTOCOL_VERSIONS:
            negotiated = requested_version
        else:
            negotiated = SUPPORTED_PROTOCOL_VERSIONS[-1]
        return _result_body(
            request_id,
            {
                "protocolVersion": negotiated,
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
                "instructions": settings.server.instructions,
                "capabilities": {"tools": {"listChanged": False}},
            },
        )

    if method == "ping":
        return _result_body(request_id, {})

    if method == "tools/list":
        tools = [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.input_schema,
            }
            for tool in get_tool_registry().values()
        ]
        return _result_body(request_id, {"tools": tools})

    if method == "tools/call":
        name = params_dict.get("name")
        if not isinstance(name, str):
            return _error_body(request_id, "Invalid tool name", code=-32602)
        arguments = params_dict.get("arguments", {})
        if not isinstance(arguments, dict):
            return _error_body(request_id, "Invalid tool arguments", code=-32602)
        tool = get_tool_registry().get(name)
        if tool is None:
            return _error_body(request_id, f"Unknown tool: {name}", code=-32602)
        try:
            result = tool.handler(arguments)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, ToolResult):
                raise TypeError("Tool handler did not return ToolResult")
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            logger.exception("Tool handler error: %s", name)
            return _error_body(request_id, "Internal tool error", code=-32603)
        return _result_body(request_id, result.to_wire())

    return _error_body(request_id, f"Unsupported method: {method[:256]}", code=-32601)


def _result_body(request_id: object, result: dict[str, object]) -> dict[str, object]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error_body(
    request_id: object,
    message: str,
    code: str | int = -32000,
) -> dict[str, object]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def _error_response(
    request_id: object,
    message: str,
    status_code: int = 400,
    code: str | int = -32000,
    protocol_version: str | None = None,
) -> JSONResponse:
    return JSONResponse(
        _error_body(request_id, message, code=code),
        status_code=status_code,
        headers={"MCP-Protocol-Version": protocol_version or DEFAULT_PROTOCOL_VERSION},
    )


def _json_response(
    payload: object,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> Response:
    body = json.dumps(payload, default=json_default, ensure_ascii=False)
    return Response(
        content=body,
        status_code=status_code,
        media_type="application/json",
        headers=headers,
    )


def _protocol_version(request: Request) -> str:
    version = request.headers.get("MCP-Protocol-Version")
    if version in SUPPORTED_PROTOCOL_VERSIONS:
        return version
    return DEFAULT_PROTOCOL_VERSION


def _validate_origin(request: Request) -> JSONResponse | None:
    allowed = tuple(getattr(request.app.state, "http_allowed_origins", ()))
    origin = request.headers.get("origin")
    if not origin or not allowed or "*" in allowed:
        return None
    if origin not in allowed:
        return _error_response(
            None,
            "Origin not allowed",
            status_code=403,
            code="origin_not_allowed",
            protocol_version=_protocol_version(request),
        )
    return None
