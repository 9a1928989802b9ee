"""Minimal MCP stdio runtime: initialize, tools/list and tools/call."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TextIO, cast

from pydantic import BaseModel

from magento_admin_mcp.utils.serialization import json_default

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"


@dataclass
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, object]
    handler: Callable[[dict[str, object]], "ToolResult | Awaitable[ToolResult]"]


class ToolResult(BaseModel):
    content: list[dict[str, object]]
    structured_content: dict[str, object] | None = None
    is_error: bool = False

    def to_wire(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "content": self.content,
            "structuredContent": self.structured_content,
        }
        if self.is_error:
            payload["isError"] = True
        return payload


class StdioMCPServer:
    """Line-delimited JSON-RPC over stdin/stdout.

    Tool calls run one at a time on a private event loop, so each call
    finishes before the next line is read.
    """

    def __init__(self, name: str, version: str, instructions: str) -> None:
        self._name = name
        self._version = version
        self._instructions = instructions
        self._tools: dict[str, ToolSpec] = {}

    def add_tool(self, tool: ToolSpec) -> None:
        self._tools[tool.name] = tool

    @property
    def tools(self) -> dict[str, ToolSpec]:
        return dict(self._tools)

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        source = stdin or sys.stdin
        self._out = stdout or sys.stdout
        loop = asyncio.new_event_loop()
        try:
            for line in source:
                line = line.strip()
                if not line:
                    continue
                try:
                    request = json.loads(line)
                except json.JSONDecodeError:
                    self._write_error(None, -32700, "Invalid JSON")
                    continue
                if not isinstance(request, dict):
                    self._write_error(None, -32600, "Invalid JSON-RPC request")
                    continue
                self._handle(request, loop)
        finally:
            loop.close()

    def _handle(self, request: dict[str, object], loop: asyncio.AbstractEventLoop) -> None:
        request_id = request.get("id")
        method = request.get("method")
        raw_params = request.get("params", {})
        params = raw_params if isinstance(raw_params, dict) else {}

        if request_id is None:
            # Notifications get no reply.
            return

        if method == "initialize":
            self._write_result(
                request_id,
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "serverInfo": {"name": self._name, "version": self._version},
                    "instructions": self._instructions,
                    "capabilities": {"tools": {"listChanged": False}},
                },
            )
        elif method == "ping":
            self._write_result(request_id, {})
        elif method == "tools/list":
            tools = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "inputSchema": tool.input_schema,
                }
                for tool in self._tools.values()
            ]
            self._write_result(request_id, {"tools": tools})
        elif method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str):
                self._write_error(request_id, -32602, "Invalid tool name")
                return
            raw_arguments = params.get("arguments", {})
            arguments = raw_arguments if isinstance(raw_arguments, dict) else {}
            tool = self._tools.get(name)
            if tool is None:
                self._write_error(request_id, -32602, f"Unknown tool: {name}")
                return
            try:
                raw_result = tool.handler(arguments)
                if inspect.isawaitable(raw_result):
                    tool_result = loop.run_until_complete(cast(Awaitable[ToolResult], raw_result))
                else:
                    tool_result = cast(ToolResult, raw_result)
                if not isinstance(tool_result, ToolResult):
                    raise TypeError("Tool handler did not return ToolResult")
            except (KeyboardInterrupt, SystemExit):
                raise
            except Exception:
                logger.exception("Tool execution error: %s", name)
                self._write_error(request_id, -32603, "Internal tool error")
                return
            self._write_result(request_id, tool_result.to_wire())
        else:
            method_name = method if isinstance(method, str) else repr(method)
            self._write_error(request_id, -32601, f"Unsupported method: {method_name[:256]}")

    def _write_result(self, request_id: object, result: dict[str, object]) -> None:
        payload = {"jsonrpc": "2.0", "id": request_id, "result": result}
        self._out.write(json.dumps(payload, default=json_default) + "\n")
        self._out.flush()

    def _write_error(self, request_id: object, code: int, message: str) -> None:
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": code, "message": message},
        }
        self._out.write(json.dumps(payload) + "\n")
        self._out.flush()
