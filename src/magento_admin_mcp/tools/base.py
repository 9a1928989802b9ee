"""Tool helpers."""

from __future__ import annotations

import json

from magento_admin_mcp.mcp_runtime import ToolResult
from magento_admin_mcp.utils.serialization import json_default


def result_from_payload(payload: dict[str, object], *, is_error: bool = False) -> ToolResult:
    text = json.dumps(payload, ensure_ascii=True, indent=2, default=json_default)
    content: list[dict[str, object]] = [{"type": "text", "text": text}]
    return ToolResult(content=content, structured_content=payload, is_error=is_error)


def summarize_result(result: object) -> str:
    """One-line summary stored in audit records."""
    if result is None:
        return "null"
    if isinstance(result, dict):
        if result.get("message"):
            return str(result["message"])
        if result.get("total_count") is not None:
            return f"total_count: {result['total_count']}"
        return "object with keys: " + ", ".join(str(key) for key in result)
    return str(result)


def tool_name_for(action: str) -> str:
    return action.replace(".", "_")
