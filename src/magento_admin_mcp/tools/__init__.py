"""Tool registration helpers.

Every action is exposed as one MCP tool whose name is the action name with
dots replaced by underscores (``catalog.search_products`` becomes
``catalog_search_products``). All calls go through the shared dispatcher.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

from magento_admin_mcp.app import AppContext, get_app_context
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.logging_utils import get_logger
from magento_admin_mcp.mcp_runtime import StdioMCPServer, ToolResult, ToolSpec
from magento_admin_mcp.tools import (
    auth,
    cache,
    catalog,
    cms,
    diagnostics,
    pricing,
    promotions,
    scope,
    seo,
)
from magento_admin_mcp.tools.base import result_from_payload, tool_name_for
from magento_admin_mcp.tools.dispatcher import ActionSpec, Dispatcher

__all__ = [
    "build_dispatcher",
    "build_tool_specs",
    "get_actions",
    "get_dispatcher",
    "get_tool_registry",
    "get_tool_specs",
    "register_tools",
]

_MODULES = (auth, scope, catalog, pricing, promotions, cms, seo, cache, diagnostics)


def get_actions() -> list[ActionSpec]:
    return [action for module in _MODULES for action in module.ACTIONS]


def build_dispatcher(app: AppContext) -> Dispatcher:
    return Dispatcher(app, get_actions())


@lru_cache(maxsize=1)
def get_dispatcher() -> Dispatcher:
    return build_dispatcher(get_app_context())


def _tool_for(action: ActionSpec, dispatcher_factory: Callable[[], Dispatcher]) -> ToolSpec:
    async def handler(arguments: dict[str, object]) -> ToolResult:
        result = await dispatcher_factory().dispatch(action.name, arguments)
        return result_from_payload(result.payload, is_error=not result.ok)

    description = action.description
    if action.confirmation and action.risk_tier >= RiskTier.RISKY:
        description += " Requires confirm=true and a reason."
    return ToolSpec(
        name=tool_name_for(action.name),
        description=description,
        input_schema=action.input_schema,
        handler=handler,
    )


def build_tool_specs(dispatcher_factory: Callable[[], Dispatcher]) -> list[ToolSpec]:
    return [_tool_for(action, dispatcher_factory) for action in get_actions()]


def get_tool_specs() -> list[ToolSpec]:
    return build_tool_specs(get_dispatcher)


def get_tool_registry() -> dict[str, ToolSpec]:
    return {tool.name: tool for tool in get_tool_specs()}


def register_tools(server: StdioMCPServer) -> None:
    """Register every Magento admin tool with the MCP server."""
    logger = get_logger(__name__)
    tools = get_tool_specs()
    for tool in tools:
        server.add_tool(tool)
    logger.info("Registered %d Magento admin tools", len(tools))
