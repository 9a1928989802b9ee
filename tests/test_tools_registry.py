"""Tests for tool registry helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from magento_admin_mcp.app import AppContext
from magento_admin_mcp.tools import (
    build_dispatcher,
    build_tool_specs,
    get_actions,
    get_tool_registry,
    register_tools,
)


def test_every_action_becomes_a_tool() -> None:
    registry = get_tool_registry()
    actions = get_actions()

    assert len(registry) == len(actions) == 38
    assert all("." not in name for name in registry)
    assert "catalog_prepare_bulk_update" in registry
    assert "cache_purge_by_url" in registry


def test_risky_tools_advertise_confirmation() -> None:
    registry = get_tool_registry()
    assert registry["pricing_commit_bulk_price_update"].description.endswith(
        "Requires confirm=true and a reason."
    )
    assert "confirm=true" not in registry["catalog_search_products"].description
    assert "confirm=true" not in registry["catalog_prepare_bulk_update"].description


@pytest.mark.asyncio
async def test_tool_handler_flags_errors(app: AppContext) -> None:
    tools = {tool.name: tool for tool in build_tool_specs(lambda: build_dispatcher(app))}

    result = await tools["auth_whoami"].handler({})

    assert result.is_error
    assert result.structured_content["error"]["code"] == "NOT_AUTHENTICATED"
    assert result.to_wire()["isError"] is True


def test_register_tools_adds_all_specs() -> None:
    server = MagicMock()
    with patch("magento_admin_mcp.tools.get_logger") as get_logger:
        logger = MagicMock()
        get_logger.return_value = logger
        register_tools(server)

    assert server.add_tool.call_count == 38
    logger.info.assert_called_once_with("Registered %d Magento admin tools", 38)
