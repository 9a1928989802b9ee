"""scope.list_websites_stores and scope.set_default."""

from __future__ import annotations

from typing import Any

from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.registry import StoreScope
from magento_admin_mcp.tools._schemas import object_schema
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec


async def list_websites_stores(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    client = ctx.client()
    store_configs = await client.get("/V1/store/storeConfigs")
    websites = await client.get("/V1/store/websites")
    store_groups = await client.get("/V1/store/storeGroups")
    store_views = await client.get("/V1/store/storeViews")
    default_scope = ctx.default_scope
    return {
        "websites": websites,
        "store_groups": store_groups,
        "store_views": store_views,
        "store_configs": store_configs,
        "default_scope": default_scope.model_dump(exclude_none=True) if default_scope else None,
    }


async def set_default(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    code = params["store_view_code"]
    ctx.app.sessions.set_default_scope(ctx.session_id, StoreScope(store_view_code=code))
    return {
        "message": f"Default scope set to store view: {code}",
        "store_view_code": code,
    }


ACTIONS = [
    ActionSpec(
        name="scope.list_websites_stores",
        description="List websites, store groups, store views and store configs.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema({}),
        handler=list_websites_stores,
    ),
    ActionSpec(
        name="scope.set_default",
        description="Set the default store view used by read tools in this session.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            {"store_view_code": {"type": "string", "minLength": 1}},
            ["store_view_code"],
        ),
        handler=set_default,
    ),
]
