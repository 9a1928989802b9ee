"""Two-phase bulk price updates."""

from __future__ import annotations

from typing import Any

from magento_admin_mcp.client.magento_rest import MagentoRestClient
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.payloads import PriceBulkUpdatePayload, PriceUpdates
from magento_admin_mcp.tools._commit import RecordOperation, run_bulk_commit
from magento_admin_mcp.tools._prepare import (
    large_bulk_warning,
    resolve_products,
    sample_diffs,
    store_plan,
)
from magento_admin_mcp.tools._schemas import (
    COMMIT_SCHEMA,
    PRODUCT_MATCH_SCHEMA,
    SCOPE_SCHEMA,
    object_schema,
)
from magento_admin_mcp.tools.catalog import product_endpoint
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

COMMIT_ACTION = "pricing.commit_bulk_price_update"

PRICE_UPDATES_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "price": {"type": "number", "minimum": 0},
        "special_price": {"type": "number", "minimum": 0},
        "special_from_date": {"type": "string"},
        "special_to_date": {"type": "string"},
    },
    "minProperties": 1,
    "additionalProperties": False,
}


def _as_price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


async def prepare_bulk_price_update(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    price_updates = PriceUpdates.model_validate(params["price_updates"])
    updates = price_updates.model_dump(exclude_none=True)
    scope = ctx.guardrails.require_explicit_scope(params)

    client = ctx.client()
    products = await resolve_products(ctx, client, params["match"], scope.store_code_for_url())
    ctx.guardrails.enforce_bulk_cap(len(products))

    warnings: list[str] = []
    if price_updates.price is not None:
        for product in products:
            warning = ctx.guardrails.check_price_change_threshold(
                _as_price(product.get("price")), price_updates.price
            )
            if warning:
                warnings.append(f"SKU {product.get('sku')}: {warning}")
    warnings.extend(large_bulk_warning(ctx, len(products), "bulk price update"))

    diffs = sample_diffs(products, updates, {"sku": "sku"}, ctx.settings.plans.sample_diff_limit)
    payload = PriceBulkUpdatePayload(
        skus=tuple(str(product["sku"]) for product in products),
        price_updates=price_updates,
        scope=scope,
    )
    return store_plan(ctx, COMMIT_ACTION, payload, len(products), diffs, warnings)


def _price_operations(
    payload: PriceBulkUpdatePayload, client: MagentoRestClient
) -> list[RecordOperation]:
    store_code = payload.scope.store_code_for_url()
    updates = payload.price_updates.model_dump(exclude_none=True)

    def operation(sku: str) -> RecordOperation:
        body = {"product": {"sku": sku, **updates}}
        return RecordOperation(
            identity={"sku": sku},
            call=lambda: client.put(product_endpoint(sku), body, store_code),
        )

    return [operation(sku) for sku in payload.skus]


async def commit_bulk_price_update(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await run_bulk_commit(
        ctx,
        params,
        PriceBulkUpdatePayload,
        _price_operations,
        lambda ok, total, failed: f"Updated prices for {ok}/{total} products. {failed} errors.",
    )


ACTIONS = [
    ActionSpec(
        name="pricing.prepare_bulk_price_update",
        description=(
            "Prepare a bulk price update. Returns a plan with the affected count, sample "
            "diffs and warnings for large relative price changes."
        ),
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {
                "match": PRODUCT_MATCH_SCHEMA,
                "price_updates": PRICE_UPDATES_SCHEMA,
                "scope": SCOPE_SCHEMA,
            },
            ["match", "price_updates"],
        ),
        handler=prepare_bulk_price_update,
        confirmation=False,
    ),
    ActionSpec(
        name=COMMIT_ACTION,
        description="Execute a prepared bulk price update.",
        risk_tier=RiskTier.RISKY,
        input_schema=COMMIT_SCHEMA,
        handler=commit_bulk_price_update,
    ),
]
