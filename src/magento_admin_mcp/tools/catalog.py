"""Catalog tools: product search and two-phase bulk attribute updates."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from magento_admin_mcp.client.magento_rest import (
    MagentoRestClient,
    SearchCriteria,
    build_search_params,
)
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.payloads import ProductBulkUpdatePayload
from magento_admin_mcp.tools._commit import RecordOperation, run_bulk_commit
from magento_admin_mcp.tools._prepare import (
    add_attribute_filters,
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
    with_pagination,
)
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

COMMIT_ACTION = "catalog.commit_bulk_update"


def product_endpoint(sku: str) -> str:
    return f"/V1/products/{quote(sku, safe='')}"


async def search_products(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    criteria = SearchCriteria(
        page_size=params.get("page_size", 20),
        current_page=params.get("current_page", 1),
    )
    add_attribute_filters(criteria, params.get("filters"))
    search_params = build_search_params(criteria)
    fields = params.get("fields")
    if fields:
        search_params["fields"] = f"items[{','.join(fields)}],total_count,search_criteria"
    return await ctx.client().get(
        "/V1/products", search_params, ctx.store_code(params.get("scope"))
    )


async def get_product(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await ctx.client().get(
        product_endpoint(params["sku"]), store_code=ctx.store_code(params.get("scope"))
    )


async def prepare_bulk_update(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    updates: dict[str, Any] = params["updates"]
    ctx.guardrails.enforce_allowed_fields_for("catalog", updates, "Catalog bulk update")
    scope = ctx.guardrails.require_explicit_scope(params)

    client = ctx.client()
    products = await resolve_products(ctx, client, params["match"], scope.store_code_for_url())
    ctx.guardrails.enforce_bulk_cap(len(products))

    diffs = sample_diffs(products, updates, {"sku": "sku"}, ctx.settings.plans.sample_diff_limit)
    warnings = large_bulk_warning(ctx, len(products), "bulk update")

    payload = ProductBulkUpdatePayload(
        skus=tuple(str(product["sku"]) for product in products),
        updates=updates,
        scope=scope,
    )
    return store_plan(ctx, COMMIT_ACTION, payload, len(products), diffs, warnings)


def _product_update_operations(
    payload: ProductBulkUpdatePayload, client: MagentoRestClient
) -> list[RecordOperation]:
    store_code = payload.scope.store_code_for_url()

    def operation(sku: str) -> RecordOperation:
        body = {"product": {"sku": sku, **payload.updates}}
        return RecordOperation(
            identity={"sku": sku},
            call=lambda: client.put(product_endpoint(sku), body, store_code),
        )

    return [operation(sku) for sku in payload.skus]


async def commit_bulk_update(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await run_bulk_commit(
        ctx,
        params,
        ProductBulkUpdatePayload,
        _product_update_operations,
        lambda ok, total, failed: f"Updated {ok}/{total} products. {failed} errors.",
    )


ACTIONS = [
    ActionSpec(
        name="catalog.search_products",
        description="Search products with attribute filters, pagination and optional scope.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            with_pagination(
                {
                    "filters": {"type": "object"},
                    "fields": {"type": "array", "items": {"type": "string"}},
                    "scope": SCOPE_SCHEMA,
                }
            )
        ),
        handler=search_products,
    ),
    ActionSpec(
        name="catalog.get_product",
        description="Get full product details by SKU.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            {"sku": {"type": "string", "minLength": 1}, "scope": SCOPE_SCHEMA}, ["sku"]
        ),
        handler=get_product,
    ),
    ActionSpec(
        name="catalog.prepare_bulk_update",
        description=(
            "Prepare a bulk product attribute update. Returns a plan with the affected "
            "count and sample diffs; nothing is changed until commit."
        ),
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {
                "match": PRODUCT_MATCH_SCHEMA,
                "updates": {"type": "object", "minProperties": 1},
                "scope": SCOPE_SCHEMA,
            },
            ["match", "updates"],
        ),
        handler=prepare_bulk_update,
        confirmation=False,
    ),
    ActionSpec(
        name=COMMIT_ACTION,
        description="Execute a prepared bulk product update.",
        risk_tier=RiskTier.RISKY,
        input_schema=COMMIT_SCHEMA,
        handler=commit_bulk_update,
    ),
]
