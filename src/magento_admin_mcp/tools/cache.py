"""Targeted CDN cache purges. There is no purge-all."""

from __future__ import annotations

import logging
from typing import Any

from magento_admin_mcp.client.fastly import FastlyApiError
from magento_admin_mcp.client.magento_rest import MagentoApiError
from magento_admin_mcp.errors import ActionValidationError
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.tools._schemas import object_schema
from magento_admin_mcp.tools.catalog import product_endpoint
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

logger = logging.getLogger(__name__)

NOT_CONFIGURED = {
    "message": (
        "Fastly not configured. Set FASTLY_SERVICE_ID and FASTLY_API_TOKEN environment variables."
    ),
    "purged": False,
}


async def purge_by_url(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    urls: list[str] = params["urls"]
    wildcards = [url for url in urls if "*" in url]
    if wildcards:
        raise ActionValidationError(
            "Wildcard purge is not allowed. Specify exact URLs.", {"invalid": wildcards}
        )
    ctx.guardrails.enforce_rate_limit()

    fastly = ctx.app.fastly_client()
    if fastly is None:
        return dict(NOT_CONFIGURED)

    results: list[dict[str, Any]] = []
    for url in urls:
        try:
            purge = await fastly.purge_url(url)
        except FastlyApiError as exc:
            logger.warning("Purge of %s failed: %s", url, exc.message)
            results.append({"url": url, "success": False, "error": exc.message})
            continue
        results.append({"url": url, "success": purge.ok, "id": purge.id})

    purged = sum(1 for result in results if result["success"])
    return {"message": f"Purged {purged}/{len(urls)} URLs.", "results": results}


async def purge_product(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    sku: str = params["sku"]
    ctx.guardrails.enforce_rate_limit()
    client = ctx.client()

    fastly = ctx.app.fastly_client()
    if fastly is None:
        try:
            await client.delete("/V1/integration/cache/clean/full_page")
        except MagentoApiError:
            return {"message": "Neither Fastly nor Magento cache clean API available.", "purged": False}
        return {
            "message": f"Requested full page cache clean (Fastly not configured). Product: {sku}.",
            "note": "Configure Fastly for targeted product purge.",
        }

    product = await client.get(product_endpoint(sku))
    surrogate_key = f"cat_p_{product.get('id')}"
    purge = await fastly.purge_surrogate_key(surrogate_key)
    return {
        "message": f"Purged cache for product {sku} (surrogate key: {surrogate_key}).",
        "success": purge.ok,
        "purge_id": purge.id,
    }


async def purge_category(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    category_id = params["category_id"]
    ctx.guardrails.enforce_rate_limit()

    fastly = ctx.app.fastly_client()
    if fastly is None:
        return dict(NOT_CONFIGURED)

    surrogate_key = f"cat_c_{category_id}"
    purge = await fastly.purge_surrogate_key(surrogate_key)
    return {
        "message": f"Purged cache for category {category_id} (surrogate key: {surrogate_key}).",
        "success": purge.ok,
        "purge_id": purge.id,
    }


ACTIONS = [
    ActionSpec(
        name="cache.purge_by_url",
        description="Purge specific URLs from the CDN cache. Wildcards are rejected.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {
                "urls": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "minItems": 1,
                    "maxItems": 50,
                }
            },
            ["urls"],
            confirm=True,
        ),
        handler=purge_by_url,
    ),
    ActionSpec(
        name="cache.purge_product",
        description="Purge the cache for one product by SKU.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {"sku": {"type": "string", "minLength": 1}}, ["sku"], confirm=True
        ),
        handler=purge_product,
    ),
    ActionSpec(
        name="cache.purge_category",
        description="Purge the cache for one category.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {"category_id": {"type": "integer"}}, ["category_id"], confirm=True
        ),
        handler=purge_category,
    ),
]
