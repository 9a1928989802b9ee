"""Read-only storefront diagnostics."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from magento_admin_mcp.client.magento_rest import (
    MagentoApiError,
    MagentoRestClient,
    SearchCriteria,
)
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.tools._schemas import object_schema
from magento_admin_mcp.tools.catalog import product_endpoint
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

logger = logging.getLogger(__name__)

DEFAULT_STOCK_ID = 1

STATUS_DISABLED = 2
VISIBILITY_NOT_VISIBLE = 1


def _salable_endpoint(sku: str) -> str:
    return f"/V1/inventory/get-product-salable-quantity/{quote(sku, safe='')}/{DEFAULT_STOCK_ID}"


async def _salable_quantity(client: MagentoRestClient, sku: str) -> Any:
    """None when MSI is not installed."""
    try:
        return await client.get(_salable_endpoint(sku))
    except MagentoApiError as exc:
        logger.debug("Salable quantity unavailable for %s: %s", sku, exc.message)
        return None


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def display_issues(product: dict[str, Any]) -> tuple[list[str], list[str]]:
    """Reasons a product may not show on the storefront, with suggested tools."""
    issues: list[str] = []
    actions: list[str] = []

    if _as_int(product.get("status")) == STATUS_DISABLED:
        issues.append("Product is DISABLED (status=2).")
        actions.append("catalog_prepare_bulk_update to set status=1 (enabled)")

    if _as_int(product.get("visibility")) == VISIBILITY_NOT_VISIBLE:
        issues.append(
            'Product visibility is "Not Visible Individually" (visibility=1). It only '
            "appears as part of a grouped or configurable product."
        )
        actions.append("catalog_prepare_bulk_update to set visibility=4 (catalog+search)")

    if _as_float(product.get("price")) <= 0:
        issues.append("Product has no price or price is 0.")
        actions.append("pricing_prepare_bulk_price_update to set a valid price")

    extension = product.get("extension_attributes") or {}
    if not extension.get("website_ids"):
        issues.append("Product is not assigned to any website.")
        actions.append("Assign the product to a website in the Magento Admin")

    category_ids = next(
        (
            attribute.get("value")
            for attribute in product.get("custom_attributes") or []
            if attribute.get("attribute_code") == "category_ids"
        ),
        None,
    )
    if not isinstance(category_ids, list) or not category_ids:
        issues.append("Product is not assigned to any category.")
        actions.append("catalog_prepare_bulk_update to assign categories")

    if not product.get("media_gallery_entries"):
        issues.append("Product has no images.")

    stock_item = extension.get("stock_item")
    if isinstance(stock_item, dict):
        if not stock_item.get("is_in_stock"):
            issues.append("Product is marked as OUT OF STOCK.")
            actions.append("Update the stock status in the Magento Admin or inventory API")
        qty = _as_float(stock_item.get("qty"))
        if qty <= 0:
            issues.append(f"Product quantity is {qty:g}.")

    return issues, actions


async def product_display_check(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    sku: str = params["sku"]
    client = ctx.client()
    try:
        product = await client.get(product_endpoint(sku), store_code=params.get("store_view_code"))
    except MagentoApiError as exc:
        return {
            "sku": sku,
            "found": False,
            "issues": [f"Product not found: {exc.message}"],
            "recommended_actions": [],
        }

    issues, actions = display_issues(product)
    salable = await _salable_quantity(client, sku)
    if isinstance(salable, list) and salable:
        total = sum(_as_float(entry.get("qty")) for entry in salable if isinstance(entry, dict))
        if total <= 0:
            issues.append(f"MSI salable quantity is {total:g}.")

    return {
        "sku": sku,
        "found": True,
        "product_name": product.get("name"),
        "status": product.get("status"),
        "visibility": product.get("visibility"),
        "price": product.get("price"),
        "issues": issues or ["No issues detected."],
        "recommended_actions": actions,
    }


async def indexer_status_report(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    try:
        indexers = await ctx.client().get("/V1/indexer/status")
    except MagentoApiError as exc:
        logger.info("Indexer status unavailable: %s", exc.message)
        return {
            "message": "Indexer status endpoint not available. Check Magento version and modules.",
            "indexers": [],
        }

    indexers = indexers if isinstance(indexers, list) else []
    needs_reindex = [indexer for indexer in indexers if indexer.get("status") != "valid"]
    return {
        "indexers": indexers,
        "total": len(indexers),
        "valid": len(indexers) - len(needs_reindex),
        "invalid": len(needs_reindex),
        "needs_reindex": [
            {
                "indexer_id": indexer.get("indexer_id"),
                "title": indexer.get("title"),
                "status": indexer.get("status"),
            }
            for indexer in needs_reindex
        ],
    }


async def inventory_salable_report(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    sku: str = params["sku"]
    client = ctx.client()
    try:
        product = await client.get(product_endpoint(sku))
    except MagentoApiError as exc:
        return {"sku": sku, "error": exc.message}

    source_items = None
    try:
        source_items = await client.search(
            "/V1/inventory/source-items", SearchCriteria().add_filter("sku", sku, "eq")
        )
    except MagentoApiError as exc:
        logger.debug("Source items unavailable for %s: %s", sku, exc.message)

    extension = product.get("extension_attributes") or {}
    return {
        "sku": sku,
        "stock_item": extension.get("stock_item"),
        "salable_quantity": await _salable_quantity(client, sku),
        "source_items": source_items,
    }


_SKU = {"sku": {"type": "string", "minLength": 1}}

ACTIONS = [
    ActionSpec(
        name="diagnostics.product_display_check",
        description=(
            "Explain why a product may not display on the storefront: status, visibility, "
            "price, website and category assignment, images and stock."
        ),
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            {**_SKU, "store_view_code": {"type": "string", "minLength": 1}}, ["sku"]
        ),
        handler=product_display_check,
    ),
    ActionSpec(
        name="diagnostics.indexer_status_report",
        description="Report the status of every Magento indexer and which need a reindex.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema({}),
        handler=indexer_status_report,
    ),
    ActionSpec(
        name="diagnostics.inventory_salable_report",
        description="Report stock item, MSI salable quantity and source items for a product.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(_SKU, ["sku"]),
        handler=inventory_salable_report,
    ),
]
