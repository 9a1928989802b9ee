from __future__ import annotations

import pytest

from magento_admin_mcp.app import AppContext
from magento_admin_mcp.tools import build_dispatcher
from magento_admin_mcp.tools.diagnostics import display_issues

from .conftest import FakeHTTP

HEALTHY = {
    "sku": "MUG-1",
    "name": "Mug",
    "status": 1,
    "visibility": 4,
    "price": 12.5,
    "media_gallery_entries": [{"file": "/m/u/mug.jpg"}],
    "custom_attributes": [{"attribute_code": "category_ids", "value": ["3"]}],
    "extension_attributes": {
        "website_ids": [1],
        "stock_item": {"is_in_stock": True, "qty": 10},
    },
}

HIDDEN = {
    "sku": "MUG-2",
    "name": "Hidden mug",
    "status": 2,
    "visibility": 1,
    "price": 0,
    "extension_attributes": {"stock_item": {"is_in_stock": False, "qty": 0}},
}


def test_display_issues_for_healthy_product() -> None:
    assert display_issues(HEALTHY) == ([], [])


def test_display_issues_lists_every_problem() -> None:
    issues, actions = display_issues(HIDDEN)

    assert issues == [
        "Product is DISABLED (status=2).",
        'Product visibility is "Not Visible Individually" (visibility=1). It only '
        "appears as part of a grouped or configurable product.",
        "Product has no price or price is 0.",
        "Product is not assigned to any website.",
        "Product is not assigned to any category.",
        "Product has no images.",
        "Product is marked as OUT OF STOCK.",
        "Product quantity is 0.",
    ]
    assert actions[0] == "catalog_prepare_bulk_update to set status=1 (enabled)"


@pytest.mark.asyncio
async def test_product_display_check(logged_in: AppContext, magento: FakeHTTP) -> None:
    magento.route("GET", "/rest/fr/V1/products/MUG-1", HEALTHY)
    magento.route(
        "GET",
        "/rest/V1/inventory/get-product-salable-quantity/MUG-1/1",
        [{"qty": 0}],
    )

    result = await build_dispatcher(logged_in).dispatch(
        "diagnostics.product_display_check", {"sku": "MUG-1", "store_view_code": "fr"}
    )

    assert result.ok, result.payload
    assert result.payload["found"] is True
    assert result.payload["product_name"] == "Mug"
    assert result.payload["issues"] == ["MSI salable quantity is 0."]


@pytest.mark.asyncio
async def test_product_display_check_without_issues(
    logged_in: AppContext, magento: FakeHTTP
) -> None:
    magento.route("GET", "/rest/V1/products/MUG-1", HEALTHY)

    result = await build_dispatcher(logged_in).dispatch(
        "diagnostics.product_display_check", {"sku": "MUG-1"}
    )

    assert result.ok, result.payload
    assert result.payload["issues"] == ["No issues detected."]
    assert result.payload["recommended_actions"] == []


@pytest.mark.asyncio
async def test_product_display_check_not_found(logged_in: AppContext, magento: FakeHTTP) -> None:
    magento.route(
        "GET", "/rest/V1/products/NOPE", {"message": "The product was not found."}, status=404
    )

    result = await build_dispatcher(logged_in).dispatch(
        "diagnostics.product_display_check", {"sku": "NOPE"}
    )

    assert result.ok, result.payload
    assert result.payload["found"] is False
    assert result.payload["issues"][0].startswith("Product not found: ")
    assert "The product was not found." in result.payload["issues"][0]


@pytest.mark.asyncio
async def test_indexer_status_report(logged_in: AppContext, magento: FakeHTTP) -> None:
    magento.route(
        "GET",
        "/rest/V1/indexer/status",
        [
            {"indexer_id": "catalog_product_price", "title": "Product Price", "status": "valid"},
            {"indexer_id": "catalogsearch_fulltext", "title": "Search", "status": "invalid"},
        ],
    )

    result = await build_dispatcher(logged_in).dispatch("diagnostics.indexer_status_report", {})

    assert result.ok, result.payload
    assert result.payload["total"] == 2
    assert result.payload["valid"] == 1
    assert result.payload["invalid"] == 1
    assert result.payload["needs_reindex"] == [
        {"indexer_id": "catalogsearch_fulltext", "title": "Search", "status": "invalid"}
    ]


@pytest.mark.asyncio
async def test_indexer_status_report_endpoint_missing(logged_in: AppContext) -> None:
    result = await build_dispatcher(logged_in).dispatch("diagnostics.indexer_status_report", {})

    assert result.ok, result.payload
    assert result.payload["indexers"] == []
    assert "not available" in result.payload["message"]


@pytest.mark.asyncio
async def test_inventory_salable_report_without_msi(
    logged_in: AppContext, magento: FakeHTTP
) -> None:
    magento.route("GET", "/rest/V1/products/MUG-1", HEALTHY)

    result = await build_dispatcher(logged_in).dispatch(
        "diagnostics.inventory_salable_report", {"sku": "MUG-1"}
    )

    assert result.ok, result.payload
    assert result.payload == {
        "sku": "MUG-1",
        "stock_item": {"is_in_stock": True, "qty": 10},
        "salable_quantity": None,
        "source_items": None,
    }


@pytest.mark.asyncio
async def test_inventory_salable_report_with_msi(logged_in: AppContext, magento: FakeHTTP) -> None:
    magento.route("GET", "/rest/V1/products/MUG-1", HEALTHY)
    magento.route("GET", "/rest/V1/inventory/get-product-salable-quantity/MUG-1/1", 7)
    magento.route(
        "GET",
        "/rest/V1/inventory/source-items",
        {"items": [{"sku": "MUG-1", "source_code": "default", "quantity": 7}]},
    )

    result = await build_dispatcher(logged_in).dispatch(
        "diagnostics.inventory_salable_report", {"sku": "MUG-1"}
    )

    assert result.payload["salable_quantity"] == 7
    assert result.payload["source_items"]["items"][0]["source_code"] == "default"
    assert magento.calls("GET", "/rest/V1/inventory/source-items")[0].url.params[
        "searchCriteria[filterGroups][0][filters][0][value]"
    ] == "MUG-1"


@pytest.mark.asyncio
async def test_inventory_salable_report_unknown_sku(logged_in: AppContext) -> None:
    result = await build_dispatcher(logged_in).dispatch(
        "diagnostics.inventory_salable_report", {"sku": "NOPE"}
    )

    assert result.ok, result.payload
    assert result.payload["sku"] == "NOPE"
    assert "No route" in result.payload["error"]
