from __future__ import annotations

import pytest

from magento_admin_mcp.app import AppContext
from magento_admin_mcp.errors import ErrorCodes
from magento_admin_mcp.tools import build_dispatcher

from .conftest import FakeHTTP, request_json

PRODUCTS = [
    {"sku": "MUG-1", "price": 100},
    {"sku": "MUG-2", "price": 0},
]


@pytest.fixture
def shop(magento: FakeHTTP) -> FakeHTTP:
    magento.route("GET", "/rest/default/V1/products", {"items": PRODUCTS, "total_count": 2})
    magento.route("PUT", "/rest/default/V1/products/MUG-1", {"sku": "MUG-1"})
    magento.route("PUT", "/rest/default/V1/products/MUG-2", {"sku": "MUG-2"})
    return magento


async def _prepare(dispatcher, price_updates):
    return await dispatcher.dispatch(
        "pricing.prepare_bulk_price_update",
        {
            "match": {"sku_list": ["MUG-1", "MUG-2"]},
            "price_updates": price_updates,
            "scope": {"store_view_code": "default"},
        },
    )


@pytest.mark.asyncio
async def test_large_change_warns_but_allows_plan(logged_in: AppContext, shop: FakeHTTP) -> None:
    result = await _prepare(build_dispatcher(logged_in), {"price": 151})

    assert result.ok
    assert result.payload["affected_count"] == 2
    assert result.payload["warnings"] == [
        "SKU MUG-1: Price change of 51.0% exceeds the 50% threshold warning."
    ]


@pytest.mark.asyncio
async def test_small_change_has_no_warning(logged_in: AppContext, shop: FakeHTTP) -> None:
    result = await _prepare(build_dispatcher(logged_in), {"price": 149})
    assert result.payload["warnings"] == []


@pytest.mark.asyncio
async def test_sku_list_uses_in_filter(logged_in: AppContext, shop: FakeHTTP) -> None:
    await _prepare(build_dispatcher(logged_in), {"price": 120})
    params = shop.requests[0].url.params
    assert params["searchCriteria[filterGroups][0][filters][0][value]"] == "MUG-1,MUG-2"
    assert params["searchCriteria[filterGroups][0][filters][0][conditionType]"] == "in"


@pytest.mark.asyncio
async def test_commit_sends_only_given_price_fields(logged_in: AppContext, shop: FakeHTTP) -> None:
    dispatcher = build_dispatcher(logged_in)
    plan_id = (
        await _prepare(dispatcher, {"special_price": 80, "special_to_date": "2026-12-31"})
    ).payload["plan_id"]

    result = await dispatcher.dispatch(
        "pricing.commit_bulk_price_update",
        {"plan_id": plan_id, "confirm": True, "reason": "Black Friday"},
    )

    assert result.ok, result.payload
    assert result.payload["message"] == "Updated prices for 2/2 products. 0 errors."
    assert request_json(shop.calls("PUT")[0]) == {
        "product": {"sku": "MUG-1", "special_price": 80.0, "special_to_date": "2026-12-31"}
    }


@pytest.mark.asyncio
async def test_negative_price_rejected_by_schema(logged_in: AppContext, shop: FakeHTTP) -> None:
    result = await _prepare(build_dispatcher(logged_in), {"price": -1})
    assert result.error_code == ErrorCodes.VALIDATION_ERROR
    assert shop.requests == []


@pytest.mark.asyncio
async def test_catalog_plan_cannot_be_committed_as_price_update(
    logged_in: AppContext, shop: FakeHTTP
) -> None:
    dispatcher = build_dispatcher(logged_in)
    catalog_plan = await dispatcher.dispatch(
        "catalog.prepare_bulk_update",
        {
            "match": {"sku_list": ["MUG-1"]},
            "updates": {"status": 2},
            "scope": {"store_view_code": "default"},
        },
    )
    plan_id = catalog_plan.payload["plan_id"]

    result = await dispatcher.dispatch(
        "pricing.commit_bulk_price_update",
        {"plan_id": plan_id, "confirm": True, "reason": "oops"},
    )

    assert result.error_code == ErrorCodes.PLAN_NOT_FOUND
    assert logged_in.plans.get(plan_id) is None
    assert shop.calls("PUT") == []
