from __future__ import annotations

import pytest

from magento_admin_mcp.app import AppContext
from magento_admin_mcp.errors import ErrorCodes
from magento_admin_mcp.tools import build_dispatcher

from .conftest import FakeHTTP, read_audit, request_json

PRODUCTS = [
    {"id": 1, "sku": "TSHIRT-RED", "name": "Red", "status": 1, "price": 20},
    {"id": 2, "sku": "TSHIRT-BLUE", "name": "Blue", "status": 1, "price": 20},
    {"id": 3, "sku": "TSHIRT-GREEN", "name": "Green", "status": 1, "price": 20},
]

SCOPE = {"store_view_code": "default"}
CONFIRM = {"confirm": True, "reason": "Seasonal disable"}


@pytest.fixture
def shop(magento: FakeHTTP) -> FakeHTTP:
    magento.route("GET", "/rest/default/V1/products", {"items": PRODUCTS, "total_count": 3})
    for product in PRODUCTS:
        magento.route(
            "PUT", f"/rest/default/V1/products/{product['sku']}", {**product, "status": 2}
        )
    return magento


async def _prepare(dispatcher, **overrides):
    params = {
        "match": {"sku_prefix": "TSHIRT-"},
        "updates": {"status": 2},
        "scope": SCOPE,
        **overrides,
    }
    return await dispatcher.dispatch("catalog.prepare_bulk_update", params)


@pytest.mark.asyncio
async def test_prepare_then_commit_scenario(logged_in: AppContext, shop: FakeHTTP) -> None:
    dispatcher = build_dispatcher(logged_in)

    prepared = await _prepare(dispatcher)
    assert prepared.ok, prepared.payload
    plan = prepared.payload
    assert plan["affected_count"] == 3
    assert plan["sample_diffs"][0] == {
        "sku": "TSHIRT-RED",
        "changes": {"status": {"from": 1, "to": 2}},
    }
    assert "catalog_commit_bulk_update" in plan["message"]
    assert shop.calls("PUT") == []

    wrong = await dispatcher.dispatch(
        "catalog.commit_bulk_update", {"plan_id": "not-a-plan", **CONFIRM}
    )
    assert wrong.error_code == ErrorCodes.PLAN_NOT_FOUND

    committed = await dispatcher.dispatch(
        "catalog.commit_bulk_update", {"plan_id": plan["plan_id"], **CONFIRM}
    )
    assert committed.ok, committed.payload
    assert committed.payload["success_count"] == 3
    assert committed.payload["error_count"] == 0
    assert committed.payload["message"] == "Updated 3/3 products. 0 errors."

    puts = shop.calls("PUT")
    assert [request.url.path for request in puts] == [
        f"/rest/default/V1/products/{p['sku']}" for p in PRODUCTS
    ]
    assert request_json(puts[0]) == {"product": {"sku": "TSHIRT-RED", "status": 2}}

    again = await dispatcher.dispatch(
        "catalog.commit_bulk_update", {"plan_id": plan["plan_id"], **CONFIRM}
    )
    assert again.error_code == ErrorCodes.PLAN_NOT_FOUND

    audit = read_audit(logged_in)
    assert [record["action"] for record in audit] == [
        "catalog.prepare_bulk_update",
        "catalog.commit_bulk_update",
        "catalog.commit_bulk_update",
        "catalog.commit_bulk_update",
    ]
    assert audit[2]["plan_id"] == plan["plan_id"]
    assert audit[2]["reason"] == "Seasonal disable"


@pytest.mark.asyncio
async def test_prepare_search_criteria(logged_in: AppContext, shop: FakeHTTP) -> None:
    await _prepare(build_dispatcher(logged_in))
    params = shop.requests[0].url.params
    assert params["searchCriteria[filterGroups][0][filters][0][field]"] == "sku"
    assert params["searchCriteria[filterGroups][0][filters][0][value]"] == "TSHIRT-%"
    assert params["searchCriteria[filterGroups][0][filters][0][conditionType]"] == "like"
    assert params["searchCriteria[pageSize]"] == "2000"


@pytest.mark.asyncio
async def test_commit_without_confirmation_keeps_plan(logged_in: AppContext, shop: FakeHTTP) -> None:
    dispatcher = build_dispatcher(logged_in)
    plan_id = (await _prepare(dispatcher)).payload["plan_id"]

    refused = await dispatcher.dispatch("catalog.commit_bulk_update", {"plan_id": plan_id})
    assert refused.error_code == ErrorCodes.CONFIRMATION_REQUIRED
    assert logged_in.plans.get(plan_id) is not None
    assert shop.calls("PUT") == []


@pytest.mark.asyncio
async def test_idempotent_replay_skips_downstream(logged_in: AppContext, shop: FakeHTTP) -> None:
    dispatcher = build_dispatcher(logged_in)
    first_plan = (await _prepare(dispatcher)).payload["plan_id"]
    first = await dispatcher.dispatch(
        "catalog.commit_bulk_update",
        {"plan_id": first_plan, "idempotency_key": "sale-2026-10", **CONFIRM},
    )
    assert first.ok
    put_count = len(shop.calls("PUT"))

    second_plan = (await _prepare(dispatcher)).payload["plan_id"]
    replay = await dispatcher.dispatch(
        "catalog.commit_bulk_update",
        {"plan_id": second_plan, "idempotency_key": "sale-2026-10", **CONFIRM},
    )

    assert replay.ok
    assert replay.payload["message"] == "Operation already completed (idempotency match)"
    assert replay.payload["previous_result"] == "Updated 3/3 products. 0 errors."
    assert len(shop.calls("PUT")) == put_count
    assert logged_in.ledger.get("sale-2026-10").action == "catalog.commit_bulk_update"


@pytest.mark.asyncio
async def test_partial_failure_is_reported_per_record(logged_in: AppContext, shop: FakeHTTP) -> None:
    shop.route(
        "PUT",
        "/rest/default/V1/products/TSHIRT-BLUE",
        {"message": "Invalid attribute value"},
        status=400,
    )
    dispatcher = build_dispatcher(logged_in)
    plan_id = (await _prepare(dispatcher)).payload["plan_id"]

    result = await dispatcher.dispatch(
        "catalog.commit_bulk_update", {"plan_id": plan_id, **CONFIRM}
    )

    assert result.ok
    assert result.payload["success_count"] == 2
    assert result.payload["error_count"] == 1
    assert result.payload["errors"][0]["sku"] == "TSHIRT-BLUE"
    assert "Invalid attribute value" in result.payload["errors"][0]["error"]
    assert len(shop.calls("PUT")) == 3


@pytest.mark.asyncio
async def test_prepare_guardrails(logged_in: AppContext, shop: FakeHTTP) -> None:
    dispatcher = build_dispatcher(logged_in)

    no_scope = await dispatcher.dispatch(
        "catalog.prepare_bulk_update", {"match": {"sku_list": ["A"]}, "updates": {"status": 2}}
    )
    bad_field = await _prepare(dispatcher, updates={"sku": "RENAMED"})

    assert no_scope.error_code == ErrorCodes.SCOPE_REQUIRED
    assert bad_field.error_code == ErrorCodes.FIELD_NOT_ALLOWED
    assert len(logged_in.plans) == 0


@pytest.mark.asyncio
async def test_bulk_cap(logged_in: AppContext, magento: FakeHTTP) -> None:
    many = [{"sku": f"SKU-{i}", "status": 1} for i in range(501)]
    magento.route("GET", "/rest/all/V1/products", {"items": many, "total_count": 501})

    result = await build_dispatcher(logged_in).dispatch(
        "catalog.prepare_bulk_update",
        {"match": {"sku_prefix": "SKU-"}, "updates": {"status": 2}, "scope": {"scope": "global"}},
    )

    assert result.error_code == ErrorCodes.BULK_CAP_EXCEEDED
    assert len(logged_in.plans) == 0


@pytest.mark.asyncio
async def test_large_bulk_warning(logged_in: AppContext, magento: FakeHTTP) -> None:
    many = [{"sku": f"SKU-{i}", "status": 1} for i in range(150)]
    magento.route("GET", "/rest/all/V1/products", {"items": many, "total_count": 150})

    result = await build_dispatcher(logged_in).dispatch(
        "catalog.prepare_bulk_update",
        {"match": {"sku_prefix": "SKU-"}, "updates": {"status": 2}, "scope": {"scope": "global"}},
    )

    assert result.ok
    assert result.payload["warnings"] == ["Large bulk update: 150 records will be affected."]
    assert len(result.payload["sample_diffs"]) == 5


@pytest.mark.asyncio
async def test_search_products_with_fields_and_default_scope(
    logged_in: AppContext, magento: FakeHTTP
) -> None:
    magento.route("GET", "/rest/fr/V1/products", {"items": [], "total_count": 0})
    dispatcher = build_dispatcher(logged_in)
    await dispatcher.dispatch("scope.set_default", {"store_view_code": "fr"})

    result = await dispatcher.dispatch(
        "catalog.search_products",
        {"filters": {"price": {"value": "10", "condition": "gt"}}, "fields": ["sku", "name"]},
    )

    assert result.ok, result.payload
    params = magento.requests[0].url.params
    assert params["fields"] == "items[sku,name],total_count,search_criteria"
    assert params["searchCriteria[filterGroups][0][filters][0][conditionType]"] == "gt"
    assert params["searchCriteria[pageSize]"] == "20"


@pytest.mark.asyncio
async def test_get_product_escapes_sku(logged_in: AppContext, magento: FakeHTTP) -> None:
    magento.route("GET", "/rest/V1/products/A/B", {"sku": "A/B"})
    result = await build_dispatcher(logged_in).dispatch("catalog.get_product", {"sku": "A/B"})
    assert result.ok
    assert magento.requests[0].url.raw_path == b"/rest/V1/products/A%2FB"
