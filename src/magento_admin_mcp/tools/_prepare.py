"""Helpers shared by prepare_* tools."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from magento_admin_mcp.client.magento_rest import MagentoRestClient, SearchCriteria
from magento_admin_mcp.session.payloads import PlanPayload
from magento_admin_mcp.tools.dispatcher import ActionContext


def add_attribute_filters(criteria: SearchCriteria, filters: Mapping[str, Any] | None) -> None:
    """Plain values filter with ``eq``; ``{"value", "condition"}`` objects pick the condition."""
    for field_name, spec in (filters or {}).items():
        if isinstance(spec, Mapping):
            criteria.add_filter(field_name, spec.get("value", ""), spec.get("condition") or "eq")
        else:
            criteria.add_filter(field_name, spec, "eq")


def product_match_criteria(match: Mapping[str, Any], page_size: int) -> SearchCriteria:
    criteria = SearchCriteria(page_size=page_size)
    sku_list = match.get("sku_list") or []
    if sku_list:
        criteria.add_filter("sku", ",".join(sku_list), "in")
    if match.get("sku_prefix"):
        criteria.add_filter("sku", f"{match['sku_prefix']}%", "like")
    add_attribute_filters(criteria, match.get("attribute_filters"))
    if match.get("category_id") is not None:
        criteria.add_filter("category_id", match["category_id"], "eq")
    return criteria


async def resolve_products(
    ctx: ActionContext,
    client: MagentoRestClient,
    match: Mapping[str, Any],
    store_code: str | None,
) -> list[dict[str, Any]]:
    criteria = product_match_criteria(match, ctx.settings.plans.resolve_page_size)
    result = await client.search("/V1/products", criteria, store_code)
    return list((result or {}).get("items") or [])


def sample_diffs(
    records: Sequence[Mapping[str, Any]],
    updates: Mapping[str, Any],
    identity: Mapping[str, str],
    limit: int,
) -> list[dict[str, Any]]:
    """``identity`` maps output keys to record keys, e.g. ``{"page_id": "id"}``."""
    diffs: list[dict[str, Any]] = []
    for record in records[:limit]:
        entry: dict[str, Any] = {out: record.get(src) for out, src in identity.items()}
        entry["changes"] = {
            name: {"from": record.get(name), "to": value} for name, value in updates.items()
        }
        diffs.append(entry)
    return diffs


def large_bulk_warning(ctx: ActionContext, count: int, label: str) -> list[str]:
    if count > ctx.settings.plans.large_bulk_warning_threshold:
        return [f"Large {label}: {count} records will be affected."]
    return []


def store_plan(
    ctx: ActionContext,
    commit_action: str,
    payload: PlanPayload,
    affected_count: int,
    diffs: Sequence[dict[str, Any]],
    warnings: Sequence[str] = (),
) -> dict[str, Any]:
    plan = ctx.plans.create(
        commit_action,
        payload,
        affected_count,
        ctx.settings.plans.expiry_minutes,
        diffs,
        warnings,
    )
    tool_name = commit_action.replace(".", "_")
    return {
        **plan.to_dict(),
        "message": f"Plan created. Review and call {tool_name} to execute.",
    }
