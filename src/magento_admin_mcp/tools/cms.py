"""CMS page and block tools."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from magento_admin_mcp.client.magento_rest import MagentoRestClient, SearchCriteria
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.payloads import CmsBlockBulkUpdatePayload, CmsPageBulkUpdatePayload
from magento_admin_mcp.tools._commit import RecordOperation, run_bulk_commit
from magento_admin_mcp.tools._prepare import large_bulk_warning, sample_diffs, store_plan
from magento_admin_mcp.tools._schemas import (
    COMMIT_SCHEMA,
    SCOPE_SCHEMA,
    object_schema,
    with_pagination,
)
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec


@dataclass(frozen=True)
class _CmsKind:
    """Endpoint and naming differences between pages and blocks."""

    policy_key: str
    endpoint: str
    id_field: str
    body_key: str
    label: str


PAGE = _CmsKind("cms_page", "/V1/cmsPage", "page_id", "page", "CMS page")
BLOCK = _CmsKind("cms_block", "/V1/cmsBlock", "block_id", "block", "CMS block")


def _title_search(params: Mapping[str, Any]) -> SearchCriteria:
    criteria = SearchCriteria(
        page_size=params.get("page_size", 20),
        current_page=params.get("current_page", 1),
    )
    if params.get("query"):
        criteria.add_filter("title", f"%{params['query']}%", "like")
    return criteria


async def _resolve(
    kind: _CmsKind, ctx: ActionContext, client: MagentoRestClient, match: Mapping[str, Any]
) -> list[dict[str, Any]]:
    criteria = SearchCriteria(page_size=ctx.settings.plans.resolve_page_size)
    ids = match.get(f"{kind.id_field}s") or []
    if ids:
        criteria.add_filter(kind.id_field, ",".join(str(i) for i in ids), "in")
    if match.get("identifier"):
        criteria.add_filter("identifier", f"%{match['identifier']}%", "like")
    result = await client.search(f"{kind.endpoint}/search", criteria)
    return list((result or {}).get("items") or [])


async def _prepare(kind: _CmsKind, params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    updates: dict[str, Any] = params["updates"]
    ctx.guardrails.enforce_allowed_fields_for(kind.policy_key, updates, f"{kind.label} update")
    scope = ctx.guardrails.require_explicit_scope(params)

    records = await _resolve(kind, ctx, ctx.client(), params["match"])
    ctx.guardrails.enforce_bulk_cap(len(records))

    diffs = sample_diffs(
        records,
        updates,
        {kind.id_field: "id", "title": "title"},
        ctx.settings.plans.sample_diff_limit,
    )
    warnings = large_bulk_warning(ctx, len(records), f"{kind.label} update")
    ids = tuple(int(record["id"]) for record in records)
    if kind is PAGE:
        payload: CmsPageBulkUpdatePayload | CmsBlockBulkUpdatePayload = CmsPageBulkUpdatePayload(
            page_ids=ids, updates=updates, scope=scope
        )
        commit_action = "cms.commit_bulk_update_pages"
    else:
        payload = CmsBlockBulkUpdatePayload(block_ids=ids, updates=updates, scope=scope)
        commit_action = "cms.commit_bulk_update_blocks"
    return store_plan(ctx, commit_action, payload, len(records), diffs, warnings)


def _operations(
    kind: _CmsKind,
    ids: tuple[int, ...],
    updates: dict[str, Any],
    client: MagentoRestClient,
) -> list[RecordOperation]:
    def operation(record_id: int) -> RecordOperation:
        body = {kind.body_key: {"id": record_id, **updates}}
        return RecordOperation(
            identity={kind.id_field: record_id},
            call=lambda: client.put(f"{kind.endpoint}/{record_id}", body),
        )

    return [operation(record_id) for record_id in ids]


async def search_pages(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await ctx.client().search("/V1/cmsPage/search", _title_search(params))


async def get_page(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await ctx.client().get(f"/V1/cmsPage/{params['page_id']}")


async def search_blocks(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await ctx.client().search("/V1/cmsBlock/search", _title_search(params))


async def get_block(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await ctx.client().get(f"/V1/cmsBlock/{params['block_id']}")


async def prepare_bulk_update_pages(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await _prepare(PAGE, params, ctx)


async def prepare_bulk_update_blocks(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await _prepare(BLOCK, params, ctx)


async def commit_bulk_update_pages(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await run_bulk_commit(
        ctx,
        params,
        CmsPageBulkUpdatePayload,
        lambda payload, client: _operations(PAGE, payload.page_ids, payload.updates, client),
        lambda ok, total, failed: f"Updated {ok}/{total} CMS pages. {failed} errors.",
    )


async def commit_bulk_update_blocks(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await run_bulk_commit(
        ctx,
        params,
        CmsBlockBulkUpdatePayload,
        lambda payload, client: _operations(BLOCK, payload.block_ids, payload.updates, client),
        lambda ok, total, failed: f"Updated {ok}/{total} CMS blocks. {failed} errors.",
    )


def _match_schema(kind: _CmsKind) -> dict[str, object]:
    return {
        "type": "object",
        "properties": {
            f"{kind.id_field}s": {"type": "array", "items": {"type": "integer"}},
            "identifier": {"type": "string", "minLength": 1},
        },
        "additionalProperties": False,
    }


def _prepare_schema(kind: _CmsKind) -> dict[str, object]:
    return object_schema(
        {
            "match": _match_schema(kind),
            "updates": {"type": "object", "minProperties": 1},
            "scope": SCOPE_SCHEMA,
        },
        ["match", "updates"],
    )


_SEARCH_SCHEMA = object_schema(with_pagination({"query": {"type": "string"}}))

ACTIONS = [
    ActionSpec(
        name="cms.search_pages",
        description="Search CMS pages by title.",
        risk_tier=RiskTier.SAFE,
        input_schema=_SEARCH_SCHEMA,
        handler=search_pages,
    ),
    ActionSpec(
        name="cms.get_page",
        description="Get a CMS page by id.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema({"page_id": {"type": "integer"}}, ["page_id"]),
        handler=get_page,
    ),
    ActionSpec(
        name="cms.prepare_bulk_update_pages",
        description="Prepare a bulk update of CMS pages. Returns a plan for review.",
        risk_tier=RiskTier.RISKY,
        input_schema=_prepare_schema(PAGE),
        handler=prepare_bulk_update_pages,
        confirmation=False,
    ),
    ActionSpec(
        name="cms.commit_bulk_update_pages",
        description="Execute a prepared CMS page bulk update.",
        risk_tier=RiskTier.RISKY,
        input_schema=COMMIT_SCHEMA,
        handler=commit_bulk_update_pages,
    ),
    ActionSpec(
        name="cms.search_blocks",
        description="Search CMS blocks by title.",
        risk_tier=RiskTier.SAFE,
        input_schema=_SEARCH_SCHEMA,
        handler=search_blocks,
    ),
    ActionSpec(
        name="cms.get_block",
        description="Get a CMS block by id.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema({"block_id": {"type": "integer"}}, ["block_id"]),
        handler=get_block,
    ),
    ActionSpec(
        name="cms.prepare_bulk_update_blocks",
        description="Prepare a bulk update of CMS blocks. Returns a plan for review.",
        risk_tier=RiskTier.RISKY,
        input_schema=_prepare_schema(BLOCK),
        handler=prepare_bulk_update_blocks,
        confirmation=False,
    ),
    ActionSpec(
        name="cms.commit_bulk_update_blocks",
        description="Execute a prepared CMS block bulk update.",
        risk_tier=RiskTier.RISKY,
        input_schema=COMMIT_SCHEMA,
        handler=commit_bulk_update_blocks,
    ),
]
