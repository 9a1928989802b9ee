"""SEO tools: URL key rewrites, product meta fields and redirect chain reports."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from magento_admin_mcp.client.magento_rest import (
    MagentoApiError,
    MagentoRestClient,
    SearchCriteria,
)
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.payloads import UrlKeyBulkUpdatePayload, UrlKeyChange
from magento_admin_mcp.tools._commit import RecordOperation, apply_operations, run_bulk_commit
from magento_admin_mcp.tools._prepare import large_bulk_warning, resolve_products, store_plan
from magento_admin_mcp.tools._schemas import (
    COMMIT_SCHEMA,
    PRODUCT_MATCH_SCHEMA,
    SCOPE_SCHEMA,
    object_schema,
)
from magento_admin_mcp.tools.catalog import product_endpoint
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

logger = logging.getLogger(__name__)

COMMIT_ACTION = "seo.commit_bulk_update_url_keys"

META_FIELDS = ("meta_title", "meta_description", "meta_keyword")

REDIRECT_CHAIN_LIMIT = 50


def transform_url_key(url_key: str, transform: Mapping[str, Any]) -> str:
    """Prefix, then suffix, then replace the first occurrence of ``replace.search``."""
    new_key = f"{transform.get('prefix', '')}{url_key}{transform.get('suffix', '')}"
    replace = transform.get("replace")
    if replace:
        new_key = new_key.replace(replace["search"], replace["replacement"], 1)
    return new_key


def _custom_attribute(product: Mapping[str, Any], code: str) -> Any:
    for attribute in product.get("custom_attributes") or []:
        if attribute.get("attribute_code") == code:
            return attribute.get("value")
    return None


def _url_key_of(product: Mapping[str, Any]) -> str:
    value = product.get("url_key") or _custom_attribute(product, "url_key")
    return str(value or "")


def _product_attributes_put(
    client: MagentoRestClient, sku: str, attributes: dict[str, str], store_code: str | None
) -> RecordOperation:
    body = {
        "product": {
            "sku": sku,
            "custom_attributes": [
                {"attribute_code": code, "value": value} for code, value in attributes.items()
            ],
        }
    }
    return RecordOperation(
        identity={"sku": sku},
        call=lambda: client.put(product_endpoint(sku), body, store_code),
    )


async def prepare_bulk_update_url_keys(
    params: dict[str, Any], ctx: ActionContext
) -> dict[str, Any]:
    ctx.guardrails.enforce_allowed_fields_for("catalog", ["url_key"], "URL key update")
    scope = ctx.guardrails.require_explicit_scope(params)

    client = ctx.client()
    products = await resolve_products(ctx, client, params["match"], scope.store_code_for_url())
    ctx.guardrails.enforce_bulk_cap(len(products))

    transform: dict[str, Any] = params["url_key_transform"]
    existing = {_url_key_of(product) for product in products}
    seen: set[str] = set()
    changes: list[UrlKeyChange] = []
    collisions: list[str] = []
    for product in products:
        old_key = _url_key_of(product)
        new_key = transform_url_key(old_key, transform)
        if new_key != old_key and (new_key in existing or new_key in seen):
            collisions.append(f'Collision: "{new_key}" already exists')
        seen.add(new_key)
        changes.append(
            UrlKeyChange(sku=str(product["sku"]), old_url_key=old_key, new_url_key=new_key)
        )

    warnings = collisions + large_bulk_warning(ctx, len(products), "URL key update")
    diffs = [change.model_dump() for change in changes[: ctx.settings.plans.sample_diff_limit]]
    payload = UrlKeyBulkUpdatePayload(changes=tuple(changes), scope=scope)
    response = store_plan(ctx, COMMIT_ACTION, payload, len(products), diffs, warnings)
    if collisions:
        response["collisions"] = collisions
    return response


def _url_key_operations(
    payload: UrlKeyBulkUpdatePayload, client: MagentoRestClient
) -> list[RecordOperation]:
    store_code = payload.scope.store_code_for_url()
    return [
        _product_attributes_put(client, change.sku, {"url_key": change.new_url_key}, store_code)
        for change in payload.changes
    ]


async def commit_bulk_update_url_keys(
    params: dict[str, Any], ctx: ActionContext
) -> dict[str, Any]:
    return await run_bulk_commit(
        ctx,
        params,
        UrlKeyBulkUpdatePayload,
        _url_key_operations,
        lambda ok, total, failed: (
            f"Updated URL keys for {ok}/{total} products. {failed} errors."
        ),
    )


async def bulk_update_meta(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    meta: dict[str, str] = params["meta_updates"]
    ctx.guardrails.enforce_allowed_fields_for("catalog", meta, "Meta update")
    scope = ctx.guardrails.require_explicit_scope(params)
    store_code = scope.store_code_for_url()

    client = ctx.client()
    products = await resolve_products(ctx, client, params["match"], store_code)
    ctx.guardrails.enforce_bulk_cap(len(products))

    operations = [
        _product_attributes_put(client, str(product["sku"]), meta, store_code)
        for product in products
    ]
    success_count, errors = await apply_operations(ctx, operations)
    result: dict[str, Any] = {
        "message": f"Updated meta fields for {success_count}/{len(products)} products.",
        "success_count": success_count,
        "error_count": len(errors),
    }
    if errors:
        result["errors"] = errors
    return result


def find_redirect_chains(
    redirects: Mapping[str, str], max_depth: int
) -> list[dict[str, Any]]:
    """Chains of two or more hops, followed up to ``max_depth``; loops are flagged."""
    chains: list[dict[str, Any]] = []
    for start in redirects:
        chain = [start]
        current = start
        loop = False
        while current in redirects and len(chain) - 1 < max_depth:
            current = redirects[current]
            if current in chain:
                chain.append(current)
                loop = True
                break
            chain.append(current)
        if len(chain) > 2:
            entry: dict[str, Any] = {"start": start, "chain": chain, "depth": len(chain) - 1}
            if loop:
                entry["loop"] = True
            chains.append(entry)
    return chains


async def report_redirect_chains(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    max_depth = params.get("max_depth", 5)
    criteria = SearchCriteria(page_size=1000).add_filter("redirect_type", 0, "neq")
    try:
        result = await ctx.client().search("/V1/url-rewrite", criteria)
    except MagentoApiError as exc:
        logger.info("URL rewrite listing unavailable: %s", exc.message)
        result = None
    rewrites = list(result.get("items") or []) if isinstance(result, dict) else []

    redirects = {
        str(rewrite["request_path"]): str(rewrite["target_path"])
        for rewrite in rewrites
        if rewrite.get("request_path") and rewrite.get("target_path")
    }
    chains = find_redirect_chains(redirects, max_depth)
    return {
        "total_redirects": len(rewrites),
        "chains_found": len(chains),
        "chains": chains[:REDIRECT_CHAIN_LIMIT],
        "max_depth_checked": max_depth,
    }


URL_KEY_TRANSFORM_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "prefix": {"type": "string"},
        "suffix": {"type": "string"},
        "replace": {
            "type": "object",
            "properties": {
                "search": {"type": "string", "minLength": 1},
                "replacement": {"type": "string"},
            },
            "required": ["search", "replacement"],
            "additionalProperties": False,
        },
    },
    "minProperties": 1,
    "additionalProperties": False,
}

ACTIONS = [
    ActionSpec(
        name="seo.prepare_bulk_update_url_keys",
        description=(
            "Prepare a bulk URL key rewrite (prefix, suffix or replace). Reports collisions "
            "with existing keys; nothing is changed until commit."
        ),
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {
                "match": PRODUCT_MATCH_SCHEMA,
                "url_key_transform": URL_KEY_TRANSFORM_SCHEMA,
                "scope": SCOPE_SCHEMA,
            },
            ["match", "url_key_transform"],
        ),
        handler=prepare_bulk_update_url_keys,
        confirmation=False,
    ),
    ActionSpec(
        name=COMMIT_ACTION,
        description="Execute a prepared bulk URL key update.",
        risk_tier=RiskTier.RISKY,
        input_schema=COMMIT_SCHEMA,
        handler=commit_bulk_update_url_keys,
    ),
    ActionSpec(
        name="seo.bulk_update_meta",
        description="Set meta title, description or keywords on every matched product.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {
                "match": PRODUCT_MATCH_SCHEMA,
                "meta_updates": {
                    "type": "object",
                    "properties": {name: {"type": "string"} for name in META_FIELDS},
                    "minProperties": 1,
                    "additionalProperties": False,
                },
                "scope": SCOPE_SCHEMA,
            },
            ["match", "meta_updates"],
            confirm=True,
        ),
        handler=bulk_update_meta,
    ),
    ActionSpec(
        name="seo.report_redirect_chains",
        description="Report URL redirect chains (A -> B -> C) up to max_depth hops.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            {"max_depth": {"type": "integer", "minimum": 1, "maximum": 10, "default": 5}}
        ),
        handler=report_redirect_chains,
    ),
]
