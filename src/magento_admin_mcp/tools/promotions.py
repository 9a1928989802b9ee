"""Cart price rules and coupons."""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Any

from magento_admin_mcp.client.magento_rest import SearchCriteria
from magento_admin_mcp.errors import ActionValidationError
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.payloads import CartPriceRuleCreatePayload
from magento_admin_mcp.tools._commit import consume_plan, idempotent_replay, record_idempotency
from magento_admin_mcp.tools._prepare import store_plan
from magento_admin_mcp.tools._schemas import COMMIT_SCHEMA, object_schema, with_pagination
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

logger = logging.getLogger(__name__)

COMMIT_ACTION = "promotions.commit_cart_price_rule_create"

COUPON_FORMATS = {"alphanumeric": "alphanum", "alphabetical": "alpha", "numeric": "num"}

COUPON_EXPORT_COLUMNS = [
    "coupon_id",
    "code",
    "usage_limit",
    "usage_per_customer",
    "times_used",
    "is_primary",
    "created_at",
    "expiration_date",
]


def _parse_date(value: str, name: str) -> datetime:
    """Naive dates are read as UTC so they compare with offset-aware ones."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ActionValidationError(
            f"{name} is not an ISO date: {value}", {"invalid": [name]}
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def prepare_cart_price_rule_create(
    params: dict[str, Any], ctx: ActionContext
) -> dict[str, Any]:
    ctx.guardrails.enforce_discount_limit(params["simple_action"], params["discount_amount"])
    payload = CartPriceRuleCreatePayload.model_validate(params)

    if payload.from_date and payload.to_date:
        if _parse_date(payload.to_date, "to_date") <= _parse_date(payload.from_date, "from_date"):
            raise ActionValidationError(
                "to_date must be after from_date", {"invalid": ["from_date", "to_date"]}
            )

    warnings: list[str] = []
    if payload.is_active:
        warnings.append("Rule will be created in ACTIVE state. Consider creating it disabled first.")
    if not payload.to_date:
        warnings.append("No end date specified. Rule will run indefinitely once enabled.")

    preview = payload.model_dump(mode="json", exclude={"kind"})
    response = store_plan(ctx, COMMIT_ACTION, payload, 1, [preview], warnings)
    response["rule_preview"] = preview
    return response


async def commit_cart_price_rule_create(
    params: dict[str, Any], ctx: ActionContext
) -> dict[str, Any]:
    ctx.guardrails.require_confirmation(RiskTier.RISKY, params)
    replay = idempotent_replay(ctx, params)
    if replay is not None:
        return replay

    plan, payload = consume_plan(ctx, params["plan_id"], CartPriceRuleCreatePayload)
    rule = await ctx.client().post("/V1/salesRules", payload.to_sales_rule())
    rule_id = rule.get("rule_id") if isinstance(rule, dict) else None
    summary = f"Cart price rule '{payload.name}' created (rule_id {rule_id})."
    record_idempotency(ctx, params, summary)
    logger.info("Plan %s committed: %s", plan.plan_id, summary)
    return {"message": summary, "plan_id": plan.plan_id, "rule": rule}


async def search_rules(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    criteria = SearchCriteria(
        page_size=params.get("page_size", 20),
        current_page=params.get("current_page", 1),
    )
    if params.get("query"):
        criteria.add_filter("name", f"%{params['query']}%", "like")
    if params.get("enabled") is not None:
        criteria.add_filter("is_active", "1" if params["enabled"] else "0", "eq")
    return await ctx.client().search("/V1/salesRules/search", criteria)


async def get_rule(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    return await ctx.client().get(f"/V1/salesRules/{params['rule_id']}")


def _discount_amount(value: Any) -> float:
    error = ActionValidationError(
        f"discount_amount must be a number, got {value!r}",
        {"invalid": [{"path": "patch.discount_amount", "reason": "not a number"}]},
    )
    if isinstance(value, bool):
        raise error
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise error from exc


async def update_rule(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    rule_id = params["rule_id"]
    patch: dict[str, Any] = params["patch"]
    client = ctx.client()
    if "discount_amount" in patch or "simple_action" in patch:
        # Either field can turn the rule into an over-limit percent discount.
        simple_action = patch.get("simple_action")
        amount = patch.get("discount_amount")
        if simple_action is None or amount is None:
            current = await client.get(f"/V1/salesRules/{rule_id}")
            current = current if isinstance(current, dict) else {}
            if simple_action is None:
                simple_action = current.get("simple_action")
            if amount is None:
                amount = current.get("discount_amount", 0)
        ctx.guardrails.enforce_discount_limit(str(simple_action), _discount_amount(amount))
    rule = await client.put(f"/V1/salesRules/{rule_id}", {"rule": {"rule_id": rule_id, **patch}})
    return {"message": "Rule updated successfully", "rule": rule}


async def _set_active(rule_id: int, active: bool, ctx: ActionContext) -> Any:
    return await ctx.client().put(
        f"/V1/salesRules/{rule_id}", {"rule": {"rule_id": rule_id, "is_active": active}}
    )


async def enable_rule(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    rule = await _set_active(params["rule_id"], True, ctx)
    return {"message": "Rule enabled successfully", "rule": rule}


async def disable_rule(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    rule = await _set_active(params["rule_id"], False, ctx)
    return {"message": "Rule disabled successfully", "rule": rule}


async def generate_coupons(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    qty = params["qty"]
    ctx.guardrails.enforce_coupon_cap(qty)
    spec: dict[str, Any] = {
        "rule_id": params["rule_id"],
        "quantity": qty,
        "length": params.get("length", 12),
        "format": COUPON_FORMATS[params.get("format", "alphanumeric")],
        "prefix": params.get("prefix", ""),
    }
    if params.get("uses_per_coupon") is not None:
        spec["uses_per_coupon"] = params["uses_per_coupon"]
    coupons = await ctx.client().post("/V1/salesRules/generate", {"couponSpec": spec})
    return {"message": f"Generated {qty} coupon(s)", "coupons": coupons}


async def export_coupons(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    criteria = SearchCriteria(page_size=10_000).add_filter("rule_id", params["rule_id"], "eq")
    result = await ctx.client().search("/V1/coupons/search", criteria)
    items = list((result or {}).get("items") or [])

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(COUPON_EXPORT_COLUMNS)
    for item in items:
        writer.writerow(
            ["" if item.get(col) is None else item.get(col) for col in COUPON_EXPORT_COLUMNS]
        )
    return {"format": "csv", "total_count": len(items), "csv": buffer.getvalue().rstrip("\n")}


_RULE_ID = {"rule_id": {"type": "integer"}}

RULE_CREATE_SCHEMA = object_schema(
    {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "website_ids": {"type": "array", "items": {"type": "integer"}, "minItems": 1},
        "customer_group_ids": {"type": "array", "items": {"type": "integer"}, "minItems": 1},
        "from_date": {"type": "string"},
        "to_date": {"type": "string"},
        "is_active": {"type": "boolean", "default": False},
        "simple_action": {"enum": ["by_percent", "by_fixed", "cart_fixed", "buy_x_get_y"]},
        "discount_amount": {"type": "number", "minimum": 0},
        "discount_qty": {"type": "number", "minimum": 0},
        "apply_to_shipping": {"type": "boolean"},
        "stop_rules_processing": {"type": "boolean"},
        "sort_order": {"type": "integer"},
        "coupon_type": {"enum": ["no_coupon", "specific_coupon", "auto"]},
        "uses_per_customer": {"type": "integer", "minimum": 0},
        "uses_per_coupon": {"type": "integer", "minimum": 0},
    },
    ["name", "website_ids", "customer_group_ids", "simple_action", "discount_amount"],
)

ACTIONS = [
    ActionSpec(
        name="promotions.prepare_cart_price_rule_create",
        description="Validate a cart price rule and return a creation plan for review.",
        risk_tier=RiskTier.RISKY,
        input_schema=RULE_CREATE_SCHEMA,
        handler=prepare_cart_price_rule_create,
        confirmation=False,
    ),
    ActionSpec(
        name=COMMIT_ACTION,
        description="Create the cart price rule described by a prepared plan.",
        risk_tier=RiskTier.RISKY,
        input_schema=COMMIT_SCHEMA,
        handler=commit_cart_price_rule_create,
    ),
    ActionSpec(
        name="promotions.search_rules",
        description="Search cart price rules by name or enabled status.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            with_pagination({"query": {"type": "string"}, "enabled": {"type": "boolean"}})
        ),
        handler=search_rules,
    ),
    ActionSpec(
        name="promotions.get_rule",
        description="Get a cart price rule by id.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(_RULE_ID, ["rule_id"]),
        handler=get_rule,
    ),
    ActionSpec(
        name="promotions.update_rule",
        description="Patch fields of an existing cart price rule.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {**_RULE_ID, "patch": {"type": "object", "minProperties": 1}},
            ["rule_id", "patch"],
            confirm=True,
        ),
        handler=update_rule,
    ),
    ActionSpec(
        name="promotions.enable_rule",
        description="Enable a cart price rule.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(_RULE_ID, ["rule_id"], confirm=True),
        handler=enable_rule,
    ),
    ActionSpec(
        name="promotions.disable_rule",
        description="Disable a cart price rule.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(_RULE_ID, ["rule_id"]),
        handler=disable_rule,
    ),
    ActionSpec(
        name="promotions.generate_coupons",
        description="Generate coupon codes for an existing cart price rule.",
        risk_tier=RiskTier.RISKY,
        input_schema=object_schema(
            {
                **_RULE_ID,
                "qty": {"type": "integer", "minimum": 1},
                "prefix": {"type": "string"},
                "length": {"type": "integer", "minimum": 4, "maximum": 32, "default": 12},
                "format": {"enum": list(COUPON_FORMATS), "default": "alphanumeric"},
                "uses_per_coupon": {"type": "integer", "minimum": 0},
            },
            ["rule_id", "qty"],
            confirm=True,
        ),
        handler=generate_coupons,
    ),
    ActionSpec(
        name="promotions.export_coupons",
        description="Export the coupon codes of a rule as CSV.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema(
            {**_RULE_ID, "format": {"const": "csv"}}, ["rule_id"]
        ),
        handler=export_coupons,
    ),
]
