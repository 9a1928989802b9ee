"""Shared commit lifecycle for plan-based tools.

confirm -> idempotency short-circuit -> consume plan -> apply records in
plan order -> record summary.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from magento_admin_mcp.client.magento_rest import MagentoRestClient
from magento_admin_mcp.errors import MagentoMCPError, PlanNotFoundError
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.session.plans import Plan
from magento_admin_mcp.tools.dispatcher import ActionContext

logger = logging.getLogger(__name__)

P = TypeVar("P")

IDEMPOTENT_REPLAY_MESSAGE = "Operation already completed (idempotency match)"


@dataclass
class RecordOperation:
    """One downstream mutation, labelled for per-record error reporting."""

    identity: dict[str, Any]
    call: Callable[[], Awaitable[Any]]


BuildOperations = Callable[[Any, MagentoRestClient], list[RecordOperation]]
Summarize = Callable[[int, int, int], str]


def consume_plan(ctx: ActionContext, plan_id: str, payload_type: type[P]) -> tuple[Plan, P]:
    """Consume the plan or raise ``PlanNotFoundError``.

    A plan prepared for a different action is consumed too and reported as
    not found, so it can never be replayed against the right commit later.
    """
    plan = ctx.plans.consume(plan_id)
    if plan is None or plan.action != ctx.action or not isinstance(plan.payload, payload_type):
        if plan is not None:
            logger.warning(
                "Plan %s was prepared for %s, not %s; discarded", plan_id, plan.action, ctx.action
            )
        raise PlanNotFoundError(
            "Plan not found or expired. Prepare a new plan.", {"plan_id": plan_id}
        )
    return plan, plan.payload


def idempotent_replay(ctx: ActionContext, params: Mapping[str, Any]) -> dict[str, Any] | None:
    key = params.get("idempotency_key")
    if not key:
        return None
    entry = ctx.ledger.get(key)
    if entry is None:
        return None
    logger.info("Idempotency key %s already recorded for %s", key, entry.action)
    return {
        "message": IDEMPOTENT_REPLAY_MESSAGE,
        "previous_result": entry.result_summary,
        "idempotency_key": key,
    }


def record_idempotency(ctx: ActionContext, params: Mapping[str, Any], summary: str) -> None:
    key = params.get("idempotency_key")
    if key:
        ctx.ledger.record(key, ctx.action, summary)


async def apply_operations(
    ctx: ActionContext, operations: list[RecordOperation]
) -> tuple[int, list[dict[str, Any]]]:
    """Run operations in order; a failed record is reported and the rest still run."""
    success_count = 0
    errors: list[dict[str, Any]] = []
    for operation in operations:
        try:
            await operation.call()
        except (MagentoMCPError, httpx.HTTPError) as exc:
            message = exc.message if isinstance(exc, MagentoMCPError) else str(exc)
            errors.append({**operation.identity, "error": message})
            logger.warning("Record %s failed in %s: %s", operation.identity, ctx.action, message)
            continue
        success_count += 1
    return success_count, errors


async def run_bulk_commit(
    ctx: ActionContext,
    params: Mapping[str, Any],
    payload_type: type[P],
    build_operations: BuildOperations,
    summarize: Summarize,
) -> dict[str, Any]:
    ctx.guardrails.require_confirmation(RiskTier.RISKY, params)

    replay = idempotent_replay(ctx, params)
    if replay is not None:
        return replay

    plan, payload = consume_plan(ctx, str(params["plan_id"]), payload_type)
    operations = build_operations(payload, ctx.client())
    success_count, errors = await apply_operations(ctx, operations)

    summary = summarize(success_count, len(operations), len(errors))
    record_idempotency(ctx, params, summary)
    logger.info("Plan %s committed: %s", plan.plan_id, summary)

    result: dict[str, Any] = {
        "message": summary,
        "plan_id": plan.plan_id,
        "success_count": success_count,
        "error_count": len(errors),
    }
    if errors:
        result["errors"] = errors
    return result
