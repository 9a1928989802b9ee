"""Action dispatch: validation, auth, confirmation, error mapping and audit."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from magento_admin_mcp.app import AppContext
from magento_admin_mcp.audit.log import AuditRecord
from magento_admin_mcp.client.magento_rest import MagentoRestClient
from magento_admin_mcp.config import Settings
from magento_admin_mcp.errors import (
    ActionValidationError,
    ErrorCodes,
    MagentoMCPError,
    NotAuthenticatedError,
)
from magento_admin_mcp.guardrails import GuardrailEngine, RiskTier
from magento_admin_mcp.session.idempotency import IdempotencyLedger
from magento_admin_mcp.session.plans import PlanStore
from magento_admin_mcp.session.registry import Session, StoreScope
from magento_admin_mcp.tools.base import summarize_result
from magento_admin_mcp.utils.jsonschema import format_field_errors, validate_arguments

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], "ActionContext"], Awaitable[dict[str, Any]]]


@dataclass
class ActionSpec:
    name: str
    description: str
    risk_tier: RiskTier
    input_schema: dict[str, object]
    handler: Handler
    requires_auth: bool = True
    # Prepare tools only preview changes and skip the confirm/reason gate.
    confirmation: bool = True


@dataclass
class ActionContext:
    """What a handler may touch for one call."""

    app: AppContext
    session_id: str
    action: str

    @property
    def settings(self) -> Settings:
        return self.app.settings

    @property
    def plans(self) -> PlanStore:
        return self.app.plans

    @property
    def ledger(self) -> IdempotencyLedger:
        return self.app.ledger

    @property
    def guardrails(self) -> GuardrailEngine:
        return self.app.guardrails

    @property
    def session(self) -> Session | None:
        return self.app.sessions.get(self.session_id)

    @property
    def username(self) -> str | None:
        return self.app.sessions.get_username(self.session_id)

    @property
    def default_scope(self) -> StoreScope | None:
        return self.app.sessions.get_default_scope(self.session_id)

    def require_session(self) -> Session:
        session = self.session
        if session is None:
            raise NotAuthenticatedError("Not authenticated. Call auth_login first.")
        return session

    def client(self) -> MagentoRestClient:
        return self.app.client_for(self.require_session())

    def store_code(self, scope: Mapping[str, Any] | StoreScope | None = None) -> str | None:
        """Store code for reads: the given scope, else the session default."""
        if isinstance(scope, Mapping):
            scope = StoreScope.model_validate(dict(scope))
        if scope is None:
            scope = self.default_scope
        return scope.store_code_for_url() if scope else None


@dataclass
class DispatchResult:
    ok: bool
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def error_code(self) -> str | None:
        if self.ok:
            return None
        return self.payload["error"]["code"]


class Dispatcher:
    def __init__(
        self,
        app: AppContext,
        actions: Iterable[ActionSpec],
        session_id: str | None = None,
    ) -> None:
        self.app = app
        self.session_id = session_id or app.settings.server.session_id
        self._actions = {action.name: action for action in actions}

    @property
    def actions(self) -> dict[str, ActionSpec]:
        return dict(self._actions)

    async def dispatch(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        *,
        session_id: str | None = None,
    ) -> DispatchResult:
        params = dict(params or {})
        session_id = session_id or self.session_id
        ctx = ActionContext(app=self.app, session_id=session_id, action=action)
        # Read before the handler runs; logout destroys the session.
        actor = ctx.username
        default_scope = ctx.default_scope

        expired = self.app.plans.cleanup()
        if expired:
            logger.debug("Evicted %d expired plans", expired)

        spec = self._actions.get(action)
        result: dict[str, Any] | None = None
        try:
            if spec is None:
                raise MagentoMCPError(
                    f"Unknown action: {action}", code=ErrorCodes.ACTION_NOT_FOUND
                )
            field_errors = validate_arguments(spec.input_schema, params)
            if field_errors:
                raise ActionValidationError(
                    f"Invalid parameters for {action}", format_field_errors(field_errors)
                )
            if spec.requires_auth and ctx.session is None:
                raise NotAuthenticatedError("Not authenticated. Call auth_login first.")
            if spec.confirmation:
                self.app.guardrails.require_confirmation(spec.risk_tier, params)
            raw = await spec.handler(params, ctx)
            result = raw if isinstance(raw, dict) else {"result": raw}
        except MagentoMCPError as exc:
            logger.info("Action %s failed: %s %s", action, exc.code, exc.message)
            self._audit(ctx, actor, default_scope, params, None, error=exc)
            return DispatchResult(ok=False, payload={"error": exc.to_dict()})
        except Exception as exc:
            logger.exception("Unhandled error in action %s", action)
            error = MagentoMCPError(f"Internal error: {exc}", code=ErrorCodes.INTERNAL_ERROR)
            self._audit(ctx, actor, default_scope, params, None, error=error)
            return DispatchResult(ok=False, payload={"error": error.to_dict()})

        self._audit(
            ctx, actor or ctx.username, default_scope or ctx.default_scope, params, result
        )
        return DispatchResult(ok=True, payload=result)

    def _audit(
        self,
        ctx: ActionContext,
        actor: str | None,
        default_scope: StoreScope | None,
        params: dict[str, Any],
        result: dict[str, Any] | None,
        *,
        error: MagentoMCPError | None = None,
    ) -> None:
        scope = params.get("scope")
        if not isinstance(scope, dict):
            scope = default_scope.model_dump(exclude_none=True) if default_scope else None

        plan_id = params.get("plan_id")
        if plan_id is None and isinstance(result, dict):
            plan_id = result.get("plan_id")
        reason = params.get("reason")

        record = AuditRecord(
            action=ctx.action,
            actor=actor,
            params=params,
            result_summary=(
                f"ERROR: {error.message}" if error is not None else summarize_result(result)
            ),
            scope=scope,
            plan_id=plan_id if isinstance(plan_id, str) else None,
            reason=reason if isinstance(reason, str) else None,
            status="error" if error is not None else "success",
            error_code=error.code if error is not None else None,
        )
        self.app.audit.log(record)
