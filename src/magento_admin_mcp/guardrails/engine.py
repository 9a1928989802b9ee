"""Business-level guardrail checks applied by prepare and commit tools.

Every check is independent. A failing check raises a ``GuardrailViolation``
subclass; advisory checks return a warning string instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import IntEnum

from magento_admin_mcp.config import GuardrailSettings
from magento_admin_mcp.guardrails.errors import (
    BulkCapExceededError,
    ConfirmationRequiredError,
    DiscountLimitExceededError,
    FieldNotAllowedError,
    RateLimitedError,
    ScopeRequiredError,
)
from magento_admin_mcp.guardrails.policy import GuardrailPolicy
from magento_admin_mcp.guardrails.rate_limit import RateLimiter
from magento_admin_mcp.session.registry import StoreScope

logger = logging.getLogger(__name__)

_SCOPE_FIELDS = ("website_code", "store_code", "store_view_code")


class RiskTier(IntEnum):
    SAFE = 1
    RISKY = 2
    CRITICAL = 3


class GuardrailEngine:
    def __init__(
        self,
        settings: GuardrailSettings,
        policy: GuardrailPolicy | None = None,
        purge_limiter: RateLimiter | None = None,
    ) -> None:
        self.settings = settings
        self.policy = policy or GuardrailPolicy()
        self._purge_limiter = purge_limiter

    def require_confirmation(self, risk_tier: RiskTier | int, params: Mapping[str, object]) -> None:
        if risk_tier < RiskTier.RISKY or not self.settings.require_confirmation:
            return
        if params.get("confirm") is not True:
            raise ConfirmationRequiredError(
                f"This action requires confirm: true and a reason string (risk tier {int(risk_tier)}).",
                {"missing": "confirm"},
            )
        reason = params.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            raise ConfirmationRequiredError(
                "A non-empty reason string is required for risky operations.",
                {"missing": "reason"},
            )

    def enforce_bulk_cap(self, count: int) -> None:
        cap = self.settings.max_records_per_bulk_commit
        if count > cap:
            raise BulkCapExceededError(
                f"Bulk operation affects {count} records, exceeding the cap of {cap}. "
                "Reduce scope or request an override.",
                {"count": count, "cap": cap},
            )

    def enforce_coupon_cap(self, qty: int) -> None:
        cap = self.settings.max_coupon_qty_per_generation
        if qty > cap:
            raise BulkCapExceededError(
                f"Coupon quantity {qty} exceeds the cap of {cap}.",
                {"qty": qty, "cap": cap},
            )

    def enforce_discount_limit(self, simple_action: str, discount_amount: float) -> None:
        cap = self.settings.max_discount_percent
        if simple_action == "by_percent" and discount_amount > cap:
            raise DiscountLimitExceededError(
                f"Discount of {discount_amount:g}% exceeds the maximum of {cap:g}%.",
                {"discount_amount": discount_amount, "cap": cap},
            )

    def check_price_change_threshold(self, old_price: float, new_price: float) -> str | None:
        if old_price == 0:
            return None
        threshold = self.settings.price_change_threshold_percent
        pct_change = abs(new_price - old_price) / old_price * 100
        if pct_change > threshold:
            return (
                f"Price change of {pct_change:.1f}% exceeds the {threshold:g}% threshold warning."
            )
        return None

    def enforce_allowed_fields(
        self,
        requested_fields: Iterable[str],
        allowed_fields: Iterable[str],
        context: str,
    ) -> None:
        allowed = list(allowed_fields)
        disallowed = [name for name in requested_fields if name not in allowed]
        if disallowed:
            raise FieldNotAllowedError(
                f"{context}: Fields not allowed for update: {', '.join(disallowed)}",
                {"disallowed": disallowed, "allowed": allowed},
            )

    def enforce_allowed_fields_for(
        self, resource_kind: str, requested_fields: Iterable[str], context: str
    ) -> None:
        self.enforce_allowed_fields(requested_fields, self.policy.fields_for(resource_kind), context)

    def require_explicit_scope(self, params: Mapping[str, object]) -> StoreScope:
        scope = params.get("scope")
        if scope is None:
            raise ScopeRequiredError(
                "Scope must be explicitly specified for write operations "
                '(website_code, store_code, store_view_code, or scope: "global").'
            )
        if isinstance(scope, StoreScope):
            resolved = scope
        elif isinstance(scope, Mapping):
            resolved = StoreScope(
                **{key: scope.get(key) or None for key in _SCOPE_FIELDS},
                scope="global" if scope.get("scope") == "global" else None,
            )
        else:
            raise ScopeRequiredError("Scope must be an object.")
        if not resolved.is_explicit():
            raise ScopeRequiredError("At least one scope field must be specified.")
        return resolved

    def enforce_rate_limit(self, key: str = "cache_purge") -> None:
        if self._purge_limiter is None:
            return
        if not self._purge_limiter.allow(key):
            limit = self._purge_limiter.limit
            logger.warning("Rate limit hit for %s (%d per window)", key, limit)
            raise RateLimitedError(
                f"Rate limit exceeded: {limit} purge operations per minute.",
                {"limit": limit},
            )
