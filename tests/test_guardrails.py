from __future__ import annotations

from pathlib import Path

import pytest

from magento_admin_mcp.config import GuardrailSettings
from magento_admin_mcp.errors import ErrorCodes
from magento_admin_mcp.guardrails import FixedWindowRateLimiter, GuardrailEngine, RiskTier
from magento_admin_mcp.guardrails.errors import (
    BulkCapExceededError,
    ConfirmationRequiredError,
    DiscountLimitExceededError,
    FieldNotAllowedError,
    RateLimitedError,
    ScopeRequiredError,
)
from magento_admin_mcp.guardrails.policy import (
    DEFAULT_CMS_BLOCK_FIELDS,
    GuardrailPolicy,
    load_policy,
)
from magento_admin_mcp.session.registry import StoreScope


@pytest.fixture
def engine() -> GuardrailEngine:
    return GuardrailEngine(GuardrailSettings())


class TestConfirmation:
    def test_safe_tier_needs_nothing(self, engine: GuardrailEngine) -> None:
        engine.require_confirmation(RiskTier.SAFE, {})

    def test_missing_confirm(self, engine: GuardrailEngine) -> None:
        with pytest.raises(ConfirmationRequiredError) as exc_info:
            engine.require_confirmation(RiskTier.RISKY, {"reason": "promo"})
        assert exc_info.value.code == ErrorCodes.CONFIRMATION_REQUIRED

    def test_confirm_must_be_true_not_truthy(self, engine: GuardrailEngine) -> None:
        with pytest.raises(ConfirmationRequiredError):
            engine.require_confirmation(RiskTier.RISKY, {"confirm": "yes", "reason": "promo"})

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_blank_reason_fails(self, engine: GuardrailEngine, reason: object) -> None:
        with pytest.raises(ConfirmationRequiredError):
            engine.require_confirmation(RiskTier.CRITICAL, {"confirm": True, "reason": reason})

    def test_confirmed_with_reason_passes(self, engine: GuardrailEngine) -> None:
        engine.require_confirmation(RiskTier.RISKY, {"confirm": True, "reason": "weekly sale"})

    def test_can_be_disabled(self) -> None:
        engine = GuardrailEngine(GuardrailSettings(require_confirmation=False))
        engine.require_confirmation(RiskTier.RISKY, {})


class TestCaps:
    def test_bulk_cap_boundary(self, engine: GuardrailEngine) -> None:
        engine.enforce_bulk_cap(500)
        with pytest.raises(BulkCapExceededError) as exc_info:
            engine.enforce_bulk_cap(501)
        assert exc_info.value.details == {"count": 501, "cap": 500}

    def test_coupon_cap_boundary(self, engine: GuardrailEngine) -> None:
        engine.enforce_coupon_cap(1000)
        with pytest.raises(BulkCapExceededError):
            engine.enforce_coupon_cap(1001)

    def test_discount_limit_only_for_percent(self, engine: GuardrailEngine) -> None:
        engine.enforce_discount_limit("by_percent", 50)
        engine.enforce_discount_limit("by_fixed", 500)
        with pytest.raises(DiscountLimitExceededError) as exc_info:
            engine.enforce_discount_limit("by_percent", 50.5)
        assert exc_info.value.code == ErrorCodes.DISCOUNT_LIMIT_EXCEEDED


class TestPriceThreshold:
    def test_large_increase_warns(self, engine: GuardrailEngine) -> None:
        warning = engine.check_price_change_threshold(100, 151)
        assert warning is not None
        assert "51.0%" in warning

    def test_below_threshold_is_silent(self, engine: GuardrailEngine) -> None:
        assert engine.check_price_change_threshold(100, 149) is None

    def test_zero_old_price_is_silent(self, engine: GuardrailEngine) -> None:
        assert engine.check_price_change_threshold(0, 50) is None

    def test_decrease_counts_too(self, engine: GuardrailEngine) -> None:
        assert engine.check_price_change_threshold(100, 40) is not None


class TestFieldsAndScope:
    def test_disallowed_fields_are_listed(self, engine: GuardrailEngine) -> None:
        with pytest.raises(FieldNotAllowedError) as exc_info:
            engine.enforce_allowed_fields_for("catalog", ["name", "sku", "type_id"], "Catalog")
        assert exc_info.value.details["disallowed"] == ["sku", "type_id"]

    def test_allowed_fields_pass(self, engine: GuardrailEngine) -> None:
        engine.enforce_allowed_fields_for("cms_block", ["title", "is_active"], "Block")

    def test_scope_missing(self, engine: GuardrailEngine) -> None:
        with pytest.raises(ScopeRequiredError):
            engine.require_explicit_scope({})

    def test_scope_empty_object(self, engine: GuardrailEngine) -> None:
        with pytest.raises(ScopeRequiredError):
            engine.require_explicit_scope({"scope": {"store_code": ""}})

    def test_scope_global(self, engine: GuardrailEngine) -> None:
        scope = engine.require_explicit_scope({"scope": {"scope": "global"}})
        assert scope == StoreScope(scope="global")
        assert scope.store_code_for_url() == "all"

    def test_scope_store_view(self, engine: GuardrailEngine) -> None:
        scope = engine.require_explicit_scope({"scope": {"store_view_code": "fr"}})
        assert scope.store_code_for_url() == "fr"


class TestRateLimit:
    def test_limiter_window(self) -> None:
        now = [0.0]
        limiter = FixedWindowRateLimiter(2, window_seconds=60, clock=lambda: now[0])
        assert limiter.allow("k")
        assert limiter.allow("k")
        assert not limiter.allow("k")
        assert limiter.allow("other")

        now[0] = 60.0
        assert limiter.allow("k")

    def test_engine_raises_when_exhausted(self) -> None:
        engine = GuardrailEngine(GuardrailSettings(), purge_limiter=FixedWindowRateLimiter(1))
        engine.enforce_rate_limit()
        with pytest.raises(RateLimitedError) as exc_info:
            engine.enforce_rate_limit()
        assert exc_info.value.code == ErrorCodes.RATE_LIMITED

    def test_engine_without_limiter_never_limits(self, engine: GuardrailEngine) -> None:
        for _ in range(100):
            engine.enforce_rate_limit()


class TestPolicy:
    def test_load_policy_file(self, tmp_path: Path) -> None:
        path = tmp_path / "policy.yaml"
        path.write_text(
            "version: 1\nallowed_fields:\n  catalog: [name]\n  cms_block:\n",
            encoding="utf-8",
        )
        policy = load_policy(str(path))
        assert policy.fields_for("catalog") == ["name"]
        assert policy.fields_for("cms_block") == DEFAULT_CMS_BLOCK_FIELDS

    def test_empty_policy_uses_defaults(self) -> None:
        policy = GuardrailPolicy.from_yaml({})
        assert "price" in policy.fields_for("catalog")

    def test_missing_policy_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_policy(str(tmp_path / "absent.yaml"))

    def test_repository_policy_loads(self) -> None:
        root = Path(__file__).resolve().parents[1]
        policy = load_policy(str(root / "policy.yaml"))
        assert "content" in policy.fields_for("cms_page")
