"""Structured guardrail failures."""

from __future__ import annotations

from magento_admin_mcp.errors import ErrorCodes, MagentoMCPError


class GuardrailViolation(MagentoMCPError):
    """Raised by a guardrail check. Carries no side effects beyond the raise."""


class ConfirmationRequiredError(GuardrailViolation):
    code = ErrorCodes.CONFIRMATION_REQUIRED


class BulkCapExceededError(GuardrailViolation):
    code = ErrorCodes.BULK_CAP_EXCEEDED


class FieldNotAllowedError(GuardrailViolation):
    code = ErrorCodes.FIELD_NOT_ALLOWED


class ScopeRequiredError(GuardrailViolation):
    code = ErrorCodes.SCOPE_REQUIRED


class DiscountLimitExceededError(GuardrailViolation):
    code = ErrorCodes.DISCOUNT_LIMIT_EXCEEDED


class RateLimitedError(GuardrailViolation):
    code = ErrorCodes.RATE_LIMITED
