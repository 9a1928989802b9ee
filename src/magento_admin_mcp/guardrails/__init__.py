"""Guardrail checks and the rate limiter they use."""

from magento_admin_mcp.guardrails.engine import GuardrailEngine, RiskTier
from magento_admin_mcp.guardrails.errors import GuardrailViolation
from magento_admin_mcp.guardrails.rate_limit import FixedWindowRateLimiter

__all__ = ["FixedWindowRateLimiter", "GuardrailEngine", "GuardrailViolation", "RiskTier"]
