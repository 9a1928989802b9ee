"""auth.login, auth.logout, auth.whoami."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import SecretStr

from magento_admin_mcp.client.magento_rest import MagentoApiError
from magento_admin_mcp.errors import ActionValidationError
from magento_admin_mcp.guardrails import RiskTier
from magento_admin_mcp.signing.oauth1 import OAuthCredentials
from magento_admin_mcp.tools._schemas import object_schema
from magento_admin_mcp.tools.dispatcher import ActionContext, ActionSpec

logger = logging.getLogger(__name__)

_OAUTH_FIELDS = (
    "oauth_consumer_key",
    "oauth_consumer_secret",
    "oauth_token",
    "oauth_token_secret",
)

LOGIN_SCHEMA = object_schema(
    {
        "base_url": {
            "type": "string",
            "pattern": "^https?://",
            "description": "Magento base URL. Defaults to MAGENTO_BASE_URL.",
        },
        "username": {"type": "string", "minLength": 1},
        "password": {"type": "string", "minLength": 1},
        "integration_token": {"type": "string", "minLength": 1},
        **{name: {"type": "string", "minLength": 1} for name in _OAUTH_FIELDS},
    }
)


def _secret(value: SecretStr | None) -> str | None:
    return value.get_secret_value() if value is not None else None


async def login(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    defaults = ctx.settings.magento
    base_url = (params.get("base_url") or defaults.base_url or "").rstrip("/")
    if not base_url:
        raise ActionValidationError(
            "base_url is required: pass it in params or set MAGENTO_BASE_URL",
            {"missing": ["base_url"]},
        )

    oauth_values = {
        name: params.get(name) or _secret(getattr(defaults, name)) for name in _OAUTH_FIELDS
    }
    if all(oauth_values.values()):
        credentials = OAuthCredentials(
            consumer_key=oauth_values["oauth_consumer_key"],
            consumer_secret=oauth_values["oauth_consumer_secret"],
            token=oauth_values["oauth_token"],
            token_secret=oauth_values["oauth_token_secret"],
        )
        username = params.get("username") or defaults.admin_username or "integration"
        ctx.app.sessions.create_with_credentials(ctx.session_id, base_url, credentials, username)
        logger.info("Session %s logged in via OAuth integration", ctx.session_id)
        return {
            "message": "Login successful (OAuth 1.0 integration)",
            "username": username,
            "base_url": base_url,
            "auth_method": "oauth",
        }

    integration_token = params.get("integration_token") or _secret(defaults.integration_token)
    if integration_token:
        username = params.get("username") or defaults.admin_username or "integration"
        ctx.app.sessions.create(ctx.session_id, base_url, integration_token, username)
        logger.info("Session %s logged in via integration token", ctx.session_id)
        return {
            "message": "Login successful (integration token)",
            "username": username,
            "base_url": base_url,
            "auth_method": "integration_token",
        }

    username = params.get("username") or defaults.admin_username
    password = params.get("password") or _secret(defaults.admin_password)
    missing = [name for name, value in (("username", username), ("password", password)) if not value]
    if missing:
        raise ActionValidationError(
            f"{' and '.join(missing)} required: pass in params or set MAGENTO_ADMIN_* env vars",
            {"missing": missing},
        )

    token = await ctx.app.anonymous_client(base_url).get_admin_token(username, password)
    ctx.app.sessions.create(ctx.session_id, base_url, token, username)
    logger.info("Session %s logged in as admin user %s", ctx.session_id, username)
    return {
        "message": "Login successful",
        "username": username,
        "base_url": base_url,
        "auth_method": "admin_token",
    }


async def logout(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    destroyed = ctx.app.sessions.destroy(ctx.session_id)
    return {"message": "Logged out successfully" if destroyed else "No active session"}


async def whoami(params: dict[str, Any], ctx: ActionContext) -> dict[str, Any]:
    session = ctx.require_session()
    # Integration tokens cannot read /V1/users/me; fall back to the local view.
    try:
        user = await ctx.client().get("/V1/users/me")
    except MagentoApiError as exc:
        logger.debug("users/me unavailable: %s", exc.message)
        return session.describe()
    return {"user": user, **session.describe()}


ACTIONS = [
    ActionSpec(
        name="auth.login",
        description=(
            "Authenticate against Magento and open a session. Uses OAuth integration "
            "credentials, an integration token, or admin username/password, in that order."
        ),
        risk_tier=RiskTier.SAFE,
        input_schema=LOGIN_SCHEMA,
        handler=login,
        requires_auth=False,
    ),
    ActionSpec(
        name="auth.logout",
        description="Destroy the current session.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema({}),
        handler=logout,
        requires_auth=False,
    ),
    ActionSpec(
        name="auth.whoami",
        description="Return the admin user and session details for the active session.",
        risk_tier=RiskTier.SAFE,
        input_schema=object_schema({}),
        handler=whoami,
    ),
]
