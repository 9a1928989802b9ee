"""Application context assembly."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache

import httpx

from magento_admin_mcp.audit.log import AuditLog
from magento_admin_mcp.client.fastly import FastlyClient
from magento_admin_mcp.client.magento_rest import MagentoRestClient
from magento_admin_mcp.config import Settings, load_settings
from magento_admin_mcp.guardrails import FixedWindowRateLimiter, GuardrailEngine
from magento_admin_mcp.guardrails.policy import GuardrailPolicy, load_policy
from magento_admin_mcp.session.idempotency import IdempotencyLedger
from magento_admin_mcp.session.plans import PlanStore
from magento_admin_mcp.session.registry import Session, SessionRegistry
from magento_admin_mcp.signing.oauth1 import OAuth1Signer


@dataclass
class AppContext:
    """Process-wide dependency container.

    Every component gets its configuration through its constructor here;
    nothing below this point reads the environment.
    """

    settings: Settings
    sessions: SessionRegistry
    plans: PlanStore
    ledger: IdempotencyLedger
    guardrails: GuardrailEngine
    audit: AuditLog
    signer: OAuth1Signer = field(default_factory=OAuth1Signer)
    magento_transport: httpx.AsyncBaseTransport | None = None
    fastly_transport: httpx.AsyncBaseTransport | None = None

    def client_for(self, session: Session) -> MagentoRestClient:
        return MagentoRestClient(
            session.base_url,
            token=session.token,
            credentials=session.credentials,
            signer=self.signer,
            timeout=self.settings.magento.request_timeout_seconds,
            transport=self.magento_transport,
        )

    def anonymous_client(self, base_url: str) -> MagentoRestClient:
        return MagentoRestClient(
            base_url,
            signer=self.signer,
            timeout=self.settings.magento.request_timeout_seconds,
            transport=self.magento_transport,
        )

    def fastly_client(self) -> FastlyClient | None:
        cache = self.settings.cache
        if not cache.fastly_service_id or cache.fastly_api_token is None:
            return None
        return FastlyClient(
            cache.fastly_service_id,
            cache.fastly_api_token.get_secret_value(),
            transport=self.fastly_transport,
        )


def build_app_context(
    settings: Settings,
    *,
    policy: GuardrailPolicy | None = None,
    magento_transport: httpx.AsyncBaseTransport | None = None,
    fastly_transport: httpx.AsyncBaseTransport | None = None,
    plan_clock: Callable[[], datetime] | None = None,
    signer: OAuth1Signer | None = None,
) -> AppContext:
    purge_limiter = FixedWindowRateLimiter(settings.cache.purge_rate_limit_per_minute)
    return AppContext(
        settings=settings,
        sessions=SessionRegistry(),
        plans=PlanStore(clock=plan_clock),
        ledger=IdempotencyLedger(settings.storage.idempotency_path),
        guardrails=GuardrailEngine(settings.guardrails, policy, purge_limiter),
        audit=AuditLog(settings.storage.audit_log_path),
        signer=signer or OAuth1Signer(),
        magento_transport=magento_transport,
        fastly_transport=fastly_transport,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    settings = load_settings()
    return build_app_context(settings, policy=load_policy(settings.policy.path))
