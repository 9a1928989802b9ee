"""In-memory session registry.

Sessions hold tokens and credential tuples, so nothing here is ever
persisted. Only ``default_scope`` changes after a session is created.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from magento_admin_mcp.signing.oauth1 import OAuthCredentials
from magento_admin_mcp.utils.time import utc_now


class StoreScope(BaseModel):
    """Multi-store addressing context."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    website_code: str | None = None
    store_code: str | None = None
    store_view_code: str | None = None
    scope: Literal["global"] | None = None

    def is_explicit(self) -> bool:
        return bool(
            self.website_code or self.store_code or self.store_view_code or self.scope == "global"
        )

    def store_code_for_url(self) -> str | None:
        """Store code used in ``/rest/<code>/V1``; global scope maps to ``all``."""
        if self.store_view_code:
            return self.store_view_code
        if self.store_code:
            return self.store_code
        if self.scope == "global":
            return "all"
        return None


AuthMode = Literal["bearer", "oauth"]


@dataclass
class Session:
    session_id: str
    base_url: str
    auth_mode: AuthMode
    username: str
    token: str | None = field(default=None, repr=False)
    credentials: OAuthCredentials | None = field(default=None, repr=False)
    default_scope: StoreScope | None = None
    created_at: datetime = field(default_factory=utc_now)

    def describe(self) -> dict[str, object]:
        """Caller-safe view without tokens or credentials."""
        return {
            "session_id": self.session_id,
            "base_url": self.base_url,
            "auth_mode": self.auth_mode,
            "username": self.username,
            "default_scope": (
                self.default_scope.model_dump(exclude_none=True) if self.default_scope else None
            ),
            "created_at": self.created_at.isoformat(),
        }


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, session_id: str, base_url: str, token: str, username: str) -> Session:
        """Register a bearer-token session, replacing any previous one under the id."""
        session = Session(
            session_id=session_id,
            base_url=base_url,
            auth_mode="bearer",
            username=username,
            token=token,
        )
        with self._lock:
            self._sessions[session_id] = session
        return session

    def create_with_credentials(
        self,
        session_id: str,
        base_url: str,
        credentials: OAuthCredentials,
        username: str,
    ) -> Session:
        session = Session(
            session_id=session_id,
            base_url=base_url,
            auth_mode="oauth",
            username=username,
            credentials=credentials,
        )
        with self._lock:
            self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def destroy(self, session_id: str) -> bool:
        """Remove the session; ``False`` means there was nothing to destroy."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def set_default_scope(self, session_id: str, scope: StoreScope | None) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.default_scope = scope

    def get_default_scope(self, session_id: str) -> StoreScope | None:
        session = self._sessions.get(session_id)
        return session.default_scope if session else None

    def get_username(self, session_id: str) -> str | None:
        session = self._sessions.get(session_id)
        return session.username if session else None

    def get_base_url(self, session_id: str) -> str | None:
        session = self._sessions.get(session_id)
        return session.base_url if session else None
