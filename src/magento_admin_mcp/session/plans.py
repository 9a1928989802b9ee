"""In-memory store for prepared bulk operations awaiting commit."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from magento_admin_mcp.session.payloads import PlanPayload
from magento_admin_mcp.utils.time import utc_now


@dataclass(frozen=True)
class Plan:
    plan_id: str
    action: str
    created_at: datetime
    expires_at: datetime
    payload: PlanPayload
    affected_count: int
    sample_diffs: tuple[dict[str, object], ...] = ()
    warnings: tuple[str, ...] = ()

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, object]:
        return {
            "plan_id": self.plan_id,
            "action": self.action,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "affected_count": self.affected_count,
            "sample_diffs": list(self.sample_diffs),
            "warnings": list(self.warnings),
        }


class PlanStore:
    """Plans live in memory only and are consumed at most once.

    Expired plans are evicted lazily by ``get``/``consume`` and eagerly by
    ``cleanup``. All mutation happens under one lock, so concurrent
    ``consume`` calls for the same id have a single winner.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._plans: dict[str, Plan] = {}
        self._lock = threading.Lock()
        self._clock = clock or utc_now

    def create(
        self,
        action: str,
        payload: PlanPayload,
        affected_count: int,
        ttl_minutes: int,
        sample_diffs: Sequence[dict[str, object]] | None = None,
        warnings: Sequence[str] | None = None,
    ) -> Plan:
        now = self._clock()
        plan = Plan(
            plan_id=str(uuid.uuid4()),
            action=action,
            created_at=now,
            expires_at=now + timedelta(minutes=ttl_minutes),
            payload=payload,
            affected_count=affected_count,
            sample_diffs=tuple(sample_diffs or ()),
            warnings=tuple(warnings or ()),
        )
        with self._lock:
            self._plans[plan.plan_id] = plan
        return plan

    def get(self, plan_id: str) -> Plan | None:
        with self._lock:
            return self._live(plan_id)

    def consume(self, plan_id: str) -> Plan | None:
        with self._lock:
            plan = self._live(plan_id)
            if plan is not None:
                del self._plans[plan_id]
            return plan

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [pid for pid, plan in self._plans.items() if plan.is_expired(now)]
            for pid in expired:
                del self._plans[pid]
        return len(expired)

    def __len__(self) -> int:
        return len(self._plans)

    def _live(self, plan_id: str) -> Plan | None:
        # Caller holds the lock.
        plan = self._plans.get(plan_id)
        if plan is None:
            return None
        if plan.is_expired(self._clock()):
            del self._plans[plan_id]
            return None
        return plan
