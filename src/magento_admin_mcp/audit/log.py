"""Append-only JSONL audit trail, one record per tool call."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path

from magento_admin_mcp.utils.masking import redact_sensitive_fields
from magento_admin_mcp.utils.serialization import json_default
from magento_admin_mcp.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class AuditRecord:
    action: str
    actor: str | None
    params: dict[str, object]
    result_summary: str
    timestamp: str = field(default_factory=utc_now_iso)
    scope: dict[str, object] | None = None
    plan_id: str | None = None
    reason: str | None = None
    status: str = "success"
    error_code: str | None = None


class AuditLog:
    """Fire-and-forget sink. Write failures are logged and swallowed."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def log(self, record: AuditRecord) -> None:
        data = asdict(record)
        data["params"] = redact_sensitive_fields(record.params)
        line = json.dumps(data, default=json_default, ensure_ascii=False)
        try:
            with self._lock, self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            logger.error("Failed to write audit record for %s: %s", record.action, exc)

    def read_recent(self, count: int = 50) -> list[dict[str, object]]:
        if not self.path.exists():
            return []
        lines = [line for line in self.path.read_text(encoding="utf-8").splitlines() if line]
        records: list[dict[str, object]] = []
        for line in lines[-count:] if count > 0 else []:
            try:
                records.append(json.loads(line))
            except ValueError:
                logger.warning("Skipping malformed audit line in %s", self.path)
        return records
