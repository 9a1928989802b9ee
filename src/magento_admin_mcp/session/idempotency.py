"""File-backed ledger of completed commits keyed by caller idempotency keys."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from pathlib import Path

from magento_admin_mcp.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdempotencyEntry:
    key: str
    action: str
    created_at: str
    result_summary: str


class IdempotencyLedger:
    """Loaded once on construction; every ``record`` rewrites the whole file.

    A missing or unreadable file yields an empty ledger. Uniqueness of keys
    is the caller's job: check ``get`` before executing a commit.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._entries: dict[str, IdempotencyEntry] = {}
        self._lock = threading.Lock()
        self._load()

    def has(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> IdempotencyEntry | None:
        return self._entries.get(key)

    def record(self, key: str, action: str, result_summary: str) -> IdempotencyEntry:
        entry = IdempotencyEntry(
            key=key,
            action=action,
            created_at=utc_now_iso(),
            result_summary=result_summary,
        )
        with self._lock:
            self._entries[key] = entry
            self._save()
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            entries = [IdempotencyEntry(**item) for item in raw]
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Ignoring unreadable idempotency ledger %s: %s", self._path, exc)
            return
        self._entries = {entry.key: entry for entry in entries}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps([asdict(entry) for entry in self._entries.values()], indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".ledger-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
