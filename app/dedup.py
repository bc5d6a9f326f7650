from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

KEY_PREFIX = "disp_first_set"
FIRST_DISPOSITION_TTL = timedelta(days=30)


class DedupEntry(BaseModel):
    key: str
    first_seen_at: datetime
    disposition_id: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispositionDedupGate:
    """Remembers which calls already had their first disposition forwarded.

    Entries live in memory for the life of the process and expire after
    ``ttl``. Expired entries are pruned lazily on every claim.
    """

    def __init__(
        self,
        ttl: timedelta = FIRST_DISPOSITION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._entries: dict[str, DedupEntry] = {}
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()

    @staticmethod
    def dedupe_key(
        call_id: str | None,
        lead_id: str | None,
        timestamp: str | None,
        received_at: datetime,
    ) -> str:
        if call_id:
            return f"{KEY_PREFIX}:{call_id}"
        stamp = timestamp or str(int(received_at.timestamp() * 1000))
        return f"{KEY_PREFIX}:{lead_id or ''}:{stamp}"

    def _prune(self, now: datetime) -> None:
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.first_seen_at > self._ttl
        ]
        for key in expired:
            del self._entries[key]

    def prune(self) -> None:
        with self._lock:
            self._prune(self._clock())

    def claim(self, key: str, disposition_id: str | None = None) -> bool:
        """Record ``key`` and return True, or return False if it was already seen.

        Must stay free of awaits: the insert has to land before any other
        request for the same call gets a chance to run.
        """
        with self._lock:
            now = self._clock()
            self._prune(now)
            if key in self._entries:
                return False
            self._entries[key] = DedupEntry(
                key=key, first_seen_at=now, disposition_id=disposition_id
            )
            return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            self._prune(self._clock())
            return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
