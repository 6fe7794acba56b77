"""Per-participant guess rate limiting for guess games."""

from __future__ import annotations

import logging
from typing import Dict, Tuple

log = logging.getLogger(__name__)

CooldownKey = Tuple[int, int]


class CooldownTracker:
    """Remembers the last guess of each (thread, user) pair.

    Entries are advisory and never persisted. ``sweep`` bounds memory by
    dropping entries older than the retention window, but never an entry
    whose own cooldown is still running.
    """

    def __init__(self, retention_ms: int) -> None:
        self.retention_ms = retention_ms
        # key -> (last guess, cooldown in force for that guess)
        self._last_seen: Dict[CooldownKey, Tuple[int, int]] = {}

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, key: CooldownKey) -> bool:
        return key in self._last_seen

    def is_limited(self, key: CooldownKey, now: int, cooldown_ms: int) -> bool:
        entry = self._last_seen.get(key)
        return entry is not None and now - entry[0] < cooldown_ms

    def record(self, key: CooldownKey, now: int, cooldown_ms: int = 0) -> None:
        self._last_seen[key] = (now, cooldown_ms)

    def try_acquire(self, key: CooldownKey, now: int, cooldown_ms: int) -> bool:
        """Record a guess unless the key is still cooling down."""
        if self.is_limited(key, now, cooldown_ms):
            return False
        self.record(key, now, cooldown_ms)
        return True

    def forget_thread(self, thread_id: int) -> None:
        for key in [key for key in self._last_seen if key[0] == thread_id]:
            del self._last_seen[key]

    def sweep(self, now: int) -> int:
        stale = [
            key
            for key, (seen, cooldown_ms) in self._last_seen.items()
            if now - seen > max(self.retention_ms, cooldown_ms)
        ]
        for key in stale:
            del self._last_seen[key]
        if stale:
            log.debug("Swept %d stale cooldown entries.", len(stale))
        return len(stale)
