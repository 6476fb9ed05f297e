"""Bounded cache of recently processed message ids."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict

DEFAULT_MAX_ENTRIES = 10_000
DEFAULT_TTL_SECONDS = 30 * 60


class MessageCache:
    """Remember message ids so redelivered events are processed at most once.

    Entries are evicted oldest-first once ``max_entries`` is exceeded or
    after ``ttl_seconds``.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive.")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._seen: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        while self._seen:
            oldest_id, seen_at = next(iter(self._seen.items()))
            if len(self._seen) > self.max_entries or now - seen_at > self.ttl_seconds:
                del self._seen[oldest_id]
                continue
            break

    def check_and_tag(self, message_id: str) -> bool:
        """Mark a message as processed; return False if it already was."""
        with self._lock:
            now = time.time()
            self._evict(now)
            if message_id in self._seen:
                return False
            self._seen[message_id] = now
            self._evict(now)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
