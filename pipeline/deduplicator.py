"""
Event Deduplicator
==================
Time-window membership store keyed by event identity.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Optional

from config.settings import DEDUP_SWEEP_SECONDS, DEDUP_TTL_SECONDS

logger = logging.getLogger(__name__)


class EventDeduplicator:
    def __init__(
        self,
        ttl: float = DEDUP_TTL_SECONDS,
        sweep_interval: float = DEDUP_SWEEP_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self.clock = clock
        self.seen: dict[str, float] = {}  # key -> first-seen time
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self.seen)

    def is_duplicate(self, key: str, ttl: Optional[float] = None) -> bool:
        """Returns True if ``key`` was recorded less than ``ttl`` seconds ago.

        A non-duplicate is recorded with the current time. A duplicate does
        not refresh the stored time, so the window runs from first sight.
        """
        if not key:
            return False
        ttl = self.ttl if ttl is None else ttl

        with self._lock:
            now = self.clock()
            first_seen = self.seen.get(key)
            if first_seen is not None and now - first_seen < ttl:
                logger.debug(f"Duplicate event detected with ID: {key}")
                return True
            self.seen[key] = now
            return False

    def evict_expired(self, now: Optional[float] = None) -> int:
        """Drop entries older than the TTL. Returns how many were removed."""
        with self._lock:
            now = self.clock() if now is None else now
            expired = [key for key, ts in self.seen.items() if now - ts > self.ttl]
            for key in expired:
                del self.seen[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired dedup entries")
        return len(expired)

    async def _sweep_forever(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.evict_expired()

    def start(self):
        """Start the periodic eviction task on the running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_forever())

    def stop(self):
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
