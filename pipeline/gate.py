"""
Admission Gate
==============
Exclusion-list check followed by identity deduplication.
"""

import logging
from typing import Callable, Iterable

from config.settings import EXCLUDED_EVENTS
from pipeline.deduplicator import EventDeduplicator
from pipeline.identity import resolve
from pipeline.stats import EventStats, event_stats

logger = logging.getLogger(__name__)


class AdmissionGate:
    def __init__(
        self,
        deduplicator: EventDeduplicator,
        excluded: Iterable[str] = EXCLUDED_EVENTS,
        resolver: Callable[[str, dict], str] = resolve,
        stats: EventStats = event_stats,
    ):
        self.deduplicator = deduplicator
        self.excluded = frozenset(excluded)
        self.resolver = resolver
        self.stats = stats

    def is_excluded(self, event_type: str) -> bool:
        return event_type in self.excluded

    def should_admit(self, event_type: str, data: dict) -> bool:
        """Returns True if the event should be delivered.

        Excluded types are rejected before any identity work, so they never
        touch the dedup store.
        """
        if self.is_excluded(event_type):
            self.stats.track("blocked", event_type)
            logger.debug(f"Event type {event_type} is excluded from processing")
            return False

        key = self.resolver(event_type, data)
        if self.deduplicator.is_duplicate(key):
            self.stats.track("blocked", f"duplicate_{event_type}")
            logger.info(f"Skipping duplicate {event_type} event with ID: {key}")
            return False

        return True
