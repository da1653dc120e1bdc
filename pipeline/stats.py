"""
Event Statistics
================
Per-event-type counters for received, sent, blocked and failed events.
Observational only; nothing reads them to make decisions.
"""

from collections import defaultdict

STAT_KINDS = ("received", "sent", "blocked", "errors")


class EventStats:
    def __init__(self):
        self.counts: dict[str, defaultdict[str, int]] = {
            kind: defaultdict(int) for kind in STAT_KINDS
        }

    def track(self, kind: str, event_type: str):
        if kind not in self.counts:
            raise ValueError(f"Unknown stat kind: {kind}")
        self.counts[kind][event_type] += 1

    def get(self, kind: str, event_type: str) -> int:
        return self.counts[kind].get(event_type, 0)

    def snapshot(self) -> dict[str, dict[str, int]]:
        return {kind: dict(counter) for kind, counter in self.counts.items()}


# Process-wide counters, reset only on restart
event_stats = EventStats()
