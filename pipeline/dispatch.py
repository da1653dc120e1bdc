"""
Event Dispatcher
================
Single entry point for every producer: count, admit, deliver.
"""

import logging
from typing import Optional

from pipeline.events import CanonicalEvent, DeliveryResult, WebhookSink
from pipeline.gate import AdmissionGate
from pipeline.stats import EventStats, event_stats

logger = logging.getLogger(__name__)


class EventDispatcher:
    def __init__(self, gate: AdmissionGate, sink: WebhookSink, stats: EventStats = event_stats):
        self.gate = gate
        self.sink = sink
        self.stats = stats

    async def emit(self, event_type: str, data: dict) -> Optional[DeliveryResult]:
        """Push one normalized event through the gate and out to the sink.

        Returns None when the gate drops the event. Never raises: producers
        keep going whatever happens to a single delivery.
        """
        try:
            event = CanonicalEvent(event_type, data)
        except ValueError as e:
            logger.debug(f"Dropping malformed event: {e}")
            return None

        self.stats.track("received", event.event_type)
        logger.debug(f"Received {event.event_type} event: {event.data}")

        if not self.gate.should_admit(event.event_type, event.data):
            return None

        try:
            result = await self.sink.deliver(event.event_type, event.data)
        except Exception as e:
            logger.error(f"Unexpected delivery error for {event.event_type}: {e}")
            self.stats.track("errors", event.event_type)
            return DeliveryResult(ok=False, event_type=event.event_type, error=str(e))

        if not result.ok:
            logger.warning(f"Delivery of {event.event_type} failed: {result.error}")
        return result
