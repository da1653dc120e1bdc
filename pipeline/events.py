"""
Event Models + Webhook Sink
===========================
CanonicalEvent dataclass and the single-attempt HTTP poster.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx

from config.settings import (
    EVENT_SOURCE, WEBHOOK_AUTH_HEADER, WEBHOOK_TIMEOUT_SECONDS, WEBHOOK_URL,
)
from pipeline.stats import EventStats, event_stats

logger = logging.getLogger(__name__)


def iso_now() -> str:
    """UTC now as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_from(value) -> str:
    """Normalize a device timestamp (ISO string or epoch ms/s) to ISO-8601.

    Falls back to now when the value is missing or unparseable.
    """
    if value in (None, ""):
        return iso_now()
    try:
        if isinstance(value, (int, float)):
            seconds = value / 1000 if value > 1e11 else value
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        else:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return iso_now()
    return parsed.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class CanonicalEvent:
    event_type: str
    data: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.event_type:
            raise ValueError("CanonicalEvent requires a non-empty event_type")
        self.data = dict(self.data)
        if not self.data.get("timestamp"):
            self.data["timestamp"] = iso_now()


@dataclass
class DeliveryResult:
    ok: bool
    event_type: str
    status_code: Optional[int] = None
    error: str = ""


def build_payload(event_type: str, data: dict) -> dict:
    return {
        "timestamp": iso_now(),
        "eventType": event_type,
        "source": EVENT_SOURCE,
        "data": data,
    }


class WebhookSink:
    """POSTs admitted events to the configured webhook, once, no retry."""

    def __init__(
        self,
        url: str = WEBHOOK_URL,
        auth_header: str = WEBHOOK_AUTH_HEADER,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        stats: EventStats = event_stats,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.auth_header = auth_header
        self.stats = stats
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def deliver(self, event_type: str, data: dict) -> DeliveryResult:
        """Send one event. Failures come back as a result, never raised."""
        if not self.url:
            logger.error("Cannot send event: WEBHOOK_URL is not configured")
            self.stats.track("errors", event_type)
            return DeliveryResult(ok=False, event_type=event_type, error="webhook url not configured")

        headers = {}
        if self.auth_header:
            headers["Authorization"] = self.auth_header

        payload = build_payload(event_type, data)
        logger.debug(f"Sending {event_type} to webhook: {self.url}")
        try:
            response = await self._client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send {event_type} to webhook: {e}")
            self.stats.track("errors", event_type)
            return DeliveryResult(ok=False, event_type=event_type, error=str(e) or type(e).__name__)

        if 200 <= response.status_code < 300:
            logger.info(f"Sent {event_type} event to webhook")
            self.stats.track("sent", event_type)
            return DeliveryResult(ok=True, event_type=event_type, status_code=response.status_code)

        logger.error(
            f"Webhook returned {response.status_code} for {event_type}: {response.text[:200]}"
        )
        self.stats.track("errors", event_type)
        return DeliveryResult(
            ok=False,
            event_type=event_type,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    async def aclose(self):
        await self._client.aclose()
