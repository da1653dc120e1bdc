"""Tests for pipeline/events.py"""

import json
from datetime import datetime

import httpx
import pytest

from pipeline.events import CanonicalEvent, WebhookSink, build_payload, iso_from, iso_now


def _sink(stats, handler, url="http://sink.test/hook", auth_header=""):
    return WebhookSink(
        url=url, auth_header=auth_header, stats=stats, transport=httpx.MockTransport(handler)
    )


class TestCanonicalEvent:
    def test_timestamp_injected(self):
        event = CanonicalEvent("motion_detected", {})
        assert event.data["timestamp"]

    def test_existing_timestamp_kept(self):
        event = CanonicalEvent("motion_detected", {"timestamp": "2024-01-01T00:00:00.000Z"})
        assert event.data["timestamp"] == "2024-01-01T00:00:00.000Z"

    def test_empty_type_rejected(self):
        with pytest.raises(ValueError):
            CanonicalEvent("", {"id": 1})

    def test_data_is_copied(self):
        data = {"id": 1}
        CanonicalEvent("device_found", data)
        assert "timestamp" not in data


class TestTimestamps:
    def test_iso_now_parses(self):
        assert datetime.fromisoformat(iso_now().replace("Z", "+00:00"))

    def test_iso_from_string(self):
        assert iso_from("2024-05-01T10:00:00Z") == "2024-05-01T10:00:00.000Z"

    def test_iso_from_epoch_ms(self):
        assert iso_from(1714557600000) == "2024-05-01T10:00:00.000Z"

    def test_iso_from_garbage_falls_back_to_now(self):
        assert iso_from("not a date").endswith("Z")
        assert iso_from(None).endswith("Z")


class TestPayload:
    def test_payload_shape(self):
        payload = build_payload("doorbell_pressed", {"dingId": "1"})
        assert payload["eventType"] == "doorbell_pressed"
        assert payload["source"] == "ring-doorbell"
        assert payload["data"] == {"dingId": "1"}
        assert datetime.fromisoformat(payload["timestamp"].replace("Z", "+00:00"))


class TestWebhookSink:
    @pytest.mark.asyncio
    async def test_success_posts_once(self, stats):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        sink = _sink(stats, handler, auth_header="Bearer secret")
        result = await sink.deliver("motion_detected", {"id": "m1"})
        await sink.aclose()

        assert result.ok is True
        assert result.status_code == 200
        assert len(requests) == 1
        body = json.loads(requests[0].content)
        assert body["eventType"] == "motion_detected"
        assert body["source"] == "ring-doorbell"
        assert body["data"] == {"id": "m1"}
        assert requests[0].headers["Authorization"] == "Bearer secret"
        assert stats.get("sent", "motion_detected") == 1

    @pytest.mark.asyncio
    async def test_no_auth_header_when_unset(self, stats):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        sink = _sink(stats, handler)
        await sink.deliver("device_found", {"id": 1})
        await sink.aclose()
        assert "authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure_without_retry(self, stats):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="down")

        sink = _sink(stats, handler)
        result = await sink.deliver("motion_detected", {"id": "m1"})
        await sink.aclose()

        assert result.ok is False
        assert result.status_code == 503
        assert len(calls) == 1
        assert stats.get("errors", "motion_detected") == 1
        assert stats.get("sent", "motion_detected") == 0

    @pytest.mark.asyncio
    async def test_network_error_is_returned_not_raised(self, stats):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        sink = _sink(stats, handler)
        result = await sink.deliver("motion_detected", {"id": "m1"})
        await sink.aclose()

        assert result.ok is False
        assert result.status_code is None
        assert "refused" in result.error
        assert stats.get("errors", "motion_detected") == 1

    @pytest.mark.asyncio
    async def test_unconfigured_url_skips_network(self, stats):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        sink = _sink(stats, handler, url="")
        result = await sink.deliver("motion_detected", {"id": "m1"})
        await sink.aclose()

        assert result.ok is False
        assert calls == []
        assert stats.get("errors", "motion_detected") == 1
