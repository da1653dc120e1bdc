"""
Status App Tests
================
Health and statistics endpoints of the bridge status app.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from app import create_app


@pytest.fixture
def status_client(stats, deduplicator):
    app = create_app(stats, deduplicator)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_returns_status_healthy(self, status_client):
        async with status_client as client:
            response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data


class TestStatsEndpoint:
    @pytest.mark.asyncio
    async def test_stats_reflect_counters(self, status_client, stats, deduplicator):
        stats.track("received", "motion_detected")
        stats.track("blocked", "duplicate_motion_detected")
        deduplicator.is_duplicate("motion-1")

        async with status_client as client:
            response = await client.get("/stats")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert "generated_at" in body
        assert body["data"]["received"] == {"motion_detected": 1}
        assert body["data"]["blocked"] == {"duplicate_motion_detected": 1}
        assert body["data"]["sent"] == {}
        assert body["data"]["dedup_entries"] == 1
