"""Tests for pipeline/discovery.py"""

import pytest

from pipeline.discovery import is_base_station, is_camera, report_devices

DEVICES = [
    {"id": 1, "kind": "doorbell_v3", "description": "Front"},
    {"id": 2, "kind": "stickup_cam_v4", "description": "Yard"},
    {"id": 3, "kind": "base_station_v1", "description": "Base", "time_zone": "UTC"},
    {"id": 4, "kind": "chime", "description": "Chime"},
    {"id": 5, "description": "Mystery"},
]


class TestClassification:
    def test_base_station(self):
        assert is_base_station({"kind": "base_station_v2"})
        assert not is_base_station({"kind": "chime"})
        assert not is_base_station({})

    def test_camera(self):
        assert is_camera({"kind": "doorbot"})
        assert is_camera({"kind": "doorbell_v3"})
        assert is_camera({"kind": "stickup_cam_lunar"})
        assert not is_camera({"kind": "base_station_v1"})


class TestReportDevices:
    @pytest.mark.asyncio
    async def test_events_per_category(self, dispatcher, sink):
        counts = await report_devices(DEVICES, dispatcher)

        assert counts["unknown"] == 1
        assert counts["chime"] == 1
        assert sink.types().count("device_found") == 5
        assert sink.types().count("base_station_found") == 1
        assert sink.types().count("camera_found") == 2
        station = next(d for t, d in sink.delivered if t == "base_station_found")
        assert station["time_zone"] == "UTC"

    @pytest.mark.asyncio
    async def test_repeat_discovery_is_deduplicated(self, dispatcher, sink):
        await report_devices(DEVICES[:1], dispatcher)
        await report_devices(DEVICES[:1], dispatcher)
        assert sink.types() == ["device_found", "camera_found"]

    @pytest.mark.asyncio
    async def test_empty_and_malformed(self, dispatcher, sink):
        assert await report_devices([], dispatcher) == {}
        assert await report_devices(["bad", None], dispatcher) == {}
        assert sink.delivered == []
