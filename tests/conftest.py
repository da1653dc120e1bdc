"""
Test configuration: put the repo root on sys.path so that
`config.settings`, `pipeline.*` and `clients.*` imports resolve, and
provide fakes shared across test modules.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Settings are read at import time; keep the environment out of the tests
os.environ.pop("EXCLUDED_EVENTS", None)
os.environ.setdefault("WEBHOOK_URL", "http://sink.test/hook")

from clients.observable import Subject  # noqa: E402
from pipeline.deduplicator import EventDeduplicator  # noqa: E402
from pipeline.dispatch import EventDispatcher  # noqa: E402
from pipeline.events import DeliveryResult  # noqa: E402
from pipeline.gate import AdmissionGate  # noqa: E402
from pipeline.stats import EventStats  # noqa: E402


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSink:
    """Stands in for WebhookSink; remembers what it was asked to deliver."""

    def __init__(self, stats: EventStats, ok: bool = True):
        self.stats = stats
        self.ok = ok
        self.delivered: list[tuple[str, dict]] = []

    async def deliver(self, event_type: str, data: dict) -> DeliveryResult:
        self.delivered.append((event_type, data))
        if self.ok:
            self.stats.track("sent", event_type)
            return DeliveryResult(ok=True, event_type=event_type, status_code=200)
        self.stats.track("errors", event_type)
        return DeliveryResult(ok=False, event_type=event_type, status_code=500, error="HTTP 500")

    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.delivered]


class FakeCamera:
    def __init__(self, camera_id=1, name="Front Door", is_doorbot=True, **attrs):
        self.id = camera_id
        self.name = name
        self.is_doorbot = is_doorbot
        self.device_type = "doorbot" if is_doorbot else "stickup_cam"
        self.battery_level = 90
        self.has_light = False
        self.has_siren = False
        self.is_offline = False
        self.is_charging = False
        self.has_motion = False
        self.last_motion = None
        self.data = {}
        self.on_data = Subject("on_data")
        self.on_active_dings = Subject("on_active_dings")
        self.on_motion_detected = Subject("on_motion_detected")
        self.on_doorbell_pressed = Subject("on_doorbell_pressed")
        self.health = {}
        self.events = []
        self.health_error = None
        self.snapshot_error = None
        self.events_error = None
        for key, value in attrs.items():
            setattr(self, key, value)

    async def get_health(self):
        if self.health_error:
            raise self.health_error
        return self.health

    async def get_snapshot(self):
        if self.snapshot_error:
            raise self.snapshot_error
        return b"jpeg"

    async def get_events(self, kind=None):
        if self.events_error:
            raise self.events_error
        return [e for e in self.events if kind is None or e.get("kind") == kind]


class FakeAlarm:
    device_type = "security-panel"

    def __init__(self, alarm_id="alarm-1", mode="home"):
        self.id = alarm_id
        self.name = "Alarm"
        self.mode = mode
        self.on_data = Subject("alarm.on_data")


class FakeLocation:
    def __init__(self, name="Home", cameras=None, devices=None, history=None, history_error=None):
        self.name = name
        self.cameras = cameras or []
        self.devices = devices if devices is not None else list(self.cameras)
        self.history = history or []
        self.history_error = history_error
        self.history_limits = []

    async def get_devices(self):
        return self.devices

    async def get_history(self, limit=10):
        self.history_limits.append(limit)
        if self.history_error:
            raise self.history_error
        return self.history


class FakeRingClient:
    def __init__(self, active_dings=None, error=None):
        self.active_dings = active_dings or []
        self.error = error

    async def get_active_dings(self):
        if self.error:
            raise self.error
        return self.active_dings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stats():
    return EventStats()


@pytest.fixture
def deduplicator(clock):
    return EventDeduplicator(ttl=60.0, sweep_interval=30.0, clock=clock)


@pytest.fixture
def gate(deduplicator, stats):
    return AdmissionGate(deduplicator, excluded=(), stats=stats)


@pytest.fixture
def sink(stats):
    return RecordingSink(stats)


@pytest.fixture
def dispatcher(gate, sink, stats):
    return EventDispatcher(gate, sink, stats)
