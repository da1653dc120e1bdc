"""
Event Identity
==============
Derives the deduplication key for a canonical event.

Each extractor looks at one field (or field pair) of the event data and
returns the identifying part of the key, or None. ``resolve`` walks the
chain for the event type, takes the first hit and prefixes it with
``motion`` or the event type.
"""

import json
import time
from typing import Callable, Optional

from config.settings import MOTION_BUCKET_SECONDS

MOTION_DETECTED = "motion_detected"
GENERIC_FALLBACK_CHARS = 50

Extractor = Callable[[dict], Optional[str]]


def _present(value) -> bool:
    return value is not None and value != ""


def by_id(data: dict) -> Optional[str]:
    if _present(data.get("id")):
        return str(data["id"])
    return None


def by_ding_id(data: dict) -> Optional[str]:
    if _present(data.get("dingId")):
        return str(data["dingId"])
    return None


def by_camera_and_timestamp(data: dict) -> Optional[str]:
    if _present(data.get("cameraId")) and _present(data.get("timestamp")):
        return f"{data['cameraId']}-{data['timestamp']}"
    return None


def by_device_and_timestamp(data: dict) -> Optional[str]:
    if _present(data.get("deviceId")) and _present(data.get("timestamp")):
        return f"{data['deviceId']}-{data['timestamp']}"
    return None


def by_event_created_at(data: dict) -> Optional[str]:
    if _present(data.get("eventCreatedAt")):
        return f"{data.get('cameraName')}-{data['eventCreatedAt']}"
    return None


def by_nested_id(data: dict) -> Optional[str]:
    event_data = data.get("eventData")
    if isinstance(event_data, dict) and _present(event_data.get("id")):
        return str(event_data["id"])
    ding_data = data.get("dingData")
    if isinstance(ding_data, dict):
        nested = ding_data.get("id_str") or ding_data.get("id")
        if _present(nested):
            return str(nested)
    return None


def by_alarm_id(data: dict) -> Optional[str]:
    if _present(data.get("alarmId")):
        return str(data["alarmId"])
    return None


MOTION_CHAIN: tuple[Extractor, ...] = (
    by_id,
    by_ding_id,
    by_camera_and_timestamp,
    by_device_and_timestamp,
    by_event_created_at,
    by_nested_id,
)

GENERIC_CHAIN: tuple[Extractor, ...] = (
    by_id,
    by_alarm_id,
    by_ding_id,
)


def motion_bucket_key(data: dict, now: Optional[float] = None) -> str:
    """Last-resort motion key: device name plus a coarse time bucket.

    Two unidentifiable motion events from the same device inside one
    bucket collapse into a single key.
    """
    if now is None:
        now = time.time()
    device_name = data.get("cameraName") or data.get("deviceName") or "unknown"
    bucket = int(now // MOTION_BUCKET_SECONDS) * MOTION_BUCKET_SECONDS
    return f"motion-{device_name}-{bucket}"


def generic_key(event_type: str, data: dict) -> str:
    serialized = json.dumps(data, default=str)
    return f"{event_type}-{serialized[:GENERIC_FALLBACK_CHARS]}"


def resolve(event_type: str, data: dict, now: Optional[float] = None) -> str:
    """Return the identity key used to deduplicate this event."""
    if event_type == MOTION_DETECTED:
        for extractor in MOTION_CHAIN:
            key = extractor(data)
            if key is not None:
                return f"motion-{key}"
        return motion_bucket_key(data, now)

    for extractor in GENERIC_CHAIN:
        key = extractor(data)
        if key is not None:
            return f"{event_type}-{key}"
    return generic_key(event_type, data)
