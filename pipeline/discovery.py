"""
Direct Device Discovery
=======================
Reports devices found through the raw device list when the account has no
locations.
"""

import logging
from collections import Counter

from pipeline.dispatch import EventDispatcher

logger = logging.getLogger(__name__)

DEVICE_FOUND = "device_found"
BASE_STATION_FOUND = "base_station_found"
CAMERA_FOUND = "camera_found"

CAMERA_KIND_MARKERS = ("doorbot", "doorbell", "stickup_cam")


def is_base_station(device: dict) -> bool:
    return "base_station" in (device.get("kind") or "")


def is_camera(device: dict) -> bool:
    kind = device.get("kind") or ""
    return any(marker in kind for marker in CAMERA_KIND_MARKERS)


async def report_devices(devices: list[dict], dispatcher: EventDispatcher) -> dict[str, int]:
    """Emit one discovery event per device, base station and camera.

    Returns the device count per kind.
    """
    devices = [d for d in devices or [] if isinstance(d, dict)]
    by_kind = Counter(d.get("kind") or "unknown" for d in devices)
    logger.info(f"Ring devices found: {len(devices)}")
    for kind, count in sorted(by_kind.items()):
        logger.info(f"  {kind}: {count}")

    for device in devices:
        logger.info(
            f"Device: {device.get('description') or 'Unknown'} (ID: {device.get('id')}) "
            f"type={device.get('kind') or 'Unknown'} status={device.get('health_status') or 'Unknown'}"
        )
        await dispatcher.emit(DEVICE_FOUND, {
            "id": device.get("id"),
            "description": device.get("description"),
            "kind": device.get("kind"),
            "health_status": device.get("health_status"),
            "battery_life": device.get("battery_life"),
            "firmware_version": device.get("firmware_version"),
        })

    for station in filter(is_base_station, devices):
        logger.info(f"Base station: {station.get('description') or 'Unknown'} (ID: {station.get('id')})")
        await dispatcher.emit(BASE_STATION_FOUND, {
            "id": station.get("id"),
            "description": station.get("description"),
            "location_id": station.get("location_id"),
            "device_id": station.get("device_id"),
            "time_zone": station.get("time_zone"),
            "latitude": station.get("latitude"),
            "longitude": station.get("longitude"),
        })

    for camera in filter(is_camera, devices):
        logger.info(f"Camera: {camera.get('description') or 'Unknown'} (ID: {camera.get('id')})")
        await dispatcher.emit(CAMERA_FOUND, {
            "id": camera.get("id"),
            "description": camera.get("description"),
            "kind": camera.get("kind"),
            "health_status": camera.get("health_status"),
            "battery_life": camera.get("battery_life"),
        })

    return dict(by_kind)
