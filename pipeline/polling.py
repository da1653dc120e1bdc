"""
Polling Sweep
=============
Fixed-interval fallback that re-reads recent activity from the Ring API
and pushes it through the same dispatcher as the live subscriptions.

One tick walks three independent sources: the account-wide active dings,
each location's recent history, and each camera's health and motion
events. A failure in one location or camera is logged and the tick moves
on; the admission gate drops whatever the push feed already delivered.
"""

import asyncio
import logging
import time
from typing import Optional

from config.settings import HISTORY_LIMIT, POLLING_INTERVAL_SECONDS
from pipeline.dispatch import EventDispatcher
from pipeline.events import iso_from, iso_now
from pipeline.subscriptions import DOORBELL_PRESSED, MOTION_DETECTED

logger = logging.getLogger(__name__)

CAMERA_DEVICE_TYPES = ("doorbot", "floodlight_v2", "stickup_cam")
UNKNOWN_EVENT = "unknown_event"


def classify_kind(kind: Optional[str]) -> str:
    """Map a Ring ding/history kind onto an event type."""
    if kind == "motion":
        return MOTION_DETECTED
    if kind == "ding":
        return DOORBELL_PRESSED
    return kind or UNKNOWN_EVENT


def has_usable_id(entry: dict) -> bool:
    return bool(entry.get("id") or entry.get("ding_id_str") or entry.get("doorbot_id"))


def camera_signals_motion(camera, health) -> bool:
    data = getattr(camera, "data", None)
    return bool(
        getattr(camera, "has_motion", False)
        or (isinstance(data, dict) and data.get("motion"))
        or (isinstance(health, dict) and health.get("motion"))
        or getattr(camera, "motion", None) is True
    )


class PollingSweep:
    def __init__(
        self,
        client,
        locations: list,
        dispatcher: EventDispatcher,
        interval: float = POLLING_INTERVAL_SECONDS,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.client = client
        self.locations = list(locations)
        self.dispatcher = dispatcher
        self.interval = interval
        self.history_limit = history_limit
        self.state = "idle"
        self.ticks = 0
        self._timer: Optional[asyncio.Task] = None
        self._running: set[asyncio.Task] = set()

    # -- lifecycle -------------------------------------------------------

    def start(self):
        """Run one tick now and then one every ``interval`` seconds."""
        if not self.locations:
            logger.warning("No Ring locations found: polling active dings only")
        logger.info(f"Starting event polling every {self.interval:g} seconds")
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._timer_loop())

    def stop(self):
        """Cancel future ticks. A tick already running is left to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _timer_loop(self):
        while True:
            task = asyncio.create_task(self.tick())
            self._running.add(task)
            task.add_done_callback(self._running.discard)
            await asyncio.sleep(self.interval)

    # -- one tick --------------------------------------------------------

    async def tick(self):
        self.state = "running"
        self.ticks += 1
        try:
            await self.poll_active_dings()
            logger.debug("Polling for Ring events...")
            for location in self.locations:
                await self.poll_location_history(location)
                await self.poll_location_cameras(location)
        except Exception as e:
            logger.error(f"Error in polling tick: {e}")
        finally:
            self.state = "idle"

    async def poll_active_dings(self):
        try:
            dings = await self.client.get_active_dings()
        except Exception as e:
            logger.debug(f"Error polling active dings: {e}")
            return

        for ding in dings or []:
            if not isinstance(ding, dict) or ding.get("kind") not in ("motion", "ding"):
                continue
            logger.info(
                f"Motion/Ding detected via direct API polling: {ding['kind']} "
                f"at device {ding.get('doorbot_description')}"
            )
            data = {
                "id": ding.get("id_str") or ding.get("id"),
                "deviceName": ding.get("doorbot_description"),
                "deviceId": ding.get("doorbot_id"),
                "kind": ding["kind"],
                "timestamp": iso_from(ding.get("created_at")),
                "detectionMethod": "direct_api_polling",
                "dingData": ding,
            }
            await self.dispatcher.emit(classify_kind(ding["kind"]), data)

    async def poll_location_history(self, location):
        name = getattr(location, "name", "?")
        try:
            history = await location.get_history(limit=self.history_limit)
        except Exception as e:
            logger.error(f"Error polling history for {name}: {e}")
            return

        if not history:
            logger.debug(f"No history events found for {name}")
            return
        logger.debug(f"Found {len(history)} history events for {name}")

        for entry in history:
            if not isinstance(entry, dict) or not has_usable_id(entry):
                logger.debug(f"Skipping event with insufficient properties: {entry!r}")
                continue

            event_type = classify_kind(entry.get("kind"))
            if event_type in (MOTION_DETECTED, DOORBELL_PRESSED):
                logger.info(
                    f"{event_type} at {entry.get('doorbot_description') or 'unknown device'} "
                    f"(via history polling)"
                )
            data = {
                "id": entry.get("id"),
                "dingId": entry.get("ding_id_str"),
                "deviceId": entry.get("doorbot_id"),
                "locationName": name,
                "deviceName": entry.get("doorbot_description") or "unknown",
                "kind": entry.get("kind"),
                "createdAt": entry.get("created_at"),
                "timestamp": iso_now(),
                "detectionMethod": "history_polling",
                "eventData": entry,
            }
            await self.dispatcher.emit(event_type, data)

    async def _cameras_for(self, location) -> list:
        cameras = getattr(location, "cameras", None)
        if cameras is not None:
            return list(cameras)
        devices = await location.get_devices()
        return [d for d in devices if getattr(d, "device_type", None) in CAMERA_DEVICE_TYPES]

    async def poll_location_cameras(self, location):
        name = getattr(location, "name", "?")
        try:
            cameras = await self._cameras_for(location)
        except Exception as e:
            logger.debug(f"Error getting cameras for {name}: {e}")
            return

        logger.debug(f"Found {len(cameras)} cameras in location {name}")
        for camera in cameras:
            await self.check_camera_health(camera, location)
            await self.check_camera_events(camera, location)

    async def check_camera_health(self, camera, location):
        camera_name = getattr(camera, "name", None) or str(camera.id)
        try:
            health = await camera.get_health()
            logger.debug(f"Camera health for {camera_name}: {health}")

            try:
                snapshot = await camera.get_snapshot()
                if snapshot:
                    logger.debug(f"Got snapshot from {camera_name}")
            except Exception as e:
                logger.debug(f"Could not get snapshot from {camera_name}: {e}")

            if not camera_signals_motion(camera, health):
                return

            logger.info(f"Motion detected at {camera_name} (via direct camera check)!")
            # Fresh id per tick: long motion repeats once the window lapses
            data = {
                "id": f"direct-motion-{camera.id}-{int(time.time() * 1000)}",
                "cameraName": camera_name,
                "cameraId": camera.id,
                "locationName": getattr(location, "name", None),
                "timestamp": iso_now(),
                "detectionMethod": "direct_camera_check",
            }
            await self.dispatcher.emit(MOTION_DETECTED, data)
        except Exception as e:
            logger.debug(f"Error checking camera {camera_name}: {e}")

    async def check_camera_events(self, camera, location):
        camera_name = getattr(camera, "name", None) or str(camera.id)
        try:
            motion_events = await camera.get_events(kind="motion")
        except Exception as e:
            logger.debug(f"Could not get camera events for {camera_name}: {e}")
            return
        if not motion_events:
            return

        logger.debug(f"Found {len(motion_events)} motion events for {camera_name}")
        for occurrence in motion_events:
            created_at = occurrence.get("created_at") if isinstance(occurrence, dict) else None
            if not created_at:
                logger.debug(f"Skipping motion event without created_at for {camera_name}")
                continue
            logger.info(f"Motion detected at {camera_name} (via event history)!")
            data = {
                "id": f"event-motion-{camera.id}-{created_at}",
                "cameraName": camera_name,
                "cameraId": camera.id,
                "locationName": getattr(location, "name", None),
                "timestamp": iso_now(),
                "eventCreatedAt": created_at,
                "detectionMethod": "camera_events_history",
            }
            await self.dispatcher.emit(MOTION_DETECTED, data)
