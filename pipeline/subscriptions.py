"""
Subscription Ingestion
======================
Attaches push listeners to cameras and alarm panels and turns every push
into a canonical event for the dispatcher.

The listeners overlap on purpose: the same press or motion can arrive on
several of them, and the admission gate collapses the repeats. Each
listener keeps its own state and is attached on its own, so a device that
lacks one capability still gets the others (and the polling sweep).
"""

import logging

from pipeline.dispatch import EventDispatcher
from pipeline.events import iso_from, iso_now

logger = logging.getLogger(__name__)

DOORBELL_PRESSED = "doorbell_pressed"
MOTION_DETECTED = "motion_detected"
ACTIVE_DING = "active_ding"
CAMERA_STATUS_UPDATE = "camera_status_update"
ALARM_MODE_STATE = "alarm_mode_state"
ALARM_MODE_CHANGED = "alarm_mode_changed"

MOTION_KINDS = ("motion", "motion_detected")
ALARM_DEVICE_TYPE = "security-panel"


def data_signals_motion(data) -> bool:
    """True if any of the known motion fields in a data push says motion."""
    if not isinstance(data, dict):
        return False
    return (
        data.get("motion") is True
        or data.get("motion_status") == "detected"
        or data.get("motion_detected") is True
        or data.get("motion_state") == "active"
    )


class CameraSubscriptions:
    """Push listeners for one camera."""

    def __init__(self, camera, location, dispatcher: EventDispatcher):
        self.camera = camera
        self.location = location
        self.dispatcher = dispatcher
        self.last_motion_state = False
        self.attached: list[str] = []

    @property
    def camera_name(self) -> str:
        return getattr(self.camera, "name", None) or str(getattr(self.camera, "id", "unknown"))

    def _base(self) -> dict:
        return {
            "cameraName": self.camera_name,
            "cameraId": getattr(self.camera, "id", None),
            "locationName": getattr(self.location, "name", None),
        }

    def _subscribe(self, channel_name: str, callback) -> bool:
        channel = getattr(self.camera, channel_name, None)
        if channel is None or not hasattr(channel, "subscribe"):
            logger.info(f"Camera {self.camera_name} does not support {channel_name} events")
            return False
        try:
            channel.subscribe(callback)
        except Exception as e:
            logger.warning(f"Could not subscribe to {channel_name} for {self.camera_name}: {e}")
            return False
        self.attached.append(channel_name)
        logger.info(f"Subscribed to {channel_name} for {self.camera_name}")
        return True

    def attach(self) -> list[str]:
        """Attach every listener the camera supports. Returns the channel names."""
        logger.info(f"Setting up camera: {self.camera_name}")
        if getattr(self.camera, "is_doorbot", False):
            self._subscribe("on_doorbell_pressed", self.on_doorbell_pressed)
        self._subscribe("on_motion_detected", self.on_motion_detected)
        self._subscribe("on_active_dings", self.on_active_dings)
        self._subscribe("on_data", self.on_data)
        return self.attached

    # -- listeners -------------------------------------------------------

    def on_doorbell_pressed(self, ding):
        ding = ding or {}
        logger.info(f"Doorbell pressed at {self.camera_name}!")
        data = {
            **self._base(),
            "batteryLevel": getattr(self.camera, "battery_level", None),
            "timestamp": iso_from(ding.get("created_at")),
            "dingId": ding.get("id_str") or ding.get("id"),
            "kind": ding.get("kind"),
            "snapshotUrl": ding.get("snapshot_url"),
            "detectionMethod": "onDoorbellPressed",
        }
        return self.dispatcher.emit(DOORBELL_PRESSED, data)

    def on_motion_detected(self, motion_detected):
        if not motion_detected:
            return None
        logger.info(f"Motion detected at {self.camera_name}!")
        data = {
            **self._base(),
            "batteryLevel": getattr(self.camera, "battery_level", None),
            "timestamp": iso_now(),
            "lastMotion": getattr(self.camera, "last_motion", None),
            "detectionMethod": "onMotionDetected",
        }
        return self.dispatcher.emit(MOTION_DETECTED, data)

    def on_active_dings(self, dings):
        return self._emit_active_dings(list(dings or []))

    async def _emit_active_dings(self, dings: list):
        for ding in dings:
            if not isinstance(ding, dict):
                logger.debug(f"Skipping malformed active ding for {self.camera_name}: {ding!r}")
                continue
            kind = ding.get("kind")
            logger.info(f"Active event at {self.camera_name}: {kind}")
            data = {
                **self._base(),
                "dingId": ding.get("id_str") or ding.get("id"),
                "kind": kind,
                "timestamp": iso_from(ding.get("created_at")),
                "snapshotUrl": ding.get("snapshot_url"),
                "detectionMethod": "onActiveDings",
            }
            await self.dispatcher.emit(ACTIVE_DING, data)

            # Same push feeds the motion stream too; separate identity
            if kind in MOTION_KINDS:
                logger.info(f"Motion detected at {self.camera_name} (via ding event)!")
                await self.dispatcher.emit(
                    MOTION_DETECTED, {**data, "detectionMethod": "onActiveDings_motion"}
                )

    def on_data(self, data):
        logger.debug(f"Received data update for {self.camera_name}: {data}")
        events = []

        has_motion = data_signals_motion(data)
        if has_motion and not self.last_motion_state:
            logger.info(f"Motion detected at {self.camera_name} (via data change)!")
            self.last_motion_state = True
            events.append((MOTION_DETECTED, {
                **self._base(),
                "batteryLevel": getattr(self.camera, "battery_level", None),
                "timestamp": iso_now(),
                "detectionMethod": "onData",
            }))
        elif isinstance(data, dict) and data.get("motion") is False:
            self.last_motion_state = False

        events.append((CAMERA_STATUS_UPDATE, {
            **self._base(),
            "batteryLevel": getattr(self.camera, "battery_level", None),
            "hasLight": getattr(self.camera, "has_light", None),
            "hasSiren": getattr(self.camera, "has_siren", None),
            "isOffline": getattr(self.camera, "is_offline", None),
            "isCharging": getattr(self.camera, "is_charging", None),
            "hasMotion": isinstance(data, dict) and data.get("motion") is True,
            "timestamp": iso_now(),
        }))
        return self._emit_all(events)

    async def _emit_all(self, events: list[tuple[str, dict]]):
        for event_type, data in events:
            await self.dispatcher.emit(event_type, data)


class AlarmSubscription:
    """Mode-change listener for one alarm panel."""

    def __init__(self, alarm, location, dispatcher: EventDispatcher):
        self.alarm = alarm
        self.location = location
        self.dispatcher = dispatcher
        self.previous_mode = getattr(alarm, "mode", None)

    def _base(self) -> dict:
        return {
            "locationName": getattr(self.location, "name", None),
            "alarmId": getattr(self.alarm, "id", None),
        }

    async def attach(self) -> bool:
        """Send the initial mode snapshot and subscribe to mode pushes."""
        name = getattr(self.alarm, "name", None) or getattr(self.alarm, "id", "alarm")
        channel = getattr(self.alarm, "on_data", None)
        if channel is None or not hasattr(channel, "subscribe"):
            logger.info(f"Alarm device {name} does not support on_data events")
            return False

        logger.debug(f"Initial alarm mode for {name}: {self.previous_mode or 'unknown'}")
        await self.dispatcher.emit(ALARM_MODE_STATE, {
            **self._base(),
            "mode": self.previous_mode,
            "timestamp": iso_now(),
            "initial": True,
        })

        try:
            channel.subscribe(self.on_data)
        except Exception as e:
            logger.warning(f"Could not subscribe to alarm events for {name}: {e}")
            return False
        logger.info(f"Subscribed to alarm mode changes for {name}")
        return True

    def on_data(self, data):
        if not isinstance(data, dict) or "mode" not in data:
            return None
        mode = data["mode"]
        if mode == self.previous_mode:
            return None

        logger.info(f"Alarm mode changed from {self.previous_mode or 'unknown'} to {mode}")
        event = {
            **self._base(),
            "mode": mode,
            "previousMode": self.previous_mode,
            "timestamp": iso_now(),
        }
        self.previous_mode = mode
        return self.dispatcher.emit(ALARM_MODE_CHANGED, event)


async def attach_location(location, dispatcher: EventDispatcher) -> dict:
    """Wire every camera and alarm panel of a location.

    Returns the listener objects so they stay referenced for the process
    lifetime.
    """
    logger.info(f"Setting up listeners for location: {getattr(location, 'name', '?')}")
    listeners = {"cameras": [], "alarms": []}

    for camera in getattr(location, "cameras", None) or []:
        subscriptions = CameraSubscriptions(camera, location, dispatcher)
        subscriptions.attach()
        listeners["cameras"].append(subscriptions)

    try:
        devices = await location.get_devices()
    except Exception as e:
        logger.warning(f"Error accessing alarm devices at {getattr(location, 'name', '?')}: {e}")
        return listeners

    alarms = [d for d in devices if getattr(d, "device_type", None) == ALARM_DEVICE_TYPE]
    if not alarms:
        logger.info(f"No alarm devices found at {getattr(location, 'name', '?')}")
    for alarm in alarms:
        subscription = AlarmSubscription(alarm, location, dispatcher)
        await subscription.attach()
        listeners["alarms"].append(subscription)
    return listeners
