"""
Ring API Client
===============
Thin async wrapper over the Ring REST endpoints the bridge reads.

The live "push" subjects on cameras and alarm panels are fed by a
background refresh of the device list, the active dings and the location
mode, so subscribers see the same interface whether pushes come from here
or from a richer client.
"""

import asyncio
import logging
import uuid
from collections import deque
from typing import Any, Optional

import httpx

from clients.observable import Subject
from config.settings import CAMERA_STATUS_POLLING_SECONDS, LOCATION_MODE_POLLING_SECONDS

logger = logging.getLogger(__name__)

OAUTH_URL = "https://oauth.ring.com/oauth/token"
CLIENTS_API = "https://api.ring.com/clients_api"
RING_DEVICES_URL = f"{CLIENTS_API}/ring_devices"
RING_DEVICES_V2_URL = "https://api.ring.com/devices/v2/devices"
ACTIVE_DINGS_URL = f"{CLIENTS_API}/dings/active"
PROFILE_URL = f"{CLIENTS_API}/profile"
HISTORY_URL = f"{CLIENTS_API}/doorbots/history"
LOCATIONS_URL = "https://app.ring.com/rhq/v1/devices/v1/locations"
LOCATION_MODE_URL = "https://app.ring.com/api/v1/mode/location/{location_id}"

CLIENT_ID = "ring_official_android"
USER_AGENT = "ring-event-bridge"

# ring_devices category -> device_type
CAMERA_CATEGORIES = {
    "doorbots": "doorbot",
    "authorized_doorbots": "doorbot",
    "stickup_cams": "stickup_cam",
}

SEEN_DING_MEMORY = 200


class RingApiError(Exception):
    """Transport or HTTP failure talking to the Ring API."""


class RingAuthError(RingApiError):
    """No usable access token could be obtained."""


def flatten_history_entry(entry: dict) -> dict:
    """Lift the nested doorbot id/description to the top-level keys the sweep reads."""
    doorbot = entry.get("doorbot") or {}
    flat = dict(entry)
    flat.setdefault("doorbot_id", doorbot.get("id"))
    flat.setdefault("doorbot_description", doorbot.get("description"))
    return flat


class RingCamera:
    def __init__(self, client: "RingClient", data: dict, device_type: str):
        self.client = client
        self.data = data
        self.device_type = device_type
        self.is_doorbot = device_type == "doorbot"
        self.has_motion = False
        self.last_motion: Optional[dict] = None
        self._seen_dings: deque = deque(maxlen=SEEN_DING_MEMORY)

        self.on_data = Subject(f"{self.name}.on_data")
        self.on_active_dings = Subject(f"{self.name}.on_active_dings")
        self.on_motion_detected = Subject(f"{self.name}.on_motion_detected")
        self.on_doorbell_pressed = Subject(f"{self.name}.on_doorbell_pressed")

    @property
    def id(self):
        return self.data.get("id")

    @property
    def name(self) -> str:
        return self.data.get("description") or str(self.data.get("id"))

    @property
    def location_id(self):
        return self.data.get("location_id")

    @property
    def battery_level(self):
        return self.data.get("battery_life")

    @property
    def has_light(self) -> bool:
        return self.data.get("led_status") is not None

    @property
    def has_siren(self) -> bool:
        return self.data.get("siren_status") is not None

    @property
    def is_offline(self) -> bool:
        return (self.data.get("alerts") or {}).get("connection") == "offline"

    @property
    def is_charging(self) -> bool:
        return bool(self.data.get("external_connection"))

    async def get_health(self) -> dict:
        response = await self.client.request(f"{CLIENTS_API}/doorbots/{self.id}/health")
        return response.get("device_health", response) if isinstance(response, dict) else {}

    async def get_snapshot(self) -> bytes:
        return await self.client.request(f"{CLIENTS_API}/snapshots/image/{self.id}")

    async def get_events(self, kind: Optional[str] = None, limit: int = 10) -> list[dict]:
        events = await self.client.request(
            f"{CLIENTS_API}/doorbots/{self.id}/history", params={"limit": limit}
        )
        if not isinstance(events, list):
            return []
        return [e for e in events if kind is None or e.get("kind") == kind]

    def update(self, data: dict):
        self.data = data
        self.on_data.emit(data)

    def process_dings(self, dings: list[dict]):
        """Fan this camera's active dings out to its push subjects."""
        self.on_active_dings.emit(dings)

        motion = [d for d in dings if d.get("kind") == "motion"]
        was_moving = self.has_motion
        self.has_motion = bool(motion)
        if motion:
            self.last_motion = motion[0]
        if self.has_motion != was_moving:
            self.on_motion_detected.emit(self.has_motion)

        for ding in dings:
            ding_id = ding.get("id_str") or ding.get("id")
            if ding.get("kind") != "ding" or ding_id in self._seen_dings:
                continue
            self._seen_dings.append(ding_id)
            self.on_doorbell_pressed.emit(ding)


class LocationModePanel:
    """Alarm mode of a location, exposed as a security-panel device."""

    device_type = "security-panel"

    def __init__(self, location_id: str, name: str, mode: Optional[str] = None):
        self.id = location_id
        self.name = name
        self.mode = mode
        self.on_data = Subject(f"{name}.mode")

    def update_mode(self, mode: Optional[str]):
        if mode is None:
            return
        self.mode = mode
        self.on_data.emit({"mode": mode})


class RingLocation:
    def __init__(self, client: "RingClient", data: dict, cameras: list[RingCamera]):
        self.client = client
        self.data = data
        self.cameras = cameras
        self.panel = LocationModePanel(self.id, self.name)

    @property
    def id(self):
        return self.data.get("location_id") or self.data.get("id")

    @property
    def name(self) -> str:
        return self.data.get("name") or str(self.id)

    async def get_devices(self) -> list:
        devices: list = list(self.cameras)
        if self.panel.mode is not None:
            devices.append(self.panel)
        return devices

    async def get_history(self, limit: int = 10) -> list[dict]:
        history = await self.client.request(HISTORY_URL, params={"limit": limit})
        if not isinstance(history, list):
            return []
        camera_ids = {camera.id for camera in self.cameras}
        entries = [flatten_history_entry(e) for e in history if isinstance(e, dict)]
        return [e for e in entries if e.get("doorbot_id") in camera_ids]

    async def refresh_mode(self):
        response = await self.client.request(LOCATION_MODE_URL.format(location_id=self.id))
        if isinstance(response, dict):
            self.panel.update_mode(response.get("mode"))


class RingClient:
    def __init__(
        self,
        refresh_token: str,
        location_ids: Optional[list[str]] = None,
        camera_status_polling: float = CAMERA_STATUS_POLLING_SECONDS,
        location_mode_polling: float = LOCATION_MODE_POLLING_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        self.refresh_token = refresh_token
        self.location_ids = location_ids
        self.camera_status_polling = camera_status_polling
        self.location_mode_polling = location_mode_polling
        self.hardware_id = str(uuid.uuid4())
        self.access_token: Optional[str] = None
        self.locations: list[RingLocation] = []
        self.cameras: dict[Any, RingCamera] = {}
        self._http = httpx.AsyncClient(
            timeout=timeout, transport=transport, headers={"User-Agent": USER_AGENT}
        )
        self._refresh_tasks: list[asyncio.Task] = []

    # -- auth / raw requests ---------------------------------------------

    async def authenticate(self) -> str:
        """Exchange the refresh token for an access token."""
        try:
            response = await self._http.post(
                OAUTH_URL,
                json={
                    "client_id": CLIENT_ID,
                    "scope": "client",
                    "grant_type": "refresh_token",
                    "refresh_token": self.refresh_token,
                },
                headers={"hardware_id": self.hardware_id, "2fa-support": "true"},
            )
        except httpx.HTTPError as e:
            raise RingAuthError(f"Ring API authentication error: {e}") from e

        if response.status_code != 200:
            raise RingAuthError(f"Ring API authentication failed with HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as e:
            raise RingAuthError(f"Ring API authentication returned malformed JSON: {e}") from e
        if not isinstance(body, dict) or not body.get("access_token"):
            raise RingAuthError("Ring API authentication returned no access token")

        self.access_token = body["access_token"]
        # Ring rotates refresh tokens on every exchange
        self.refresh_token = body.get("refresh_token", self.refresh_token)
        logger.info("Successfully authenticated with Ring API")
        return self.access_token

    async def request(self, url: str, method: str = "GET", params: Optional[dict] = None,
                      json: Optional[dict] = None, _retry: bool = True):
        if self.access_token is None:
            await self.authenticate()
        try:
            response = await self._http.request(
                method, url, params=params, json=json,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "hardware_id": self.hardware_id,
                },
            )
        except httpx.HTTPError as e:
            raise RingApiError(f"{method} {url} failed: {e}") from e

        if response.status_code == 401 and _retry:
            self.access_token = None
            return await self.request(url, method, params=params, json=json, _retry=False)
        if not 200 <= response.status_code < 300:
            raise RingApiError(f"{method} {url} returned HTTP {response.status_code}")

        if "json" in response.headers.get("content-type", ""):
            try:
                return response.json()
            except ValueError as e:
                raise RingApiError(f"{method} {url} returned malformed JSON: {e}") from e
        return response.content

    # -- account / discovery ---------------------------------------------

    async def get_profile(self) -> dict:
        response = await self.request(PROFILE_URL)
        return response.get("profile", response) if isinstance(response, dict) else {}

    async def _ring_devices(self) -> dict:
        response = await self.request(RING_DEVICES_URL)
        return response if isinstance(response, dict) else {}

    async def get_locations(self) -> list[RingLocation]:
        response = await self.request(LOCATIONS_URL)
        raw_locations = (response.get("user_locations") or []) if isinstance(response, dict) else []
        raw_locations = [loc for loc in raw_locations if isinstance(loc, dict)]
        if self.location_ids:
            raw_locations = [
                loc for loc in raw_locations if str(loc.get("location_id")) in self.location_ids
            ]

        devices = await self._ring_devices()
        self.cameras = {}
        for category, device_type in CAMERA_CATEGORIES.items():
            for data in devices.get(category) or []:
                if not isinstance(data, dict):
                    continue
                camera = RingCamera(self, data, device_type)
                self.cameras[camera.id] = camera

        self.locations = []
        for raw in raw_locations:
            location_id = raw.get("location_id")
            cameras = [c for c in self.cameras.values() if c.location_id == location_id]
            self.locations.append(RingLocation(self, raw, cameras))

        for location in self.locations:
            try:
                await location.refresh_mode()
            except RingApiError as e:
                logger.debug(f"No alarm mode for {location.name}: {e}")
        return self.locations

    async def get_devices_directly(self) -> list[dict]:
        """Flat device list from the raw endpoints, for accounts without locations."""
        devices: list[dict] = []
        try:
            categories = await self._ring_devices()
            for items in categories.values():
                if isinstance(items, list):
                    devices.extend(d for d in items if isinstance(d, dict))
        except RingApiError as e:
            logger.debug(f"Error fetching from main devices endpoint: {e}")

        if not devices:
            try:
                response = await self.request(RING_DEVICES_V2_URL)
                if isinstance(response, dict) and isinstance(response.get("devices"), list):
                    devices = response["devices"]
            except RingApiError as e:
                logger.debug(f"Error fetching from v2 devices endpoint: {e}")
        return devices

    async def get_active_dings(self) -> list[dict]:
        try:
            response = await self.request(ACTIVE_DINGS_URL)
        except RingApiError as e:
            logger.debug(f"Error polling active dings: {e}")
            return []
        if isinstance(response, list):
            logger.debug(f"Found {len(response)} active dings via direct API call")
            return response
        return []

    # -- push emulation ----------------------------------------------------

    async def refresh_devices(self):
        """Reload device data and active dings and push them to subscribers."""
        devices = await self._ring_devices()
        for category in CAMERA_CATEGORIES:
            for data in devices.get(category) or []:
                if not isinstance(data, dict):
                    continue
                camera = self.cameras.get(data.get("id"))
                if camera is not None:
                    camera.update(data)

        dings = [d for d in await self.get_active_dings() if isinstance(d, dict)]
        for camera in self.cameras.values():
            camera.process_dings([d for d in dings if d.get("doorbot_id") == camera.id])

    async def refresh_modes(self):
        for location in self.locations:
            try:
                await location.refresh_mode()
            except RingApiError as e:
                logger.debug(f"Refreshing mode for {location.name} failed: {e}")

    async def _refresh_loop(self, refresh, interval: float, what: str):
        while True:
            await asyncio.sleep(interval)
            try:
                await refresh()
            except RingApiError as e:
                logger.warning(f"Refreshing {what} failed: {e}")
            except Exception as e:
                logger.error(f"Error refreshing {what}: {e}")

    def start_refresh(self):
        if self._refresh_tasks:
            return
        self._refresh_tasks = [
            asyncio.create_task(
                self._refresh_loop(self.refresh_devices, self.camera_status_polling, "camera status")
            ),
            asyncio.create_task(
                self._refresh_loop(self.refresh_modes, self.location_mode_polling, "location modes")
            ),
        ]

    def stop_refresh(self):
        for task in self._refresh_tasks:
            task.cancel()
        self._refresh_tasks = []

    async def aclose(self):
        self.stop_refresh()
        await self._http.aclose()
