import logging
from typing import Optional

import requests
from sensornet_core.domain.models import DeviceContext
from sensornet_core.domain.ports import DeviceDirectory

log = logging.getLogger(__name__)


class HttpDeviceDirectory(DeviceDirectory):
    """Resolves a device's room through the devices service.

    Any failure (transport, HTTP status, or an unexpected body) is logged and
    reported as an unknown device.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def lookup(self, device_id: str) -> Optional[DeviceContext]:
        url = f"{self.base_url}/api/devices/{device_id}"
        try:
            r = self._session.get(url, timeout=self.timeout)
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as exc:
            log.error("Device lookup for %s failed: %s", device_id, exc)
            return None

        if not isinstance(body, dict) or not body.get("success"):
            log.error("Devices service returned no data for %s", device_id)
            return None
        data = body.get("data")
        room = data.get("roomId") if isinstance(data, dict) else None
        if not isinstance(room, dict):
            log.error("Device %s has no room assigned", device_id)
            return None

        number = room.get("number")
        return DeviceContext(
            device_id=device_id,
            room_name=room.get("name"),
            room_number=str(number) if number is not None else None,
            floor=room.get("floor"),
        )
