import logging
from datetime import datetime
from typing import Optional

import requests
from sensornet_core.domain.ports import AlertSink

log = logging.getLogger(__name__)


class WebhookAlertSink(AlertSink):
    """Posts alerts to an incoming-webhook URL (IFTTT style ``value1`` field)."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, message: str, device_id: str, timestamp: datetime) -> None:
        payload = {
            "value1": message,
            "alert": message,
            "deviceId": device_id,
            "timestamp": timestamp.isoformat(),
        }
        r = self._session.post(self.url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        log.debug("Webhook accepted alert for %s (HTTP %s)", device_id, r.status_code)
