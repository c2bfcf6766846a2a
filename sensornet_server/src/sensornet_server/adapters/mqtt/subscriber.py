import json
import logging
from typing import Callable, Optional

import paho.mqtt.client as paho
from sensornet_core.domain.errors import ValidationError

log = logging.getLogger(__name__)

TelemetryHandler = Callable[[str, dict], object]


def device_id_from_topic(topic: str) -> Optional[str]:
    """Return the device id from ``devices/{id}/sensors``, or None for any other topic."""
    parts = topic.split("/")
    if len(parts) != 3 or parts[0] != "devices" or parts[2] != "sensors" or not parts[1]:
        return None
    return parts[1]


class TelemetrySubscriber:
    def __init__(
        self,
        *,
        host: str,
        port: int = 1883,
        topic: str = "devices/+/sensors",
        client_id: str,
        handler: TelemetryHandler,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        reconnect_delay: int = 5,
    ):
        self.host = host
        self.port = port
        self.topic = topic
        self.keepalive = keepalive
        self._handler = handler

        self._client = paho.Client(client_id=client_id, clean_session=True)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        # fixed delay, retried forever by the network loop
        self._client.reconnect_delay_set(min_delay=reconnect_delay, max_delay=reconnect_delay)
        if username and password:
            self._client.username_pw_set(username, password)

    def start(self) -> None:
        log.info("Connecting to MQTT broker at %s:%s", self.host, self.port)
        self._client.connect_async(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()

    def stop(self) -> None:
        log.info("Stopping MQTT subscriber")
        self._client.disconnect()
        self._client.loop_stop()

    def _on_connect(self, client, _userdata, _flags, rc):
        if rc:
            log.error("MQTT connect failed, rc=%s", rc)
            return
        log.info("Connected to broker %s:%s", self.host, self.port)
        client.subscribe(self.topic, qos=1)
        log.info("Subscribed to %s", self.topic)

    def _on_disconnect(self, _client, _userdata, rc):
        if rc:
            log.warning("Disconnected from MQTT broker (rc=%s), reconnecting", rc)

    def _on_message(self, _client, _userdata, msg):
        device_id = device_id_from_topic(msg.topic)
        if device_id is None:
            log.warning("Ignoring message on unexpected topic %s", msg.topic)
            return

        try:
            payload = json.loads(msg.payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            log.warning("Dropping non-JSON payload from device %s", device_id)
            return
        if not isinstance(payload, dict) or "sensorType" not in payload:
            log.warning("Dropping payload without sensorType from device %s", device_id)
            return

        try:
            self._handler(device_id, payload)
        except ValidationError as exc:
            log.warning("Rejected telemetry from device %s: %s", device_id, exc)
        except Exception:
            log.exception("Failed to process message on topic %s", msg.topic)
