import logging
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional, Tuple

from sensornet_core.application.cooldown import CooldownTracker
from sensornet_core.domain.models import SensorReading
from sensornet_core.domain.ports import AlertSink, DeviceDirectory

log = logging.getLogger(__name__)

# sensor type -> metric -> value above which an alert fires
DEFAULT_THRESHOLDS: Dict[str, Dict[str, float]] = {
    "mq4": {"gas": 50},
    "dht22": {"temperature": 25},
}

# (sensor type, metric) -> message; anything else gets the generic text
_ALERT_MESSAGES: Dict[Tuple[str, str], str] = {
    ("mq4", "gas"): "Danger! High gas level detected in {room}",
    ("dht22", "temperature"): "Alert! Excessive temperature in {room}",
    ("dht22", "humidity"): "Warning! Critical humidity in {room}",
}

TEST_ALERT_MESSAGE = "Test alert"


def format_alert_message(sensor_type: str, metric: str, room_label: str) -> str:
    template = _ALERT_MESSAGES.get((sensor_type, metric))
    if template is None:
        return f"Alert! Sensor {sensor_type} exceeds limits in {room_label}"
    return template.format(room=room_label)


def cooldown_key(device_id: str, sensor_type: str, metric: str) -> str:
    return f"{device_id}|{sensor_type}|{metric}"


class ThresholdAlertEngine:
    def __init__(
        self,
        directory: DeviceDirectory,
        sink: AlertSink,
        cooldowns: CooldownTracker,
        thresholds: Optional[Mapping[str, Mapping[str, float]]] = None,
    ):
        self.directory = directory
        self.sink = sink
        self.cooldowns = cooldowns
        self.thresholds = DEFAULT_THRESHOLDS if thresholds is None else thresholds

    def threshold_for(self, sensor_type: str, metric: str) -> Optional[float]:
        return self.thresholds.get(sensor_type, {}).get(metric)

    def check_and_alert(
        self,
        device_id: str,
        sensor_type: str,
        metric: str,
        value: float,
        timestamp: datetime,
    ) -> None:
        threshold = self.threshold_for(sensor_type, metric)
        if threshold is None:
            return
        if value <= threshold:
            return

        key = cooldown_key(device_id, sensor_type, metric)
        if self.cooldowns.check(key):
            log.info("Alert cooldown active for %s, skipping", key)
            return

        context = self.directory.lookup(device_id)
        if context is None:
            log.error("Could not resolve room for device %s, alert dropped", device_id)
            return

        message = format_alert_message(sensor_type, metric, context.room_label)
        try:
            self.sink.send(message, device_id, timestamp)
            log.warning(
                "Alert sent for device %s (%s/%s): %s > %s", device_id, sensor_type, metric, value, threshold
            )
        except Exception:
            log.exception("Failed to dispatch alert for device %s", device_id)

        # recorded even when dispatch failed, so a flaky sink is not hammered
        self.cooldowns.record(key)

    def process_batch(self, device_id: str, sensor_type: str, readings: Iterable[SensorReading]) -> None:
        for reading in readings:
            if not reading.is_numeric:
                continue
            try:
                self.check_and_alert(device_id, sensor_type, reading.metric, reading.value, reading.timestamp)
            except Exception:
                log.exception("Alert check failed for %s/%s on device %s", sensor_type, reading.metric, device_id)

    def send_test_alert(self, device_id: str, message: Optional[str] = None, *, timestamp: datetime) -> None:
        """Dispatch straight to the sink, bypassing thresholds and cooldown."""
        self.sink.send(message or TEST_ALERT_MESSAGE, device_id, timestamp)
        log.info("Test alert sent for device %s", device_id)
