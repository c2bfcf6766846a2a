import logging
from typing import Iterable

from sensornet_core.domain.models import LatestSnapshot, LatestValue, SensorReading, SensorReadingEvent
from sensornet_core.domain.ports import Clock, EventChannel, utc_now

log = logging.getLogger(__name__)


def build_latest_snapshot(readings: Iterable[SensorReading]) -> LatestSnapshot:
    snapshot: LatestSnapshot = {}
    for reading in readings:
        # later readings of the same metric overwrite earlier ones
        snapshot[reading.metric] = LatestValue(value=reading.value, timestamp=reading.timestamp.isoformat())
    return snapshot


def publish_latest(
    device_id: str,
    sensor_type: str,
    readings: Iterable[SensorReading],
    channel: EventChannel,
    clock: Clock = utc_now,
) -> None:
    event = SensorReadingEvent(
        device_id=device_id,
        sensor_type=sensor_type,
        readings=build_latest_snapshot(readings),
        emitted_at=clock(),
    )
    if not channel.publish(event.to_dict()):
        log.warning("Latest-state event for device %s dropped, channel not ready", device_id)
