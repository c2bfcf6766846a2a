import logging
from typing import Any, Optional

from sensornet_core.application.alerting import ThresholdAlertEngine
from sensornet_core.application.publish_latest import publish_latest
from sensornet_core.domain.errors import ValidationError
from sensornet_core.domain.messages import normalize, parse_message, to_sensor_readings
from sensornet_core.domain.models import TelemetryRecord
from sensornet_core.domain.ports import Clock, EventChannel, UnitOfWork, utc_now

log = logging.getLogger(__name__)


def ingest_telemetry(
    device_id: str,
    message: Any,
    uow: UnitOfWork,
    *,
    channel: Optional[EventChannel] = None,
    alerts: Optional[ThresholdAlertEngine] = None,
    clock: Clock = utc_now,
) -> TelemetryRecord:
    """Persist one telemetry message, then run the best-effort side effects.

    Parsing is all-or-nothing: if any reading is malformed nothing is stored.
    Once the record is committed, failures in publishing or alerting are
    logged and never reach the caller.
    """
    batch = normalize(parse_message(message))
    if not batch.readings:
        raise ValidationError("No readings provided in batch")
    readings = to_sensor_readings(batch)

    record = TelemetryRecord(
        device_id=device_id,
        sensor_type=batch.sensor_type,
        readings=readings,
        received_at=clock(),
    )
    with uow:
        uow.telemetry_repo().add(record)

    if channel is not None:
        try:
            publish_latest(device_id, batch.sensor_type, readings, channel, clock)
        except Exception:
            log.exception("Failed to publish latest state for device %s", device_id)

    if alerts is not None:
        try:
            alerts.process_batch(device_id, batch.sensor_type, readings)
        except Exception:
            log.exception("Failed to process alerts for device %s", device_id)

    log.info("Processed %d readings for device %s (%s)", len(readings), device_id, batch.sensor_type)
    return record
