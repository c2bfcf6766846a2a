"""
Inbound telemetry message shapes.

Devices publish either a single reading::

    {"sensorType": "dht22", "metric": "temperature", "value": 21.5,
     "timestamp": "2025-07-01T10:00:00Z"}

or a batch::

    {"sensorType": "dht22", "readings": [
        {"metric": "temperature", "value": 21.5, "timestamp": "..."},
        {"metric": "humidity", "value": 40, "timestamp": "..."}]}

Both are parsed into one of two message types and normalized into a batch,
so the rest of the pipeline only ever handles ``BatchReadingMessage``.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Union

from sensornet_core.domain.errors import ValidationError
from sensornet_core.domain.models import ReadingValue, SensorReading


@dataclass(frozen=True)
class RawReading:
    metric: str
    value: ReadingValue
    timestamp: Any


@dataclass(frozen=True)
class SingleReadingMessage:
    sensor_type: str
    metric: str
    value: ReadingValue
    timestamp: Any


@dataclass(frozen=True)
class BatchReadingMessage:
    sensor_type: str
    readings: List[RawReading]


TelemetryMessage = Union[SingleReadingMessage, BatchReadingMessage]


def normalize(message: TelemetryMessage) -> BatchReadingMessage:
    """Wrap a single reading into a one-element batch."""
    if isinstance(message, BatchReadingMessage):
        return message
    return BatchReadingMessage(
        sensor_type=message.sensor_type,
        readings=[RawReading(metric=message.metric, value=message.value, timestamp=message.timestamp)],
    )


def parse_message(payload: Any) -> TelemetryMessage:
    """Build a message from a decoded JSON object.

    A ``readings`` key selects the batch shape; anything else must carry the
    single-reading fields.
    """
    if isinstance(payload, (SingleReadingMessage, BatchReadingMessage)):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError("Telemetry message must be a JSON object")

    sensor_type = payload.get("sensorType")
    if not isinstance(sensor_type, str) or not sensor_type:
        raise ValidationError("Missing sensorType in telemetry message")

    if "readings" in payload:
        entries = payload["readings"]
        if not isinstance(entries, list):
            raise ValidationError("readings must be a list")
        return BatchReadingMessage(
            sensor_type=sensor_type,
            readings=[_raw_reading(entry) for entry in entries],
        )

    raw = _raw_reading(payload)
    return SingleReadingMessage(
        sensor_type=sensor_type,
        metric=raw.metric,
        value=raw.value,
        timestamp=raw.timestamp,
    )


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string, epoch seconds or datetime into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValidationError(f"Invalid timestamp: {value!r}") from exc
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ValidationError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_sensor_readings(batch: BatchReadingMessage) -> List[SensorReading]:
    """Parse every timestamp of a batch; one bad timestamp fails the whole batch."""
    return [
        SensorReading(metric=raw.metric, value=raw.value, timestamp=parse_timestamp(raw.timestamp))
        for raw in batch.readings
    ]


def _raw_reading(entry: Any) -> RawReading:
    if not isinstance(entry, dict):
        raise ValidationError("Each reading must be a JSON object")
    metric = entry.get("metric")
    if not isinstance(metric, str) or not metric:
        raise ValidationError("Reading is missing its metric")
    value = entry.get("value")
    if not isinstance(value, (bool, int, float)):
        raise ValidationError(f"Reading {metric!r} must have a numeric or boolean value")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Reading {metric!r} must have a finite value")
    if "timestamp" not in entry:
        raise ValidationError(f"Reading {metric!r} is missing its timestamp")
    return RawReading(metric=metric, value=value, timestamp=entry["timestamp"])
