from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from sensornet_core.domain.errors import ValidationError
from sensornet_core.domain.models import MetricOverview, ReadingStats, SensorReading, SummaryBucket, TelemetryRecord
from sensornet_core.domain.ports import UnitOfWork

MAX_HISTORY_LIMIT = 10000

BUCKET_FORMATS: Dict[str, Callable[[datetime], str]] = {
    "1h": lambda ts: ts.strftime("%Y-%m-%d %H:00"),
    "1d": lambda ts: ts.strftime("%Y-%m-%d"),
    "1w": lambda ts: ts.strftime("%G-W%V"),
}


def get_latest(device_id: str, uow: UnitOfWork, sensor_type: Optional[str] = None) -> Optional[TelemetryRecord]:
    with uow:
        return uow.telemetry_repo().latest(device_id, sensor_type)


def get_history(
    device_id: str,
    uow: UnitOfWork,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    sensor_type: Optional[str] = None,
    metric: Optional[str] = None,
    limit: int = 1000,
    page: int = 1,
) -> List[TelemetryRecord]:
    if not 1 <= limit <= MAX_HISTORY_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")
    if page < 1:
        raise ValidationError("page must be >= 1")

    with uow:
        records = uow.telemetry_repo().history(device_id, start, end, sensor_type, limit, page)

    if metric is None:
        return records
    filtered = []
    for record in records:
        readings = [r for r in record.readings if r.metric == metric]
        if readings:
            filtered.append(
                TelemetryRecord(
                    device_id=record.device_id,
                    sensor_type=record.sensor_type,
                    readings=readings,
                    received_at=record.received_at,
                    id=record.id,
                )
            )
    return filtered


def get_stats(
    device_id: str,
    metric: str,
    uow: UnitOfWork,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    sensor_type: Optional[str] = None,
) -> Optional[ReadingStats]:
    with uow:
        rows = uow.telemetry_repo().readings_for_metric(device_id, metric, start, end, sensor_type)
    if not rows:
        return None

    avg, low, high = _numeric_summary([reading for _, reading in rows])
    _, last = rows[-1]
    return ReadingStats(
        avg=avg,
        min=low,
        max=high,
        count=len(rows),
        latest=last.value,
        latest_timestamp=last.timestamp,
    )


def get_summary(
    device_id: str,
    metric: str,
    interval: str,
    uow: UnitOfWork,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    sensor_type: Optional[str] = None,
) -> List[SummaryBucket]:
    key_for = BUCKET_FORMATS.get(interval)
    if key_for is None:
        raise ValidationError(f"interval must be one of {', '.join(BUCKET_FORMATS)}")

    with uow:
        rows = uow.telemetry_repo().readings_for_metric(device_id, metric, start, end, sensor_type)

    groups: Dict[str, List[Tuple[datetime, SensorReading]]] = {}
    for received_at, reading in rows:
        groups.setdefault(key_for(received_at), []).append((received_at, reading))

    buckets = []
    for key in sorted(groups):
        members = groups[key]
        avg, low, high = _numeric_summary([reading for _, reading in members])
        received = [received_at for received_at, _ in members]
        buckets.append(
            SummaryBucket(
                bucket=key,
                avg=avg,
                min=low,
                max=high,
                count=len(members),
                first_timestamp=min(received),
                last_timestamp=max(received),
            )
        )
    return buckets


def get_available_metrics(
    device_id: str, uow: UnitOfWork, sensor_type: Optional[str] = None
) -> List[MetricOverview]:
    with uow:
        return uow.telemetry_repo().metric_overview(device_id, sensor_type)


def _numeric_summary(readings: List[SensorReading]) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    values = [reading.value for reading in readings if reading.is_numeric]
    if not values:
        return None, None, None
    return sum(values) / len(values), min(values), max(values)
