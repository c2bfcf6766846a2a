# sensornet_server/adapters/api/schemas.py

from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sensornet_core.domain.models import (
    MaintenanceTicket,
    MetricOverview,
    ReadingStats,
    SensorReading,
    StatusChange,
    SummaryBucket,
    TelemetryRecord,
    TicketPriority,
    TicketStatus,
)

Value = Union[bool, int, float]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Query datetimes without an offset are taken as UTC; others are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ───────── telemetry ─────────
class ReadingOut(CamelModel):
    metric: str
    value: Value
    timestamp: datetime

    @classmethod
    def from_domain(cls, reading: SensorReading) -> "ReadingOut":
        return cls(metric=reading.metric, value=reading.value, timestamp=reading.timestamp)


class TelemetryRecordOut(CamelModel):
    id: Optional[int] = None
    device_id: str
    sensor_type: str
    readings: List[ReadingOut]
    received_at: datetime

    @classmethod
    def from_domain(cls, record: TelemetryRecord) -> "TelemetryRecordOut":
        return cls(
            id=record.id,
            device_id=record.device_id,
            sensor_type=record.sensor_type,
            readings=[ReadingOut.from_domain(r) for r in record.readings],
            received_at=record.received_at,
        )


class StatsOut(CamelModel):
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    count: int
    latest: Value
    latest_timestamp: datetime

    @classmethod
    def from_domain(cls, stats: ReadingStats) -> "StatsOut":
        return cls(
            avg=stats.avg,
            min=stats.min,
            max=stats.max,
            count=stats.count,
            latest=stats.latest,
            latest_timestamp=stats.latest_timestamp,
        )


class SummaryBucketOut(CamelModel):
    bucket: str
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    count: int
    first_timestamp: datetime
    last_timestamp: datetime

    @classmethod
    def from_domain(cls, bucket: SummaryBucket) -> "SummaryBucketOut":
        return cls(
            bucket=bucket.bucket,
            avg=bucket.avg,
            min=bucket.min,
            max=bucket.max,
            count=bucket.count,
            first_timestamp=bucket.first_timestamp,
            last_timestamp=bucket.last_timestamp,
        )


class MetricOverviewOut(CamelModel):
    sensor_type: str
    metric: str
    last_value: Value
    last_timestamp: datetime
    count: int

    @classmethod
    def from_domain(cls, overview: MetricOverview) -> "MetricOverviewOut":
        return cls(
            sensor_type=overview.sensor_type,
            metric=overview.metric,
            last_value=overview.last_value,
            last_timestamp=overview.last_timestamp,
            count=overview.count,
        )


class AlertTestIn(BaseModel):
    message: Optional[str] = Field(None, description="Overrides the default test message")


# ───────── maintenance ─────────
class TicketCreateIn(CamelModel):
    date: datetime
    responsible_id: str
    device_id: str
    priority: Optional[TicketPriority] = None
    description: Optional[str] = None
    damage_image: Optional[str] = None


class TicketUpdateIn(CamelModel):
    date: Optional[datetime] = None
    responsible_id: Optional[str] = None
    device_id: Optional[str] = None
    priority: Optional[TicketPriority] = None
    description: Optional[str] = None
    damage_image: Optional[str] = None


class StatusChangeIn(BaseModel):
    status: TicketStatus
    reason: Optional[str] = None


class CancelIn(BaseModel):
    reason: Optional[str] = None


class TicketOut(CamelModel):
    id: int
    date: datetime
    responsible_id: str
    device_id: str
    status: TicketStatus
    priority: TicketPriority
    description: Optional[str] = None
    damage_image: Optional[str] = None
    approved_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, ticket: MaintenanceTicket) -> "TicketOut":
        return cls(
            id=ticket.id,
            date=ticket.date,
            responsible_id=ticket.responsible_id,
            device_id=ticket.device_id,
            status=ticket.status,
            priority=ticket.priority,
            description=ticket.description,
            damage_image=ticket.damage_image,
            approved_by=ticket.approved_by,
            cancel_reason=ticket.cancel_reason,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class StatusChangeOut(CamelModel):
    from_status: TicketStatus
    to_status: TicketStatus
    changed_by: str
    changed_at: datetime
    reason: Optional[str] = None

    @classmethod
    def from_domain(cls, change: StatusChange) -> "StatusChangeOut":
        return cls(
            from_status=change.from_status,
            to_status=change.to_status,
            changed_by=change.changed_by,
            changed_at=change.changed_at,
            reason=change.reason,
        )
