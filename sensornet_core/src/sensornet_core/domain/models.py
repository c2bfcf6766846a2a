from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

ReadingValue = Union[bool, int, float]


@dataclass(frozen=True)
class SensorReading:
    metric: str
    value: ReadingValue
    timestamp: datetime

    @property
    def is_numeric(self) -> bool:
        # bool is a subclass of int, but a boolean reading is never a number
        return isinstance(self.value, (int, float)) and not isinstance(self.value, bool)


@dataclass
class TelemetryRecord:
    device_id: str
    sensor_type: str
    readings: List[SensorReading]
    received_at: datetime
    id: Optional[int] = None


@dataclass(frozen=True)
class LatestValue:
    value: ReadingValue
    timestamp: str


LatestSnapshot = Dict[str, LatestValue]


@dataclass
class SensorReadingEvent:
    device_id: str
    sensor_type: str
    readings: LatestSnapshot
    emitted_at: datetime

    TYPE = "SENSOR_READING"

    def to_dict(self) -> dict:
        return {
            "type": self.TYPE,
            "deviceId": self.device_id,
            "sensorType": self.sensor_type,
            "readings": {
                metric: {"value": latest.value, "timestamp": latest.timestamp}
                for metric, latest in self.readings.items()
            },
            "timestamp": self.emitted_at.isoformat(),
        }


@dataclass(frozen=True)
class DeviceContext:
    device_id: str
    room_name: Optional[str] = None
    room_number: Optional[str] = None
    floor: Optional[int] = None

    @property
    def room_label(self) -> str:
        return self.room_name or f"Room {self.room_number}"


class TicketStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    APPROVED = "approved"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Role(str, Enum):
    ADMIN = "admin"
    TECH = "tech"
    USER = "user"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role


@dataclass
class MaintenanceTicket:
    date: datetime
    responsible_id: str
    device_id: str
    status: TicketStatus = TicketStatus.PENDING
    priority: TicketPriority = TicketPriority.MEDIUM
    description: Optional[str] = None
    damage_image: Optional[str] = None
    approved_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class StatusChange:
    ticket_id: int
    from_status: TicketStatus
    to_status: TicketStatus
    changed_by: str
    changed_at: datetime
    reason: Optional[str] = None


@dataclass
class ReadingStats:
    avg: Optional[float]
    min: Optional[float]
    max: Optional[float]
    count: int
    latest: ReadingValue
    latest_timestamp: datetime


@dataclass
class SummaryBucket:
    bucket: str
    avg: Optional[float]
    min: Optional[float]
    max: Optional[float]
    count: int
    first_timestamp: datetime
    last_timestamp: datetime


@dataclass
class MetricOverview:
    sensor_type: str
    metric: str
    last_value: ReadingValue
    last_timestamp: datetime
    count: int

