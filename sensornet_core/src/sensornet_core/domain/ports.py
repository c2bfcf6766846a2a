from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Tuple

from sensornet_core.domain.models import (
    DeviceContext,
    MaintenanceTicket,
    MetricOverview,
    SensorReading,
    StatusChange,
    TelemetryRecord,
    TicketStatus,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class TelemetryRepository(Protocol):
    def add(self, record: TelemetryRecord) -> None: ...

    def latest(self, device_id: str, sensor_type: Optional[str] = None) -> Optional[TelemetryRecord]: ...

    def history(
        self,
        device_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        sensor_type: Optional[str],
        limit: int,
        page: int,
    ) -> List[TelemetryRecord]: ...

    def readings_for_metric(
        self,
        device_id: str,
        metric: str,
        start: Optional[datetime],
        end: Optional[datetime],
        sensor_type: Optional[str],
    ) -> List[Tuple[datetime, SensorReading]]: ...

    def metric_overview(self, device_id: str, sensor_type: Optional[str] = None) -> List[MetricOverview]: ...

    def delete_older_than(self, cutoff: datetime) -> int: ...


class TicketRepository(Protocol):
    def add(self, ticket: MaintenanceTicket) -> MaintenanceTicket: ...

    def get(self, ticket_id: int) -> Optional[MaintenanceTicket]: ...

    def list(self, status: Optional[TicketStatus] = None) -> List[MaintenanceTicket]: ...

    def save(self, ticket: MaintenanceTicket) -> None: ...

    def delete(self, ticket_id: int) -> None: ...

    def add_status_change(self, change: StatusChange) -> None: ...

    def status_history(self, ticket_id: int) -> List[StatusChange]: ...


class UnitOfWork(Protocol):
    def telemetry_repo(self) -> TelemetryRepository: ...

    def ticket_repo(self) -> TicketRepository: ...

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None: ...


class EventChannel(Protocol):
    def publish(self, event: dict) -> bool: ...

    def close(self) -> None: ...


class DeviceDirectory(Protocol):
    def lookup(self, device_id: str) -> Optional[DeviceContext]: ...


class AlertSink(Protocol):
    def send(self, message: str, device_id: str, timestamp: datetime) -> None: ...


class NotificationSink(Protocol):
    def notify(self, event: str, payload: dict) -> None: ...
