"""
In-memory stand-ins for the ports, used by the application tests.

They behave like the real adapters where it matters for the core: the
telemetry repository keeps records in arrival order and unwinds them per
metric, the ticket repository hands out ids and copies, and the unit of work
counts commits and rollbacks.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sensornet_core.domain.models import (
    DeviceContext,
    MaintenanceTicket,
    MetricOverview,
    SensorReading,
    StatusChange,
    TelemetryRecord,
    TicketStatus,
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class InMemoryTelemetryRepo:
    def __init__(self):
        self.records: List[TelemetryRecord] = []

    def add(self, record: TelemetryRecord) -> None:
        record.id = len(self.records) + 1
        self.records.append(record)

    def _matching(self, device_id, start=None, end=None, sensor_type=None) -> List[TelemetryRecord]:
        out = []
        for record in self.records:
            if record.device_id != device_id:
                continue
            if sensor_type is not None and record.sensor_type != sensor_type:
                continue
            if start is not None and record.received_at < start:
                continue
            if end is not None and record.received_at > end:
                continue
            out.append(record)
        return sorted(out, key=lambda r: (r.received_at, r.id))

    def latest(self, device_id, sensor_type=None):
        matching = self._matching(device_id, sensor_type=sensor_type)
        return matching[-1] if matching else None

    def history(self, device_id, start, end, sensor_type, limit, page):
        newest_first = list(reversed(self._matching(device_id, start, end, sensor_type)))
        offset = (page - 1) * limit
        return newest_first[offset : offset + limit]

    def readings_for_metric(self, device_id, metric, start, end, sensor_type) -> List[Tuple[datetime, SensorReading]]:
        return [
            (record.received_at, reading)
            for record in self._matching(device_id, start, end, sensor_type)
            for reading in record.readings
            if reading.metric == metric
        ]

    def metric_overview(self, device_id, sensor_type=None) -> List[MetricOverview]:
        overview: Dict[Tuple[str, str], MetricOverview] = {}
        for record in self._matching(device_id, sensor_type=sensor_type):
            for reading in record.readings:
                key = (record.sensor_type, reading.metric)
                count = overview[key].count + 1 if key in overview else 1
                overview[key] = MetricOverview(
                    sensor_type=record.sensor_type,
                    metric=reading.metric,
                    last_value=reading.value,
                    last_timestamp=reading.timestamp,
                    count=count,
                )
        return [overview[key] for key in sorted(overview)]

    def delete_older_than(self, cutoff: datetime) -> int:
        keep = [r for r in self.records if r.received_at >= cutoff]
        deleted = len(self.records) - len(keep)
        self.records = keep
        return deleted


class InMemoryTicketRepo:
    def __init__(self):
        self.tickets: Dict[int, MaintenanceTicket] = {}
        self.changes: List[StatusChange] = []
        self._next_id = 1

    def add(self, ticket: MaintenanceTicket) -> MaintenanceTicket:
        ticket.id = self._next_id
        self._next_id += 1
        self.tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    def get(self, ticket_id: int) -> Optional[MaintenanceTicket]:
        ticket = self.tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket is not None else None

    def list(self, status: Optional[TicketStatus] = None) -> List[MaintenanceTicket]:
        return [copy.deepcopy(t) for t in self.tickets.values() if status is None or t.status == status]

    def save(self, ticket: MaintenanceTicket) -> None:
        self.tickets[ticket.id] = copy.deepcopy(ticket)

    def delete(self, ticket_id: int) -> None:
        self.tickets.pop(ticket_id, None)

    def add_status_change(self, change: StatusChange) -> None:
        self.changes.append(change)

    def status_history(self, ticket_id: int) -> List[StatusChange]:
        return [c for c in self.changes if c.ticket_id == ticket_id]


class StubUoW:
    def __init__(self, telemetry=None, tickets=None):
        self.telemetry = telemetry or InMemoryTelemetryRepo()
        self.tickets = tickets or InMemoryTicketRepo()
        self.commits = 0
        self.rollbacks = 0

    def telemetry_repo(self):
        return self.telemetry

    def ticket_repo(self):
        return self.tickets

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *_):
        if exc_type:
            self.rollbacks += 1
        else:
            self.commits += 1


class RecordingChannel:
    def __init__(self, connected: bool = True):
        self.connected = connected
        self.events: List[dict] = []

    def publish(self, event: dict) -> bool:
        if not self.connected:
            return False
        self.events.append(event)
        return True

    def close(self) -> None:
        self.connected = False


class RecordingAlertSink:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Tuple[str, str, datetime]] = []

    def send(self, message: str, device_id: str, timestamp: datetime) -> None:
        self.sent.append((message, device_id, timestamp))
        if self.fail:
            raise ConnectionError("webhook unreachable")


class FakeDeviceDirectory:
    def __init__(self, rooms: Optional[Dict[str, DeviceContext]] = None):
        self.rooms = rooms or {}
        self.lookups: List[str] = []

    def lookup(self, device_id: str) -> Optional[DeviceContext]:
        self.lookups.append(device_id)
        return self.rooms.get(device_id)


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[Tuple[str, dict]] = []

    def notify(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))
        if self.fail:
            raise RuntimeError("notification hub down")
