from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sensornet_core.domain.models import (
    MaintenanceTicket,
    MetricOverview,
    SensorReading,
    StatusChange,
    TelemetryRecord,
    TicketPriority,
    TicketStatus,
)
from sensornet_core.domain.ports import TelemetryRepository, TicketRepository
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from sensornet_server.adapters.db.sqlalchemy_models import (
    MaintenanceTicketORM,
    TelemetryReadingORM,
    TelemetryRecordORM,
    TicketStatusChangeORM,
)


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlAlchemyTelemetryRepository(TelemetryRepository):
    def __init__(self, session: Session):
        self.session = session

    # WRITE side
    def add(self, record: TelemetryRecord) -> None:
        row = TelemetryRecordORM()
        row.device_id = record.device_id
        row.sensor_type = record.sensor_type
        row.received_at = record.received_at
        for position, reading in enumerate(record.readings):
            row.readings.append(self._reading_row(position, reading))
        self.session.add(row)
        self.session.flush()
        record.id = row.id

    def delete_older_than(self, cutoff: datetime) -> int:
        expired = select(TelemetryRecordORM.id).where(TelemetryRecordORM.received_at < _utc(cutoff))
        self.session.execute(
            delete(TelemetryReadingORM)
            .where(TelemetryReadingORM.record_id.in_(expired))
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(
            delete(TelemetryRecordORM)
            .where(TelemetryRecordORM.received_at < _utc(cutoff))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # READ side
    def latest(self, device_id: str, sensor_type: Optional[str] = None) -> Optional[TelemetryRecord]:
        stmt = self._filtered(device_id, None, None, sensor_type)
        stmt = stmt.order_by(TelemetryRecordORM.received_at.desc(), TelemetryRecordORM.id.desc()).limit(1)
        row = self.session.scalars(stmt).first()
        return self._to_domain(row) if row is not None else None

    def history(
        self,
        device_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        sensor_type: Optional[str],
        limit: int,
        page: int,
    ) -> List[TelemetryRecord]:
        stmt = (
            self._filtered(device_id, start, end, sensor_type)
            .order_by(TelemetryRecordORM.received_at.desc(), TelemetryRecordORM.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [self._to_domain(r) for r in self.session.scalars(stmt).all()]

    def readings_for_metric(
        self,
        device_id: str,
        metric: str,
        start: Optional[datetime],
        end: Optional[datetime],
        sensor_type: Optional[str],
    ) -> List[Tuple[datetime, SensorReading]]:
        stmt = (
            select(TelemetryRecordORM.received_at, TelemetryReadingORM)
            .join(TelemetryReadingORM, TelemetryReadingORM.record_id == TelemetryRecordORM.id)
            .where(TelemetryRecordORM.device_id == device_id, TelemetryReadingORM.metric == metric)
        )
        stmt = self._window(stmt, start, end, sensor_type).order_by(
            TelemetryRecordORM.received_at.asc(), TelemetryRecordORM.id.asc(), TelemetryReadingORM.position.asc()
        )
        return [(_utc(received_at), self._reading_to_domain(r)) for received_at, r in self.session.execute(stmt)]

    def metric_overview(self, device_id: str, sensor_type: Optional[str] = None) -> List[MetricOverview]:
        stmt = (
            select(TelemetryRecordORM.sensor_type, TelemetryReadingORM)
            .join(TelemetryReadingORM, TelemetryReadingORM.record_id == TelemetryRecordORM.id)
            .where(TelemetryRecordORM.device_id == device_id)
        )
        stmt = self._window(stmt, None, None, sensor_type).order_by(
            TelemetryRecordORM.received_at.asc(), TelemetryRecordORM.id.asc(), TelemetryReadingORM.position.asc()
        )
        overview: Dict[Tuple[str, str], MetricOverview] = {}
        for kind, r in self.session.execute(stmt):
            key = (kind, r.metric)
            reading = self._reading_to_domain(r)
            overview[key] = MetricOverview(
                sensor_type=kind,
                metric=r.metric,
                last_value=reading.value,
                last_timestamp=reading.timestamp,
                count=overview[key].count + 1 if key in overview else 1,
            )
        return [overview[key] for key in sorted(overview)]

    # helpers
    def _filtered(self, device_id, start, end, sensor_type):
        stmt = select(TelemetryRecordORM).where(TelemetryRecordORM.device_id == device_id)
        return self._window(stmt, start, end, sensor_type)

    @staticmethod
    def _window(stmt, start, end, sensor_type):
        if sensor_type is not None:
            stmt = stmt.where(TelemetryRecordORM.sensor_type == sensor_type)
        if start is not None:
            stmt = stmt.where(TelemetryRecordORM.received_at >= _utc(start))
        if end is not None:
            stmt = stmt.where(TelemetryRecordORM.received_at <= _utc(end))
        return stmt

    @staticmethod
    def _reading_row(position: int, reading: SensorReading) -> TelemetryReadingORM:
        row = TelemetryReadingORM()
        row.position = position
        row.metric = reading.metric
        row.timestamp = reading.timestamp
        if isinstance(reading.value, bool):
            row.value_bool = reading.value
        else:
            row.value_number = float(reading.value)
        return row

    @staticmethod
    def _reading_to_domain(row: TelemetryReadingORM) -> SensorReading:
        value = row.value_bool if row.value_bool is not None else row.value_number
        return SensorReading(metric=row.metric, value=value, timestamp=_utc(row.timestamp))

    @classmethod
    def _to_domain(cls, row: TelemetryRecordORM) -> TelemetryRecord:
        return TelemetryRecord(
            device_id=row.device_id,
            sensor_type=row.sensor_type,
            readings=[cls._reading_to_domain(r) for r in row.readings],
            received_at=_utc(row.received_at),
            id=row.id,
        )


class SqlAlchemyTicketRepository(TicketRepository):
    def __init__(self, session: Session):
        self.session = session

    # WRITE
    def add(self, ticket: MaintenanceTicket) -> MaintenanceTicket:
        row = MaintenanceTicketORM()
        self._apply(row, ticket)
        self.session.add(row)
        self.session.flush()
        ticket.id = row.id
        return ticket

    def save(self, ticket: MaintenanceTicket) -> None:
        row = self.session.get(MaintenanceTicketORM, ticket.id)
        if row is None:
            raise LookupError(f"ticket {ticket.id} vanished during update")
        self._apply(row, ticket)
        self.session.flush()

    def delete(self, ticket_id: int) -> None:
        self.session.execute(delete(TicketStatusChangeORM).where(TicketStatusChangeORM.ticket_id == ticket_id))
        self.session.execute(delete(MaintenanceTicketORM).where(MaintenanceTicketORM.id == ticket_id))

    def add_status_change(self, change: StatusChange) -> None:
        row = TicketStatusChangeORM()
        row.ticket_id = change.ticket_id
        row.from_status = change.from_status.value
        row.to_status = change.to_status.value
        row.changed_by = change.changed_by
        row.changed_at = change.changed_at
        row.reason = change.reason
        self.session.add(row)

    # READ
    def get(self, ticket_id: int) -> Optional[MaintenanceTicket]:
        row = self.session.get(MaintenanceTicketORM, ticket_id)
        return self._to_domain(row) if row is not None else None

    def list(self, status: Optional[TicketStatus] = None) -> List[MaintenanceTicket]:
        stmt = select(MaintenanceTicketORM)
        if status is not None:
            stmt = stmt.where(MaintenanceTicketORM.status == status.value)
        stmt = stmt.order_by(MaintenanceTicketORM.id.asc())
        return [self._to_domain(r) for r in self.session.scalars(stmt).all()]

    def status_history(self, ticket_id: int) -> List[StatusChange]:
        stmt = (
            select(TicketStatusChangeORM)
            .where(TicketStatusChangeORM.ticket_id == ticket_id)
            .order_by(TicketStatusChangeORM.changed_at.asc(), TicketStatusChangeORM.id.asc())
        )
        return [
            StatusChange(
                ticket_id=r.ticket_id,
                from_status=TicketStatus(r.from_status),
                to_status=TicketStatus(r.to_status),
                changed_by=r.changed_by,
                changed_at=_utc(r.changed_at),
                reason=r.reason,
            )
            for r in self.session.scalars(stmt).all()
        ]

    # helpers
    @staticmethod
    def _apply(row: MaintenanceTicketORM, ticket: MaintenanceTicket) -> None:
        row.date = ticket.date
        row.responsible_id = ticket.responsible_id
        row.device_id = ticket.device_id
        row.status = ticket.status.value
        row.priority = ticket.priority.value
        row.description = ticket.description
        row.damage_image = ticket.damage_image
        row.approved_by = ticket.approved_by
        row.cancel_reason = ticket.cancel_reason
        row.created_at = ticket.created_at
        row.updated_at = ticket.updated_at

    @staticmethod
    def _to_domain(row: MaintenanceTicketORM) -> MaintenanceTicket:
        return MaintenanceTicket(
            date=_utc(row.date),
            responsible_id=row.responsible_id,
            device_id=row.device_id,
            status=TicketStatus(row.status),
            priority=TicketPriority(row.priority),
            description=row.description,
            damage_image=row.damage_image,
            approved_by=row.approved_by,
            cancel_reason=row.cancel_reason,
            created_at=_utc(row.created_at),
            updated_at=_utc(row.updated_at),
            id=row.id,
        )
