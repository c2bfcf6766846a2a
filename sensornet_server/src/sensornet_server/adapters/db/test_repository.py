"""
Repository tests against an in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sensornet_core.domain.models import SensorReading, StatusChange, TicketStatus
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from sensornet_server.adapters.db.repository import (
    SqlAlchemyTelemetryRepository,
    SqlAlchemyTicketRepository,
)
from sensornet_server.adapters.db.sqlalchemy_models import Base, TelemetryReadingORM
from sensornet_server.adapters.db.uow import SqlAlchemyUoW
from sensornet_server.utils.factories import (
    MaintenanceTicketFactory,
    SensorReadingFactory,
    TelemetryRecordFactory,
)

BASE = datetime(2025, 7, 1, 10, 0, tzinfo=timezone.utc)


# ───────── session fixture ─────────
@pytest.fixture()
def session():
    eng = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(eng)
    sess = sessionmaker(bind=eng, expire_on_commit=False)()
    yield sess
    sess.close()


@pytest.fixture()
def telemetry_repo(session):
    return SqlAlchemyTelemetryRepository(session)


@pytest.fixture()
def ticket_repo(session):
    return SqlAlchemyTicketRepository(session)


# ───────── helpers ─────────
def seed_record(repo, minutes, readings, device_id="dev-1", sensor_type="dht22"):
    received_at = BASE + timedelta(minutes=minutes)
    record = TelemetryRecordFactory(
        device_id=device_id,
        sensor_type=sensor_type,
        received_at=received_at,
        readings=[SensorReadingFactory(metric=m, value=v, timestamp=received_at) for m, v in readings],
    )
    repo.add(record)
    return record


# ───────── telemetry repo tests ─────────
def test_add_assigns_id_and_keeps_reading_order(telemetry_repo, session):
    record = seed_record(telemetry_repo, 0, [("temperature", 21.5), ("humidity", 40), ("motion", True)])
    session.commit()

    assert record.id is not None
    stored = telemetry_repo.latest("dev-1")
    assert [r.metric for r in stored.readings] == ["temperature", "humidity", "motion"]
    assert stored.readings[2].value is True
    assert stored.readings[1].value == 40
    assert stored.received_at == BASE


def test_latest_and_history_order(telemetry_repo, session):
    seed_record(telemetry_repo, 0, [("temperature", 20)])
    seed_record(telemetry_repo, 20, [("temperature", 22)])
    seed_record(telemetry_repo, 10, [("gas", 30)], sensor_type="mq4")
    session.commit()

    assert telemetry_repo.latest("dev-1").received_at == BASE + timedelta(minutes=20)
    assert telemetry_repo.latest("dev-1", "mq4").sensor_type == "mq4"
    assert telemetry_repo.latest("other") is None

    page = telemetry_repo.history("dev-1", None, None, None, limit=2, page=1)
    assert [r.received_at for r in page] == [BASE + timedelta(minutes=20), BASE + timedelta(minutes=10)]
    window = telemetry_repo.history("dev-1", BASE + timedelta(minutes=5), BASE + timedelta(minutes=15), None, 10, 1)
    assert [r.sensor_type for r in window] == ["mq4"]


def test_history_window_with_offset_datetimes(telemetry_repo, session):
    seed_record(telemetry_repo, 0, [("temperature", 20)])
    session.commit()

    plus_two = timezone(timedelta(hours=2))
    start = datetime(2025, 7, 1, 11, 30, tzinfo=plus_two)
    end = datetime(2025, 7, 1, 12, 15, tzinfo=plus_two)
    assert len(telemetry_repo.history("dev-1", start, end, None, 10, 1)) == 1
    assert telemetry_repo.history("dev-1", end, None, None, 10, 1) == []


def test_readings_for_metric_unwinds_in_time_order(telemetry_repo, session):
    seed_record(telemetry_repo, 10, [("temperature", 22), ("humidity", 41)])
    seed_record(telemetry_repo, 0, [("temperature", 20)])
    session.commit()

    rows = telemetry_repo.readings_for_metric("dev-1", "temperature", None, None, None)
    assert [(received_at, reading.value) for received_at, reading in rows] == [
        (BASE, 20),
        (BASE + timedelta(minutes=10), 22),
    ]
    assert isinstance(rows[0][1], SensorReading)


def test_metric_overview_counts_per_metric(telemetry_repo, session):
    seed_record(telemetry_repo, 0, [("temperature", 20), ("humidity", 40)])
    seed_record(telemetry_repo, 5, [("temperature", 21)])
    session.commit()

    overview = telemetry_repo.metric_overview("dev-1")
    assert [(o.metric, o.count, o.last_value) for o in overview] == [("humidity", 1, 40), ("temperature", 2, 21)]


def test_delete_older_than_removes_records_and_readings(telemetry_repo, session):
    seed_record(telemetry_repo, 0, [("temperature", 20), ("humidity", 40)])
    seed_record(telemetry_repo, 60, [("temperature", 21)])
    session.commit()

    deleted = telemetry_repo.delete_older_than(BASE + timedelta(minutes=30))
    session.commit()

    assert deleted == 1
    assert session.scalar(select(func.count()).select_from(TelemetryReadingORM)) == 1


# ───────── ticket repo tests ─────────
def test_ticket_round_trip_and_status_history(ticket_repo, session):
    ticket = ticket_repo.add(MaintenanceTicketFactory(responsible_id="tech-1", date=BASE))
    session.commit()

    ticket.status = TicketStatus.IN_PROGRESS
    ticket.updated_at = BASE + timedelta(hours=1)
    ticket_repo.save(ticket)
    ticket_repo.add_status_change(
        StatusChange(ticket.id, TicketStatus.PENDING, TicketStatus.IN_PROGRESS, "tech-1", BASE + timedelta(hours=1))
    )
    session.commit()

    loaded = ticket_repo.get(ticket.id)
    assert loaded.status == TicketStatus.IN_PROGRESS
    assert loaded.date == BASE
    assert [t.id for t in ticket_repo.list(TicketStatus.IN_PROGRESS)] == [ticket.id]
    assert ticket_repo.list(TicketStatus.PENDING) == []
    (change,) = ticket_repo.status_history(ticket.id)
    assert change.to_status == TicketStatus.IN_PROGRESS


def test_delete_ticket_drops_history(ticket_repo, session):
    ticket = ticket_repo.add(MaintenanceTicketFactory())
    ticket_repo.add_status_change(
        StatusChange(ticket.id, TicketStatus.PENDING, TicketStatus.CANCELLED, "admin", BASE, "duplicate")
    )
    session.commit()

    ticket_repo.delete(ticket.id)
    session.commit()

    assert ticket_repo.get(ticket.id) is None
    assert ticket_repo.status_history(ticket.id) == []


# ───────── unit of work ─────────
def test_external_session_is_not_committed(session):
    with SqlAlchemyUoW(session) as uow:
        uow.telemetry_repo().add(TelemetryRecordFactory(device_id="dev-x"))
    session.rollback()

    assert SqlAlchemyTelemetryRepository(session).latest("dev-x") is None
