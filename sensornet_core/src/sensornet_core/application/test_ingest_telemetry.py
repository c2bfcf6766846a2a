import json
from datetime import timedelta

import pytest

from sensornet_core.application.alerting import ThresholdAlertEngine
from sensornet_core.application.cooldown import CooldownTracker
from sensornet_core.application.ingest_telemetry import ingest_telemetry
from sensornet_core.domain.errors import ValidationError
from sensornet_core.domain.models import DeviceContext
from sensornet_core.utils.fakes import (
    FakeClock,
    FakeDeviceDirectory,
    RecordingAlertSink,
    RecordingChannel,
    StubUoW,
)


class ExplodingChannel:
    def publish(self, event):
        raise ConnectionError("broker gone")

    def close(self):
        pass


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def uow():
    return StubUoW()


def test_single_and_batch_forms_store_the_same_readings(clock):
    single_uow, batch_uow = StubUoW(), StubUoW()
    ingest_telemetry(
        "dev-1",
        {"sensorType": "mq4", "metric": "gas", "value": 12, "timestamp": "2025-07-01T10:00:00Z"},
        single_uow,
        clock=clock,
    )
    ingest_telemetry(
        "dev-1",
        {"sensorType": "mq4", "readings": [{"metric": "gas", "value": 12, "timestamp": "2025-07-01T10:00:00Z"}]},
        batch_uow,
        clock=clock,
    )
    assert single_uow.telemetry.records[0].readings == batch_uow.telemetry.records[0].readings


def test_batch_becomes_one_record_with_readings_in_order(uow, clock):
    record = ingest_telemetry(
        "dev-1",
        {
            "sensorType": "dht22",
            "readings": [
                {"metric": "temperature", "value": 21.5, "timestamp": "2025-07-01T10:00:00Z"},
                {"metric": "humidity", "value": 40, "timestamp": "2025-07-01T10:00:01Z"},
            ],
        },
        uow,
        clock=clock,
    )

    assert uow.telemetry.records == [record]
    assert [r.metric for r in record.readings] == ["temperature", "humidity"]
    assert record.received_at == clock()
    assert uow.commits == 1


def test_bad_timestamp_stores_nothing(uow, clock):
    with pytest.raises(ValidationError):
        ingest_telemetry(
            "dev-1",
            {
                "sensorType": "dht22",
                "readings": [
                    {"metric": "temperature", "value": 21.5, "timestamp": "2025-07-01T10:00:00Z"},
                    {"metric": "humidity", "value": 40, "timestamp": "soon"},
                ],
            },
            uow,
            clock=clock,
        )
    assert uow.telemetry.records == []
    assert uow.commits == 0


def test_empty_batch_is_rejected(uow, clock):
    with pytest.raises(ValidationError, match="No readings"):
        ingest_telemetry("dev-1", {"sensorType": "dht22", "readings": []}, uow, clock=clock)


def test_latest_state_is_published_after_persisting(uow, clock):
    channel = RecordingChannel()
    ingest_telemetry(
        "dev-1",
        {"sensorType": "pir", "metric": "motion_detected", "value": True, "timestamp": "2025-07-01T10:00:00Z"},
        uow,
        channel=channel,
        clock=clock,
    )

    (event,) = channel.events
    assert event["type"] == "SENSOR_READING"
    assert event["deviceId"] == "dev-1"
    assert event["readings"]["motion_detected"]["value"] is True


def test_publish_failure_does_not_fail_ingestion(uow, clock):
    record = ingest_telemetry(
        "dev-1",
        {"sensorType": "mq4", "metric": "gas", "value": 12, "timestamp": "2025-07-01T10:00:00Z"},
        uow,
        channel=ExplodingChannel(),
        clock=clock,
    )
    assert uow.telemetry.records == [record]


def test_breaching_reading_triggers_alert(uow, clock):
    sink = RecordingAlertSink()
    engine = ThresholdAlertEngine(
        FakeDeviceDirectory({"dev-1": DeviceContext("dev-1", room_name="Boiler room")}),
        sink,
        CooldownTracker(timedelta(seconds=60), clock),
    )
    ingest_telemetry(
        "dev-1",
        {"sensorType": "mq4", "metric": "gas", "value": 75, "timestamp": "2025-07-01T10:00:00Z"},
        uow,
        alerts=engine,
        clock=clock,
    )
    assert [m for m, _, _ in sink.sent] == ["Danger! High gas level detected in Boiler room"]


def test_non_finite_value_stores_nothing_and_does_not_alert(uow, clock):
    sink = RecordingAlertSink()
    engine = ThresholdAlertEngine(
        FakeDeviceDirectory({"dev-1": DeviceContext("dev-1", room_name="Lab")}),
        sink,
        CooldownTracker(timedelta(seconds=60), clock),
    )
    payload = json.loads('{"sensorType": "mq4", "metric": "gas", "value": NaN, "timestamp": "2025-07-01T10:00:00Z"}')

    with pytest.raises(ValidationError, match="finite"):
        ingest_telemetry("dev-1", payload, uow, alerts=engine, clock=clock)

    assert uow.telemetry.records == []
    assert sink.sent == []
