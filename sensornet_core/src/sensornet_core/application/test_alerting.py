from datetime import timedelta

import pytest

from sensornet_core.application.alerting import (
    ThresholdAlertEngine,
    cooldown_key,
    format_alert_message,
)
from sensornet_core.application.cooldown import CooldownTracker
from sensornet_core.domain.models import DeviceContext, SensorReading
from sensornet_core.utils.fakes import FakeClock, FakeDeviceDirectory, RecordingAlertSink


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def directory():
    return FakeDeviceDirectory({"dev-1": DeviceContext("dev-1", room_name="Kitchen", room_number="101")})


@pytest.fixture()
def sink():
    return RecordingAlertSink()


@pytest.fixture()
def engine(clock, directory, sink):
    return ThresholdAlertEngine(directory, sink, CooldownTracker(timedelta(seconds=60), clock))


def test_breach_dispatches_once_then_cooldown_suppresses(engine, sink, clock):
    engine.check_and_alert("dev-1", "mq4", "gas", 51, clock())
    assert len(sink.sent) == 1

    clock.advance(30)
    engine.check_and_alert("dev-1", "mq4", "gas", 80, clock())
    assert len(sink.sent) == 1

    clock.advance(31)
    engine.check_and_alert("dev-1", "mq4", "gas", 52, clock())
    assert len(sink.sent) == 2


def test_value_at_threshold_is_not_a_breach(engine, sink, clock):
    engine.check_and_alert("dev-1", "mq4", "gas", 50, clock())
    assert sink.sent == []


def test_metric_without_threshold_never_alerts(engine, sink, directory, clock):
    engine.check_and_alert("dev-1", "dht22", "humidity", 99, clock())
    assert sink.sent == []
    assert directory.lookups == []


def test_message_names_the_room(engine, sink, clock):
    engine.check_and_alert("dev-1", "dht22", "temperature", 30, clock())
    message, device_id, _ = sink.sent[0]
    assert message == "Alert! Excessive temperature in Kitchen"
    assert device_id == "dev-1"


def test_unknown_device_aborts_without_recording_cooldown(clock, sink):
    cooldowns = CooldownTracker(timedelta(seconds=60), clock)
    engine = ThresholdAlertEngine(FakeDeviceDirectory(), sink, cooldowns)

    engine.check_and_alert("ghost", "mq4", "gas", 99, clock())

    assert sink.sent == []
    assert not cooldowns.check(cooldown_key("ghost", "mq4", "gas"))


def test_failed_dispatch_still_starts_cooldown(directory, clock):
    sink = RecordingAlertSink(fail=True)
    cooldowns = CooldownTracker(timedelta(seconds=60), clock)
    engine = ThresholdAlertEngine(directory, sink, cooldowns)

    engine.check_and_alert("dev-1", "mq4", "gas", 99, clock())
    engine.check_and_alert("dev-1", "mq4", "gas", 99, clock())

    assert len(sink.sent) == 1
    assert cooldowns.check(cooldown_key("dev-1", "mq4", "gas"))


def test_process_batch_skips_boolean_readings(directory, sink, clock):
    engine = ThresholdAlertEngine(
        directory,
        sink,
        CooldownTracker(timedelta(seconds=60), clock),
        thresholds={"pir": {"motion_detected": 0}},
    )
    engine.process_batch("dev-1", "pir", [SensorReading("motion_detected", True, clock())])
    assert sink.sent == []


def test_process_batch_checks_every_numeric_reading(engine, sink, clock):
    engine.process_batch(
        "dev-1",
        "dht22",
        [
            SensorReading("temperature", 30, clock()),
            SensorReading("humidity", 95, clock()),
        ],
    )
    assert [m for m, _, _ in sink.sent] == ["Alert! Excessive temperature in Kitchen"]


def test_send_test_alert_bypasses_cooldown(engine, sink, clock):
    engine.send_test_alert("dev-1", timestamp=clock())
    engine.send_test_alert("dev-1", "custom", timestamp=clock())
    assert [m for m, _, _ in sink.sent] == ["Test alert", "custom"]


@pytest.mark.parametrize(
    "sensor_type, metric, expected",
    [
        ("mq4", "gas", "Danger! High gas level detected in Lab"),
        ("dht22", "temperature", "Alert! Excessive temperature in Lab"),
        ("dht22", "humidity", "Warning! Critical humidity in Lab"),
        ("bmp280", "pressure", "Alert! Sensor bmp280 exceeds limits in Lab"),
        ("bme280", "temperature", "Alert! Sensor bme280 exceeds limits in Lab"),
        ("mq135", "gas", "Alert! Sensor mq135 exceeds limits in Lab"),
    ],
)
def test_format_alert_message(sensor_type, metric, expected):
    assert format_alert_message(sensor_type, metric, "Lab") == expected


def test_room_label_falls_back_to_number():
    assert DeviceContext("d", room_number="12").room_label == "Room 12"
