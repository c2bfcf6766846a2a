from datetime import datetime, timezone

import factory
from sensornet_core.domain.models import (
    MaintenanceTicket,
    SensorReading,
    TelemetryRecord,
    TicketPriority,
    TicketStatus,
)


class UTCNow(factory.Factory):
    class Meta:
        model = datetime

    @classmethod
    def _create(cls, *_, **__):
        return datetime.now(tz=timezone.utc).replace(microsecond=0)


class SensorReadingFactory(factory.Factory):
    class Meta:
        model = SensorReading

    metric = "temperature"
    value = factory.Sequence(lambda n: 20.0 + n)
    timestamp = UTCNow()


class TelemetryRecordFactory(factory.Factory):
    class Meta:
        model = TelemetryRecord

    device_id = factory.Sequence(lambda n: f"device-{n}")
    sensor_type = "dht22"
    received_at = UTCNow()
    readings = factory.LazyAttribute(lambda o: [SensorReadingFactory(timestamp=o.received_at)])


class MaintenanceTicketFactory(factory.Factory):
    class Meta:
        model = MaintenanceTicket

    date = UTCNow()
    responsible_id = factory.Sequence(lambda n: f"tech-{n}")
    device_id = factory.Sequence(lambda n: f"device-{n}")
    status = TicketStatus.PENDING
    priority = TicketPriority.MEDIUM
    description = "Sensor reports drifting values"
    created_at = factory.SelfAttribute("date")
    updated_at = factory.SelfAttribute("date")
