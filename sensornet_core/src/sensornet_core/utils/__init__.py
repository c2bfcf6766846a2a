from .fakes import (
    FakeClock,
    FakeDeviceDirectory,
    InMemoryTelemetryRepo,
    InMemoryTicketRepo,
    RecordingAlertSink,
    RecordingChannel,
    RecordingNotifier,
    StubUoW,
)

__all__ = [
    "FakeClock",
    "FakeDeviceDirectory",
    "InMemoryTelemetryRepo",
    "InMemoryTicketRepo",
    "RecordingAlertSink",
    "RecordingChannel",
    "RecordingNotifier",
    "StubUoW",
]
