"""
Process wiring for the telemetry backend.

``ServiceRuntime`` builds every adapter from settings, starts the background
work and tears it down in two phases:

1. stop inbound traffic (the MQTT subscriber; uvicorn stops accepting HTTP
   before the FastAPI lifespan shutdown runs),
2. stop housekeeping and close the outbound channels.

``serve`` runs the pipeline without HTTP and routes signals and uncaught
exceptions through the same drain.
"""

import logging
import os
import signal
import sys
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional

from sensornet_core.application import CooldownTracker, ThresholdAlertEngine, ingest_telemetry, purge_expired_telemetry
from sensornet_core.config.environments import Settings

from sensornet_server.adapters.amqp.fanout import CompositeChannel, FanoutPublisher
from sensornet_server.adapters.db.uow import SqlAlchemyUoW
from sensornet_server.adapters.http.alert_webhook import WebhookAlertSink
from sensornet_server.adapters.http.device_directory import HttpDeviceDirectory
from sensornet_server.adapters.mqtt.subscriber import TelemetrySubscriber
from sensornet_server.adapters.ws.hub import NotificationHub

log = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    name: str
    interval: float
    action: Callable[[], object]
    next_run: float = 0.0


class HousekeepingLoop(threading.Thread):
    """Runs periodic maintenance tasks until stopped."""

    def __init__(self, tasks: List[PeriodicTask], tick: float = 1.0):
        super().__init__(name="housekeeping", daemon=True)
        self._tasks = tasks
        self._tick = tick
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        log.info("Starting housekeeping loop (%s)", ", ".join(t.name for t in self._tasks))
        now = time.monotonic()
        for task in self._tasks:
            task.next_run = now + task.interval

        while not self._stop_event.wait(self._tick):
            now = time.monotonic()
            for task in self._tasks:
                if now < task.next_run:
                    continue
                task.next_run = now + task.interval
                try:
                    task.action()
                except Exception:
                    log.exception("Housekeeping task %s failed", task.name)

        log.info("Housekeeping loop stopped")


class ServiceRuntime:
    def __init__(self, settings: Settings, *, uow_factory: Callable[[], object] = SqlAlchemyUoW):
        self.settings = settings
        self._uow_factory = uow_factory

        self.hub = NotificationHub()
        self.fanout = FanoutPublisher(
            settings.RABBITMQ_URL,
            settings.RABBITMQ_EXCHANGE,
            reconnect_delay=settings.RABBITMQ_RECONNECT_DELAY_SEC,
            heartbeat=settings.RABBITMQ_HEARTBEAT_SEC,
        )
        self.channel = CompositeChannel(self.fanout, self.hub)

        self.cooldowns = CooldownTracker(timedelta(seconds=settings.ALERT_COOLDOWN_SEC))
        self.alerts = ThresholdAlertEngine(
            HttpDeviceDirectory(settings.DEVICES_SERVICE_URL, timeout=settings.DEVICES_SERVICE_TIMEOUT_SEC),
            WebhookAlertSink(settings.ALERT_WEBHOOK_URL, timeout=settings.ALERT_WEBHOOK_TIMEOUT_SEC),
            self.cooldowns,
            settings.ALERT_THRESHOLDS,
        )

        self.subscriber = TelemetrySubscriber(
            host=settings.MQTT_BROKER,
            port=settings.MQTT_PORT,
            topic=settings.MQTT_TOPIC,
            client_id=settings.MQTT_CLIENT_ID,
            username=settings.MQTT_USERNAME,
            password=settings.MQTT_PASSWORD,
            reconnect_delay=settings.MQTT_RECONNECT_DELAY_SEC,
            handler=self.handle_telemetry,
        )

        self.housekeeping: Optional[HousekeepingLoop] = None
        self.started = False
        self._drained = False
        self._lock = threading.Lock()

    def handle_telemetry(self, device_id: str, payload: dict):
        return ingest_telemetry(device_id, payload, self._uow_factory(), channel=self.channel, alerts=self.alerts)

    def purge_telemetry(self) -> int:
        return purge_expired_telemetry(
            self._uow_factory(), retention=timedelta(days=self.settings.TELEMETRY_RETENTION_DAYS)
        )

    def housekeeping_tasks(self) -> List[PeriodicTask]:
        return [
            PeriodicTask("cooldown-sweep", self.settings.COOLDOWN_SWEEP_INTERVAL_SEC, self.cooldowns.sweep),
            PeriodicTask("retention-purge", self.settings.RETENTION_PURGE_INTERVAL_SEC, self.purge_telemetry),
            PeriodicTask("fanout-keepalive", max(1, self.settings.RABBITMQ_HEARTBEAT_SEC // 3), self.fanout.keepalive),
        ]

    def start(self) -> None:
        with self._lock:
            if self.started or self._drained:
                return
            self.started = True

        log.info("Starting telemetry runtime in %s environment", self.settings.ENVIRONMENT.value)
        self.fanout.start()
        self.housekeeping = HousekeepingLoop(self.housekeeping_tasks())
        self.housekeeping.start()
        self.subscriber.start()

    def drain(self) -> None:
        with self._lock:
            if self._drained:
                return
            self._drained = True

        log.info("Draining: stopping inbound traffic")
        if self.started:
            self.subscriber.stop()

        log.info("Draining: stopping background work and closing channels")
        if self.housekeeping is not None:
            self.housekeeping.stop()
            self.housekeeping.join(timeout=5)
        self.channel.close()
        log.info("Drain complete")


def drain_or_exit(runtime: ServiceRuntime) -> None:
    try:
        runtime.drain()
    except Exception:
        log.exception("Drain failed, exiting immediately")
        os._exit(1)


def install_shutdown_hooks(runtime: ServiceRuntime, stop_event: threading.Event) -> threading.Event:
    """Route signals and uncaught exceptions to shutdown; the returned event is set on a crash."""
    crashed = threading.Event()

    def _on_signal(signum, _frame):
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_event.set()

    def _on_uncaught(exc_type, exc, tb):
        log.critical("Uncaught exception, shutting down", exc_info=(exc_type, exc, tb))
        crashed.set()
        drain_or_exit(runtime)
        stop_event.set()

    def _on_thread_uncaught(args):
        if args.exc_type is SystemExit:
            return
        _on_uncaught(args.exc_type, args.exc_value, args.exc_traceback)

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)
    sys.excepthook = _on_uncaught
    threading.excepthook = _on_thread_uncaught
    return crashed


def serve(runtime: ServiceRuntime) -> None:
    """Run ingestion until a signal or an uncaught exception stops it.

    A crash exits with status 1 once the drain has finished.
    """
    stop_event = threading.Event()
    crashed = install_shutdown_hooks(runtime, stop_event)
    runtime.start()
    try:
        while not stop_event.wait(1.0):
            pass
    finally:
        drain_or_exit(runtime)
    if crashed.is_set():
        sys.exit(1)
