"""
Publishes domain events to a RabbitMQ fanout exchange.

The publisher owns one blocking pika connection and walks an explicit state
machine:

    DISCONNECTED ──start()──► CONNECTING ──ok──► CONNECTED
         ▲                        │                  │
         └──── timer (5 s) ◄──────┴──── error ◄──────┘

    any state ──close()──► DRAINING ──► DISCONNECTED (for good)

While not CONNECTED, ``publish`` drops the event and returns False; callers
treat the exchange as best-effort.
"""

import json
import logging
import threading
from enum import Enum
from typing import List, Optional

import pika
from pika.exceptions import AMQPError
from sensornet_core.domain.ports import EventChannel

log = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DRAINING = "draining"


class FanoutPublisher(EventChannel):
    def __init__(
        self,
        url: str,
        exchange: str = "telemetry_events",
        *,
        reconnect_delay: float = 5.0,
        heartbeat: int = 30,
    ):
        self.url = url
        self.exchange = exchange
        self.reconnect_delay = reconnect_delay
        self.heartbeat = heartbeat
        self.state = ConnectionState.DISCONNECTED

        self._connection = None
        self._channel = None
        self._timer: Optional[threading.Timer] = None
        self._closed = False
        self._lock = threading.RLock()

    def start(self) -> None:
        self._connect()

    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def _connect(self) -> None:
        with self._lock:
            if self._closed or self.state != ConnectionState.DISCONNECTED:
                return
            self.state = ConnectionState.CONNECTING

        log.info("Connecting to fanout exchange %s", self.exchange)
        try:
            params = pika.URLParameters(self.url)
            params.heartbeat = self.heartbeat
            connection = pika.BlockingConnection(params)
            channel = connection.channel()
            channel.exchange_declare(exchange=self.exchange, exchange_type="fanout", durable=True)
        except AMQPError as exc:
            log.warning("Fanout connection failed: %s; retrying in %.0fs", exc, self.reconnect_delay)
            with self._lock:
                if self.state == ConnectionState.CONNECTING:
                    self.state = ConnectionState.DISCONNECTED
            self._schedule_reconnect()
            return

        with self._lock:
            if self._closed:
                self._close_quietly(connection)
                return
            self._connection = connection
            self._channel = channel
            self.state = ConnectionState.CONNECTED
        log.info("Connected to fanout exchange %s", self.exchange)

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if self._closed or self._timer is not None:
                return
            self._timer = threading.Timer(self.reconnect_delay, self._reconnect)
            self._timer.daemon = True
            self._timer.start()

    def _reconnect(self) -> None:
        with self._lock:
            self._timer = None
        self._connect()

    def _mark_disconnected(self) -> None:
        with self._lock:
            connection = self._connection
            self._connection = None
            self._channel = None
            if not self._closed:
                self.state = ConnectionState.DISCONNECTED
        if connection is not None:
            self._close_quietly(connection)
        self._schedule_reconnect()

    def publish(self, event: dict) -> bool:
        body = json.dumps(event)
        with self._lock:
            if self.state != ConnectionState.CONNECTED:
                log.warning("Fanout channel %s, dropping %s event", self.state.value, event.get("type"))
                return False
            try:
                self._channel.basic_publish(
                    exchange=self.exchange,
                    routing_key="",
                    body=body,
                    properties=pika.BasicProperties(content_type="application/json"),
                )
            except AMQPError:
                log.exception("Publish to %s failed, reconnecting", self.exchange)
                self._mark_disconnected()
                return False
        return True

    def keepalive(self) -> None:
        """Service heartbeats on an idle connection; called periodically by the runtime."""
        with self._lock:
            if self.state != ConnectionState.CONNECTED:
                return
            try:
                self._connection.process_data_events(time_limit=0)
            except AMQPError:
                log.warning("Fanout connection lost while idle, reconnecting")
                self._mark_disconnected()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self.state = ConnectionState.DRAINING
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            connection = self._connection
            self._connection = None
            self._channel = None
        if connection is not None:
            self._close_quietly(connection)
        with self._lock:
            self.state = ConnectionState.DISCONNECTED
        log.info("Fanout publisher closed")

    @staticmethod
    def _close_quietly(connection) -> None:
        try:
            if connection.is_open:
                connection.close()
        except AMQPError as exc:
            log.warning("Error while closing fanout connection: %s", exc)


class CompositeChannel(EventChannel):
    """Sends each event to every channel; one failing channel does not stop the others."""

    def __init__(self, *channels: EventChannel):
        self.channels: List[EventChannel] = list(channels)

    def publish(self, event: dict) -> bool:
        delivered = False
        for channel in self.channels:
            try:
                delivered = channel.publish(event) or delivered
            except Exception:
                log.exception("Channel %s failed to publish event", type(channel).__name__)
        return delivered

    def close(self) -> None:
        for channel in self.channels:
            try:
                channel.close()
            except Exception:
                log.exception("Channel %s failed to close", type(channel).__name__)
