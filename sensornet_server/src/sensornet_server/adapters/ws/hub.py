"""
Live notifications over WebSockets.

Two feeds share one hub: ``/ws/maintenance`` receives every maintenance ticket
event, ``/ws/telemetry`` receives SENSOR_READING events for the devices a
client subscribed to. Producers run on worker threads (the MQTT network loop,
the FastAPI threadpool), so sends are scheduled onto the event loop captured
at startup.
"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from sensornet_core.domain.ports import EventChannel, NotificationSink
from starlette.websockets import WebSocket

log = logging.getLogger(__name__)


class NotificationHub(EventChannel, NotificationSink):
    def __init__(self):
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._maintenance: Set[WebSocket] = set()
        self._telemetry: Dict[WebSocket, Set[str]] = {}
        self._lock = threading.Lock()

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    # connection bookkeeping
    async def connect_maintenance(self, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._maintenance.add(websocket)
        log.info("Maintenance feed client connected (%d total)", len(self._maintenance))

    async def connect_telemetry(self, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._telemetry[websocket] = set()
        log.info("Telemetry feed client connected (%d total)", len(self._telemetry))

    def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            self._maintenance.discard(websocket)
            self._telemetry.pop(websocket, None)

    def subscribe(self, websocket: WebSocket, device_id: str) -> None:
        with self._lock:
            self._telemetry.setdefault(websocket, set()).add(device_id)

    def unsubscribe(self, websocket: WebSocket, device_id: str) -> None:
        with self._lock:
            self._telemetry.get(websocket, set()).discard(device_id)

    def subscriptions(self, websocket: WebSocket) -> List[str]:
        with self._lock:
            return sorted(self._telemetry.get(websocket, set()))

    def stats(self) -> dict:
        with self._lock:
            per_device: Dict[str, int] = {}
            for devices in self._telemetry.values():
                for device_id in devices:
                    per_device[device_id] = per_device.get(device_id, 0) + 1
            return {
                "maintenanceClients": len(self._maintenance),
                "telemetryClients": len(self._telemetry),
                "deviceSubscribers": per_device,
            }

    # producers
    def notify(self, event: str, payload: dict) -> None:
        message = {"type": event, "data": payload, "timestamp": datetime.now(tz=timezone.utc).isoformat()}
        with self._lock:
            targets = list(self._maintenance)
        if targets:
            self._dispatch(self._broadcast(targets, message))

    def publish(self, event: dict) -> bool:
        device_id = event.get("deviceId")
        with self._lock:
            targets = [ws for ws, devices in self._telemetry.items() if device_id in devices]
        if not targets:
            return False
        return self._dispatch(self._broadcast(targets, event))

    def close(self) -> None:
        with self._lock:
            self._maintenance.clear()
            self._telemetry.clear()

    async def _broadcast(self, targets: List[WebSocket], message: dict) -> None:
        for websocket in targets:
            try:
                await websocket.send_json(message)
            except Exception as exc:
                log.info("Dropping dead websocket: %s", exc)
                self.disconnect(websocket)

    def _dispatch(self, coro) -> bool:
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            log.debug("No event loop bound, websocket message dropped")
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.create_task(coro)
        else:
            asyncio.run_coroutine_threadsafe(coro, loop)
        return True
