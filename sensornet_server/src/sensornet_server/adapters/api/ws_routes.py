import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from sensornet_server.adapters.api.routes import get_runtime, ok

log = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])


@router.websocket("/maintenance")
async def maintenance_feed(websocket: WebSocket):
    hub = get_runtime(websocket).hub
    await hub.connect_maintenance(websocket)
    try:
        while True:
            # push-only feed; inbound text is only used as a keepalive
            if await websocket.receive_text() == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        hub.disconnect(websocket)


@router.websocket("/telemetry")
async def telemetry_feed(websocket: WebSocket):
    hub = get_runtime(websocket).hub
    await hub.connect_telemetry(websocket)
    await websocket.send_json({"type": "connected"})
    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except ValueError:
                await websocket.send_json({"type": "error", "message": "Messages must be JSON"})
                continue
            if not isinstance(message, dict):
                message = {}
            action = message.get("action")
            device_id = message.get("deviceId")

            if action == "ping":
                await websocket.send_json({"type": "pong", "timestamp": datetime.now(tz=timezone.utc).isoformat()})
            elif action == "subscriptions":
                await websocket.send_json({"type": "subscriptions", "deviceIds": hub.subscriptions(websocket)})
            elif action in ("subscribe", "unsubscribe"):
                if not device_id:
                    await websocket.send_json({"type": "error", "message": "Device ID is required"})
                    continue
                if action == "subscribe":
                    hub.subscribe(websocket, device_id)
                else:
                    hub.unsubscribe(websocket, device_id)
                log.debug("Websocket client %sd device %s", action, device_id)
                await websocket.send_json({"type": f"{action}d", "deviceId": device_id})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        hub.disconnect(websocket)


@router.get("/stats")
def connection_stats(runtime=Depends(get_runtime)):
    return ok(runtime.hub.stats())
