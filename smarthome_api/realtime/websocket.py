"""WebSocket endpoint for live device updates.

Protocol (server → client):
1. {type: "connected", connection_id}
2. {type: "event", event: "RefreshDevices", args: []}
   {type: "event", event: "ReceiveTemperature", args: [device_id, value]}

Client → server messages are ignored except {type: "ping"}, answered
with {type: "pong"}.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from .hub import get_broadcast_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class WebSocketSubscriber:
    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    async def send_json(self, data: Any) -> None:
        await self._websocket.send_json(data)

    async def close(self) -> None:
        await self._websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)


@router.websocket("/hubs/smarthome")
async def smarthome_hub(websocket: WebSocket):
    hub = get_broadcast_hub()
    await websocket.accept()

    connection_id = hub.add_subscriber(WebSocketSubscriber(websocket))
    logger.info("[WebSocket] Client connected: connection=%s", connection_id)

    try:
        await websocket.send_json({"type": "connected", "connection_id": connection_id})

        while True:
            raw = await websocket.receive_text()
            try:
                message = orjson.loads(raw)
            except orjson.JSONDecodeError:
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.info("[WebSocket] Client disconnected: connection=%s", connection_id)
    except Exception as e:
        logger.warning("[WebSocket] Session error: connection=%s error=%s", connection_id, e)
    finally:
        hub.remove_subscriber(connection_id)
