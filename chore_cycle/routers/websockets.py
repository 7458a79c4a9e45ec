import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chore_cycle.models.events import ControlType
from chore_cycle.services.websocket_service import websocket_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket_manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except ValueError:
                logger.debug("Ignoring malformed client frame: %r", data)
                continue
            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == ControlType.AUTH.value:
                await websocket_manager.authenticate(
                    websocket,
                    token=message.get("token"),
                    user_id=message.get("user_id"),
                )
            elif message_type == ControlType.PING.value:
                await websocket_manager.send_personal_message(
                    json.dumps({"type": ControlType.PONG.value}),
                    websocket
                )

    except WebSocketDisconnect:
        logger.debug("Client closed the WebSocket")
    finally:
        websocket_manager.disconnect(websocket)
