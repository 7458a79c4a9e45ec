import asyncio
import json
import logging
from typing import Dict, List, Optional

import redis.asyncio as redis
from fastapi import WebSocket

from chore_cycle.config import settings
from chore_cycle.models.events import ControlType

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks open sockets and the user each one authenticated as.

    Events arrive through Redis pub/sub with a ``participants`` list and are
    sent only to sockets whose user is in it. Sockets that never
    authenticated receive nothing but pongs.
    """

    def __init__(self):
        self.active_connections: Dict[WebSocket, Optional[str]] = {}
        self.redis_client = None
        self._subscriber_task: Optional[asyncio.Task] = None

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections[websocket] = None
        logger.info("WebSocket connected from %s (%d open)", websocket.client, len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        if self.active_connections.pop(websocket, None) is not None:
            logger.info("Authenticated WebSocket closed")

    def user_for(self, websocket: WebSocket) -> Optional[str]:
        return self.active_connections.get(websocket)

    async def authenticate(self, websocket: WebSocket, token: Optional[str], user_id: Optional[str]) -> bool:
        from chore_cycle.services.auth_service import auth_service

        verified_id = auth_service.verify_token(token) if token else None
        user = auth_service.get_user_by_id(verified_id) if verified_id else None

        if user is None or not user.is_active or (user_id and user_id != verified_id):
            logger.warning("WebSocket authentication failed for user %s", user_id)
            await self.send_personal_message(json.dumps({"type": ControlType.AUTH_FAILED.value}), websocket)
            return False

        if websocket in self.active_connections:
            self.active_connections[websocket] = verified_id
        await self.send_personal_message(json.dumps({"type": ControlType.AUTH_SUCCESS.value}), websocket)
        logger.info("WebSocket authenticated as %s", verified_id)
        return True

    async def send_personal_message(self, message: str, websocket: WebSocket):
        try:
            await websocket.send_text(message)
        except Exception:
            logger.exception("Error sending message to websocket")
            self.active_connections.pop(websocket, None)

    def recipients(self, participants: List[str]) -> List[WebSocket]:
        allowed = set(participants)
        return [
            connection
            for connection, user_id in self.active_connections.items()
            if user_id is not None and user_id in allowed
        ]

    async def deliver(self, update: dict) -> int:
        """Send an event to the authorized connections; returns how many got it"""
        update = dict(update)
        participants = update.pop("participants", None) or []
        targets = self.recipients(participants)
        if not targets:
            return 0

        message = json.dumps(update)
        sent = 0
        for connection in targets:
            try:
                await connection.send_text(message)
                sent += 1
            except Exception:
                logger.exception("Error broadcasting %s to connection", update.get("type"))
                self.active_connections.pop(connection, None)
        return sent

    async def handle_pubsub_message(self, data: str) -> None:
        try:
            update = json.loads(data)
        except (TypeError, ValueError):
            logger.warning("Dropping malformed pub/sub payload: %r", data)
            return
        if not isinstance(update, dict):
            logger.warning("Dropping non-object pub/sub payload: %r", data)
            return
        await self.deliver(update)

    async def start_subscriber(self):
        if self._subscriber_task is not None:
            return
        self.redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            decode_responses=True
        )
        self._subscriber_task = asyncio.create_task(self.redis_subscriber())

    async def stop_subscriber(self):
        if self._subscriber_task is not None:
            self._subscriber_task.cancel()
            try:
                await self._subscriber_task
            except asyncio.CancelledError:
                pass
            self._subscriber_task = None
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None

    async def redis_subscriber(self):
        try:
            pubsub = self.redis_client.pubsub()
            await pubsub.subscribe(settings.updates_channel)
            logger.info("Subscribed to Redis channel %s", settings.updates_channel)

            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self.handle_pubsub_message(message["data"])
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Redis subscriber stopped")


websocket_manager = WebSocketManager()
