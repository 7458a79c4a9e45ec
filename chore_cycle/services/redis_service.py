import json
import logging
from typing import Iterable, List, Optional

import redis

from chore_cycle.config import settings
from chore_cycle.models.chore import Chore

logger = logging.getLogger(__name__)


class RedisService:
    def __init__(self):
        self.redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            decode_responses=True
        )
        self.channel = settings.updates_channel

    def get_all_chores(self, user_id: str) -> List[Chore]:
        """Get all chores that user owns or has joined"""
        chores = []
        for key in self.redis_client.keys("chore:*"):
            chore_data = self.redis_client.get(key)
            if chore_data:
                chore = Chore.model_validate_json(chore_data)
                if chore.is_visible_to(user_id):
                    chores.append(chore)
        return chores

    def get_chore(self, chore_id: str, user_id: str) -> Optional[Chore]:
        """Get a chore if user has access to it"""
        chore = self.get_chore_by_id(chore_id)
        if chore and chore.is_visible_to(user_id):
            return chore
        return None

    def get_chore_by_id(self, chore_id: str) -> Optional[Chore]:
        """Get chore by ID without user access check (for joining)"""
        chore_data = self.redis_client.get(f"chore:{chore_id}")
        if chore_data:
            return Chore.model_validate_json(chore_data)
        return None

    def save_chore(self, chore: Chore) -> None:
        self.redis_client.set(f"chore:{chore.id}", chore.model_dump_json())

    def delete_chore(self, chore_id: str, user_id: str) -> bool:
        """Delete chore - ONLY OWNER CAN DELETE"""
        chore = self.get_chore_by_id(chore_id)
        if chore and chore.is_owned_by(user_id):
            return bool(self.redis_client.delete(f"chore:{chore_id}"))
        return False

    def publish_update(self, update: dict, audience: Iterable[str]) -> None:
        """Publish an event for the given users.

        ``participants`` travels with the event through pub/sub and is
        stripped by the websocket manager before delivery.
        """
        participants = list(dict.fromkeys(audience))
        message = dict(update, participants=participants)
        logger.info("Publishing %s for chore %s to %d participants",
                    update.get("type"), update.get("chore_id"), len(participants))
        self.redis_client.publish(self.channel, json.dumps(message))


redis_service = RedisService()
