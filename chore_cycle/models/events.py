"""Realtime wire messages.

Every frame is a JSON object with a ``type`` discriminator. Domain events
describe one chore and always carry its id; all but ``chore_deleted`` carry
the full server-confirmed snapshot of the chore after the change.
"""
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from chore_cycle.models.chore import Chore, Person

# Reserved listener key that receives every well-formed message.
WILDCARD = "*"


class EventType(str, Enum):
    CHORE_CREATED = "chore_created"
    CHORE_DELETED = "chore_deleted"
    CHORE_UPDATED = "chore_updated"
    PERSON_ADDED = "person_added"
    PERSON_REMOVED = "person_removed"
    QUEUE_ADVANCED = "queue_advanced"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    USER_REMOVED = "user_removed"


class ControlType(str, Enum):
    AUTH = "auth"
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILED = "auth_failed"
    PING = "ping"
    PONG = "pong"


class ChoreEvent(BaseModel):
    chore_id: str
    chore: Chore

    @property
    def event_type(self) -> EventType:
        return EventType(self.type)


class ChoreCreated(ChoreEvent):
    type: Literal["chore_created"] = "chore_created"
    user_id: Optional[str] = None


class ChoreDeleted(ChoreEvent):
    type: Literal["chore_deleted"] = "chore_deleted"
    chore: Optional[Chore] = None


class ChoreUpdated(ChoreEvent):
    type: Literal["chore_updated"] = "chore_updated"


class PersonAdded(ChoreEvent):
    type: Literal["person_added"] = "person_added"
    person: Optional[Person] = None


class PersonRemoved(ChoreEvent):
    type: Literal["person_removed"] = "person_removed"
    removed_person: Optional[Person] = None


class QueueAdvanced(ChoreEvent):
    type: Literal["queue_advanced"] = "queue_advanced"
    new_current_person: Optional[Person] = None


class UserJoined(ChoreEvent):
    type: Literal["user_joined"] = "user_joined"
    user_id: str


class UserLeft(ChoreEvent):
    type: Literal["user_left"] = "user_left"
    user_id: str


class UserRemoved(ChoreEvent):
    type: Literal["user_removed"] = "user_removed"
    removed_person: Person


AnyChoreEvent = Annotated[
    Union[
        ChoreCreated,
        ChoreDeleted,
        ChoreUpdated,
        PersonAdded,
        PersonRemoved,
        QueueAdvanced,
        UserJoined,
        UserLeft,
        UserRemoved,
    ],
    Field(discriminator="type"),
]

chore_event_adapter = TypeAdapter(AnyChoreEvent)


def parse_chore_event(data: dict) -> ChoreEvent:
    """Validate a decoded frame into its typed event model.

    Raises ``pydantic.ValidationError`` for unknown types or bad payloads.
    """
    return chore_event_adapter.validate_python(data)


def is_domain_event(message_type: Optional[str]) -> bool:
    return isinstance(message_type, str) and message_type in EventType._value2member_map_
