"""Client-side projection of the chores visible to the current user.

State changes only when a server event arrives (or on a full refresh).
Mutation methods validate locally, call the REST API and return; the
resulting event is what actually updates ``chores``. This keeps every device
on the same server-confirmed state regardless of whether the HTTP response
or the event arrives first.
"""
import logging
from typing import Callable, Dict, List, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chore_cycle.client.chore_service import ChoreService
from chore_cycle.client.realtime import RealtimeChannel
from chore_cycle.client.session import Session
from chore_cycle.errors import ChoreError, NotFoundError, OwnerCannotLeaveError, PermissionDeniedError, ValidationError
from chore_cycle.models.chore import Chore
from chore_cycle.models.events import (
    ChoreCreated,
    ChoreDeleted,
    ChoreEvent,
    EventType,
    UserJoined,
    UserLeft,
    UserRemoved,
)

logger = logging.getLogger(__name__)

Listener = Callable[["ChoreStore"], None]

_email_adapter = TypeAdapter(EmailStr)


class ChoreStore:
    def __init__(self, session: Session, service: ChoreService, channel: RealtimeChannel):
        self.session = session
        self.service = service
        self.channel = channel

        self.chores: Dict[str, Chore] = {}
        self.loading = False
        self.error: Optional[ChoreError] = None

        self._listeners: List[Listener] = []
        self._attached = False
        self._handlers: Dict[EventType, Callable[[ChoreEvent], bool]] = {
            EventType.CHORE_CREATED: self._on_chore_created,
            EventType.CHORE_DELETED: self._on_chore_deleted,
            EventType.CHORE_UPDATED: self._on_chore_changed,
            EventType.PERSON_ADDED: self._on_chore_changed,
            EventType.PERSON_REMOVED: self._on_chore_changed,
            EventType.QUEUE_ADVANCED: self._on_chore_changed,
            EventType.USER_JOINED: self._on_user_joined,
            EventType.USER_LEFT: self._on_user_left,
            EventType.USER_REMOVED: self._on_user_removed,
        }
        missing = set(EventType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No store handler for {sorted(t.value for t in missing)}")

    # Reading

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id

    def get(self, chore_id: str) -> Optional[Chore]:
        return self.chores.get(chore_id)

    def all(self) -> List[Chore]:
        return sorted(self.chores.values(), key=lambda chore: chore.name.lower())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every state change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Chore store listener %r failed", listener)

    # Wiring

    def attach(self) -> None:
        """Start folding channel events into local state."""
        if self._attached:
            return
        for event_type in self._handlers:
            self.channel.on(event_type, self.apply_event)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for event_type in self._handlers:
            self.channel.off(event_type, self.apply_event)
        self._attached = False

    def clear(self) -> None:
        self.chores = {}
        self.loading = False
        self.error = None
        self._notify()

    # Event handling

    def apply_event(self, event: ChoreEvent) -> None:
        if self._handlers[event.event_type](event):
            self._notify()

    def _upsert_or_evict(self, chore: Chore) -> bool:
        if chore.is_visible_to(self.user_id):
            if self.chores.get(chore.id) == chore:
                return False
            self.chores[chore.id] = chore
            return True
        return self._remove(chore.id)

    def _remove(self, chore_id: str) -> bool:
        return self.chores.pop(chore_id, None) is not None

    def _on_chore_created(self, event: ChoreCreated) -> bool:
        if not event.chore.is_visible_to(self.user_id):
            return False
        return self._upsert_or_evict(event.chore)

    def _on_chore_deleted(self, event: ChoreDeleted) -> bool:
        return self._remove(event.chore_id)

    def _on_chore_changed(self, event: ChoreEvent) -> bool:
        return self._upsert_or_evict(event.chore)

    def _on_user_joined(self, event: UserJoined) -> bool:
        # Also how a new member discovers the chore without a refresh.
        return self._upsert_or_evict(event.chore)

    def _on_user_left(self, event: UserLeft) -> bool:
        if event.user_id == self.user_id:
            return self._remove(event.chore_id)
        return self._upsert_or_evict(event.chore)

    def _on_user_removed(self, event: UserRemoved) -> bool:
        if event.removed_person.user_id == self.user_id:
            return self._remove(event.chore_id)
        return self._upsert_or_evict(event.chore)

    # Refresh

    async def refresh(self) -> None:
        """Replace local state with the server's list of visible chores.

        On failure the previous list is kept and ``error`` is set.
        """
        self.loading = True
        self._notify()
        try:
            chores = await self.service.get_all_chores()
        except ChoreError as exc:
            logger.warning("Failed to refresh chores: %s", exc)
            self.error = exc
            raise
        else:
            self.chores = {chore.id: chore for chore in chores if chore.is_visible_to(self.user_id)}
            self.error = None
        finally:
            self.loading = False
            self._notify()

    # Mutations. None of these touch self.chores.

    def _require_chore(self, chore_id: str) -> Chore:
        chore = self.chores.get(chore_id)
        if chore is None:
            raise NotFoundError("Chore not found")
        return chore

    def _require_member(self, chore_id: str) -> Chore:
        chore = self._require_chore(chore_id)
        if not chore.is_visible_to(self.user_id):
            raise PermissionDeniedError("You are not a member of this chore")
        return chore

    def _require_owner(self, chore_id: str, action: str) -> Chore:
        chore = self._require_chore(chore_id)
        if not chore.is_owned_by(self.user_id):
            raise PermissionDeniedError(f"Only the chore owner can {action}")
        return chore

    async def create(self, name: str) -> Chore:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Chore name is required")
        return await self.service.create_chore(name)

    async def delete(self, chore_id: str) -> None:
        self._require_owner(chore_id, "delete this chore")
        await self.service.delete_chore(chore_id)

    async def join(self, chore_id: str) -> Chore:
        chore_id = (chore_id or "").strip()
        if not chore_id:
            raise ValidationError("Chore ID is required")
        joined = await self.service.join_chore(chore_id)
        # The joining client may not get an event for the chore it just joined.
        try:
            await self.refresh()
        except ChoreError:
            # Already recorded in self.error; the join itself went through.
            logger.info("Joined %s but the follow-up refresh failed", chore_id)
        return joined

    async def leave(self, chore_id: str) -> None:
        chore = self._require_member(chore_id)
        if chore.is_owned_by(self.user_id):
            raise OwnerCannotLeaveError("The owner cannot leave a chore, delete it instead")
        await self.service.leave_chore(chore_id)

    async def add_person(self, chore_id: str, email: str) -> Chore:
        self._require_member(chore_id)
        email = (email or "").strip()
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError as exc:
            raise ValidationError("Please enter a valid email address") from exc
        return await self.service.add_person_to_chore(chore_id, email)

    async def remove_person(self, chore_id: str, person_id: str) -> Chore:
        chore = self._require_owner(chore_id, "remove people")
        if chore.find_person(person_id) is None:
            raise NotFoundError("Person not found")
        return await self.service.remove_person_from_chore(chore_id, person_id)

    async def advance_queue(self, chore_id: str) -> Chore:
        chore = self._require_member(chore_id)
        if not chore.people:
            raise ValidationError("No people in chore")
        return await self.service.advance_queue(chore_id)
