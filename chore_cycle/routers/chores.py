import logging
from fastapi import APIRouter, HTTPException, Depends
from typing import List
from uuid import uuid4

from chore_cycle.models.chore import Chore, Person, CreateChoreRequest, AddPersonRequest
from chore_cycle.models.user import User
from chore_cycle.rotation import advance_index, index_after_removal
from chore_cycle.services.auth_service import auth_service
from chore_cycle.services.redis_service import redis_service
from chore_cycle.dependencies.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chores", tags=["chores"])


def _get_visible_chore(chore_id: str, user: User) -> Chore:
    # Chores the user cannot see are reported as missing
    chore = redis_service.get_chore(chore_id, user.id)
    if not chore:
        raise HTTPException(status_code=404, detail="Chore not found")
    return chore


def _remove_person_at(chore: Chore, index: int) -> Person:
    old_length = len(chore.people)
    removed = chore.people.pop(index)
    chore.current_person_index = index_after_removal(chore.current_person_index, index, old_length)
    return removed


@router.get("/", response_model=List[Chore])
async def get_all_chores(current_user: User = Depends(get_current_user)):
    """Get all chores the current user owns or has joined"""
    return redis_service.get_all_chores(current_user.id)


@router.get("/{chore_id}", response_model=Chore)
async def get_chore(chore_id: str, current_user: User = Depends(get_current_user)):
    """Get a specific chore by ID"""
    return _get_visible_chore(chore_id, current_user)


@router.post("/", response_model=Chore)
async def create_chore(
    request: CreateChoreRequest,
    current_user: User = Depends(get_current_user)
):
    """Create a new chore with the creator as owner and first in the queue"""
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Chore name is required")

    chore = Chore(
        id=str(uuid4()),
        name=name,
        owner_id=current_user.id,
        owner_name=current_user.full_name,
        people=[Person(id=str(uuid4()), name=current_user.full_name, user_id=current_user.id)],
        current_person_index=0,
    )
    redis_service.save_chore(chore)
    auth_service.link_chore(current_user.id, chore.id)

    redis_service.publish_update({
        "type": "chore_created",
        "chore_id": chore.id,
        "chore": chore.model_dump(),
        "user_id": current_user.id,
    }, audience=chore.audience())

    return chore


@router.delete("/{chore_id}")
async def delete_chore(chore_id: str, current_user: User = Depends(get_current_user)):
    """Delete a chore (only the owner can delete)"""
    chore = _get_visible_chore(chore_id, current_user)

    if not chore.is_owned_by(current_user.id):
        raise HTTPException(status_code=403, detail="Only the owner can delete this chore")

    audience = chore.audience()
    redis_service.delete_chore(chore_id, current_user.id)
    for user_id in audience:
        auth_service.unlink_chore(user_id, chore_id)

    redis_service.publish_update({
        "type": "chore_deleted",
        "chore_id": chore_id,
        "chore": chore.model_dump(),
    }, audience=audience)

    return {"message": "Chore deleted successfully"}


@router.post("/{chore_id}/people", response_model=Chore)
async def add_person_to_chore(
    chore_id: str,
    request: AddPersonRequest,
    current_user: User = Depends(get_current_user)
):
    """Add a registered user to a chore by email"""
    chore = _get_visible_chore(chore_id, current_user)

    target_user = auth_service.get_user_by_email(request.email.strip())
    if not target_user:
        raise HTTPException(status_code=404, detail="User not found")

    if chore.find_person_for_user(target_user.id) is not None:
        raise HTTPException(status_code=400, detail="User is already part of this chore")

    new_person = Person(id=str(uuid4()), name=target_user.full_name, user_id=target_user.id)
    chore.people.append(new_person)
    if not chore.is_visible_to(target_user.id):
        chore.shared_with.append(target_user.id)
    redis_service.save_chore(chore)
    auth_service.link_chore(target_user.id, chore_id)

    redis_service.publish_update({
        "type": "person_added",
        "chore_id": chore_id,
        "chore": chore.model_dump(),
        "person": new_person.model_dump(),
    }, audience=chore.audience())

    return chore


@router.delete("/{chore_id}/people/{person_id}", response_model=Chore)
async def remove_person_from_chore(
    chore_id: str,
    person_id: str,
    current_user: User = Depends(get_current_user)
):
    """Remove a person from a chore (owner, or the person themselves)"""
    chore = _get_visible_chore(chore_id, current_user)

    person_index = chore.find_person(person_id)
    if person_index is None:
        raise HTTPException(status_code=404, detail="Person not found")

    if not chore.is_owned_by(current_user.id) and chore.people[person_index].user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the owner can remove other people")

    audience = chore.audience()
    removed_person = _remove_person_at(chore, person_index)

    lost_access = removed_person.user_id in chore.shared_with
    if lost_access:
        chore.shared_with.remove(removed_person.user_id)
        auth_service.unlink_chore(removed_person.user_id, chore_id)
    redis_service.save_chore(chore)

    redis_service.publish_update({
        "type": "user_removed" if lost_access else "person_removed",
        "chore_id": chore_id,
        "chore": chore.model_dump(),
        "removed_person": removed_person.model_dump(),
    }, audience=audience)

    return chore


@router.post("/{chore_id}/advance", response_model=Chore)
async def advance_queue(chore_id: str, current_user: User = Depends(get_current_user)):
    """Advance to the next person in the queue"""
    chore = _get_visible_chore(chore_id, current_user)

    if len(chore.people) == 0:
        raise HTTPException(status_code=400, detail="No people in chore")

    chore.current_person_index = advance_index(chore.current_person_index, len(chore.people))
    redis_service.save_chore(chore)

    redis_service.publish_update({
        "type": "queue_advanced",
        "chore_id": chore_id,
        "chore": chore.model_dump(),
        "new_current_person": chore.current_person.model_dump(),
    }, audience=chore.audience())

    return chore


@router.post("/{chore_id}/leave")
async def leave_chore(chore_id: str, current_user: User = Depends(get_current_user)):
    """Leave a chore; the owner has to delete it instead"""
    chore = _get_visible_chore(chore_id, current_user)

    if chore.is_owned_by(current_user.id):
        raise HTTPException(status_code=400, detail="The owner cannot leave a chore, delete it instead")

    audience = chore.audience()
    person_index = chore.find_person_for_user(current_user.id)
    if person_index is not None:
        _remove_person_at(chore, person_index)
    chore.shared_with.remove(current_user.id)
    redis_service.save_chore(chore)
    auth_service.unlink_chore(current_user.id, chore_id)

    logger.info("User %s left chore %s", current_user.id, chore_id)
    redis_service.publish_update({
        "type": "user_left",
        "chore_id": chore_id,
        "chore": chore.model_dump(),
        "user_id": current_user.id,
    }, audience=audience)

    return {"message": "Successfully left the chore"}
