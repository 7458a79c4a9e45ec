from pydantic import BaseModel, model_validator
from typing import List, Optional


class Person(BaseModel):
    id: str
    name: str  # full_name of the bound user
    user_id: str  # every queue slot is bound to a registered user


class Chore(BaseModel):
    id: str
    name: str
    owner_id: str  # User ID of the creator, never changes
    owner_name: str = ""
    shared_with: List[str] = []  # User IDs of members other than the owner
    people: List[Person] = []
    current_person_index: int = 0

    @model_validator(mode="after")
    def _clamp_current_person_index(self):
        if not self.people or not 0 <= self.current_person_index < len(self.people):
            self.current_person_index = 0
        return self

    def is_visible_to(self, user_id: Optional[str]) -> bool:
        """Owner and members may see and act on a chore"""
        if not user_id:
            return False
        return user_id == self.owner_id or user_id in self.shared_with

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id == self.owner_id

    @property
    def current_person(self) -> Optional[Person]:
        if not self.people:
            return None
        return self.people[self.current_person_index]

    def audience(self) -> List[str]:
        return [self.owner_id] + [user_id for user_id in self.shared_with if user_id != self.owner_id]

    def find_person(self, person_id: str) -> Optional[int]:
        for index, person in enumerate(self.people):
            if person.id == person_id:
                return index
        return None

    def find_person_for_user(self, user_id: str) -> Optional[int]:
        for index, person in enumerate(self.people):
            if person.user_id == user_id:
                return index
        return None


class CreateChoreRequest(BaseModel):
    name: str


class AddPersonRequest(BaseModel):
    email: str


class JoinChoreRequest(BaseModel):
    chore_id: str
