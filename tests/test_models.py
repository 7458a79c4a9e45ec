import pytest
from pydantic import ValidationError

from chore_cycle.models.chore import Chore, Person
from chore_cycle.models.events import ChoreDeleted, EventType, QueueAdvanced, UserRemoved, parse_chore_event


def make_chore(**overrides):
    data = {
        "id": "c1",
        "name": "Dishes",
        "owner_id": "owner",
        "shared_with": ["member"],
        "people": [
            {"id": "p1", "name": "Owner", "user_id": "owner"},
            {"id": "p2", "name": "Member", "user_id": "member"},
        ],
        "current_person_index": 1,
    }
    data.update(overrides)
    return Chore.model_validate(data)


class TestChoreVisibility:
    def test_owner_and_members_can_see(self):
        chore = make_chore()
        assert chore.is_visible_to("owner")
        assert chore.is_visible_to("member")

    def test_strangers_cannot_see(self):
        chore = make_chore()
        assert not chore.is_visible_to("stranger")
        assert not chore.is_visible_to(None)

    def test_audience_is_owner_then_members(self):
        assert make_chore(shared_with=["member", "other"]).audience() == ["owner", "member", "other"]


class TestCurrentPersonIndex:
    def test_current_person(self):
        assert make_chore().current_person.name == "Member"

    def test_out_of_range_index_is_clamped(self):
        chore = make_chore(current_person_index=5)
        assert chore.current_person_index == 0
        assert chore.current_person.id == "p1"

    def test_empty_queue_has_no_current_person(self):
        chore = make_chore(people=[], current_person_index=3)
        assert chore.current_person_index == 0
        assert chore.current_person is None

    def test_person_requires_bound_user(self):
        with pytest.raises(ValidationError):
            Person(id="p1", name="Nobody")


class TestEventParsing:
    def test_parses_queue_advanced(self):
        chore = make_chore()
        event = parse_chore_event({
            "type": "queue_advanced",
            "chore_id": "c1",
            "chore": chore.model_dump(),
            "new_current_person": chore.people[1].model_dump(),
        })
        assert isinstance(event, QueueAdvanced)
        assert event.event_type is EventType.QUEUE_ADVANCED
        assert event.chore == chore

    def test_chore_deleted_without_snapshot(self):
        event = parse_chore_event({"type": "chore_deleted", "chore_id": "c1"})
        assert isinstance(event, ChoreDeleted)
        assert event.chore is None

    def test_user_removed_needs_removed_person(self):
        with pytest.raises(ValidationError):
            parse_chore_event({"type": "user_removed", "chore_id": "c1", "chore": make_chore().model_dump()})

        event = parse_chore_event({
            "type": "user_removed",
            "chore_id": "c1",
            "chore": make_chore().model_dump(),
            "removed_person": {"id": "p2", "name": "Member", "user_id": "member"},
        })
        assert isinstance(event, UserRemoved)

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_chore_event({"type": "chore_exploded", "chore_id": "c1"})
