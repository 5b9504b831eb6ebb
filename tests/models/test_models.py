from datetime import datetime

import pytest

from wingmatch.models.card import DiscoverCard
from wingmatch.models.contact import Contact, ContactStatus
from wingmatch.models.decision import Decision, DecisionOutcome
from wingmatch.models.match import Match
from wingmatch.models.profile import DatingProfile, DatingStatus, Gender
from wingmatch.utils.errors import ValidationError


def test_dating_profile_defaults():
    profile = DatingProfile(user_id="u1", city="Jakarta")
    assert profile.age_from == 18
    assert profile.age_to is None
    assert profile.interested_gender == []
    assert profile.dating_status == DatingStatus.OPEN


def test_dating_profile_age_range():
    profile = DatingProfile(user_id="u1", city="Jakarta", age_from=25, age_to=35)
    assert (profile.age_from, profile.age_to) == (25, 35)

    with pytest.raises(ValidationError):
        DatingProfile(user_id="u1", city="Jakarta", age_from=17)
    with pytest.raises(ValidationError):
        DatingProfile(user_id="u1", city="Jakarta", age_to=101)
    with pytest.raises(ValidationError):
        DatingProfile(user_id="u1", city="Jakarta", age_from=40, age_to=30)


def test_dating_profile_interests_are_cleaned():
    profile = DatingProfile(user_id="u1", city="Jakarta", interests=[" hiking", "hiking", "", "chess"])
    assert profile.interests == ["hiking", "chess"]


def test_dating_profile_genders():
    profile = DatingProfile(user_id="u1", city="Jakarta", interested_gender=["Female", "Non-Binary"])
    assert profile.interested_gender == [Gender.FEMALE, Gender.NON_BINARY]


def test_contact_reads_storage_status_column():
    class Row:
        id = "c1"
        user_id = "u1"
        winger_id = None
        phone_number = "+15550001234"
        wingperson_status = "active"
        created_at = datetime(2026, 1, 1)

    contact = Contact.model_validate(Row())
    assert contact.status == ContactStatus.ACTIVE
    assert contact.model_dump()["status"] == ContactStatus.ACTIVE


def test_decision_pending():
    pending = Decision(id="d1", actor_id="a", recipient_id="c", suggested_by="w")
    assert pending.is_pending is True
    resolved = pending.model_copy(update={"decision": DecisionOutcome.APPROVED})
    assert resolved.is_pending is False


def test_match_other_user():
    match = Match(id="m1", user_a_id="a", user_b_id="b")
    assert match.other_user("a") == "b"
    assert match.other_user("b") == "a"


def test_discover_card_is_suggestion():
    fields = dict(profile_id="dp1", user_id="u1", chosen_name="Ana", age=30, city="Jakarta", dating_status="open")
    assert DiscoverCard(**fields).is_suggestion is False
    assert DiscoverCard(**fields, suggested_by="w1").is_suggestion is True
