"""pytest configuration and fixtures."""

import os

# Configure the engine before any wingmatch module reads settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "False"
os.environ.pop("REDIS_URL", None)
os.environ.pop("SENTRY_DSN", None)

from datetime import date  # noqa: E402
from typing import Iterable, Optional  # noqa: E402

import pytest  # noqa: E402

from wingmatch.models.profile import DatingProfile, DatingStatus, Gender, Role  # noqa: E402
from wingmatch.services import profile_service, relationship_service  # noqa: E402
from wingmatch.services.notification_service import set_notifier  # noqa: E402
from wingmatch.utils.cache import RedisClient  # noqa: E402
from wingmatch.utils.database import Base, Database  # noqa: E402


def born(age: int) -> date:
    """A date of birth that makes someone exactly `age` today."""
    return date(date.today().year - age, 1, 1)


@pytest.fixture(autouse=True)
def database():
    """Fresh in-memory database for every test."""
    Database.reset()
    RedisClient.reset()
    Database.create_tables()
    yield Database
    Base.metadata.drop_all(Database.get_engine())
    Database.reset()
    RedisClient.reset()
    set_notifier(None)


@pytest.fixture
def make_user():
    """Create a base profile, optionally with an open dating profile."""

    def _make(
        name: str,
        age: int = 30,
        gender: Gender = Gender.FEMALE,
        interested: Iterable[Gender] = (Gender.MALE,),
        age_from: int = 18,
        age_to: Optional[int] = None,
        status: DatingStatus = DatingStatus.OPEN,
        phone: Optional[str] = None,
        dating: bool = True,
        interests: Iterable[str] = (),
        bio: Optional[str] = None,
    ) -> str:
        profile = profile_service.create_profile(
            name,
            date_of_birth=born(age),
            gender=gender,
            role=Role.DATER if dating else Role.WINGER,
            phone_number=phone,
        )
        if dating:
            profile_service.create_dating_profile(
                DatingProfile(
                    user_id=profile.id,
                    city="Jakarta",
                    bio=bio,
                    age_from=age_from,
                    age_to=age_to,
                    interested_gender=list(interested),
                    interests=list(interests),
                    dating_status=status,
                )
            )
        return profile.id

    return _make


@pytest.fixture
def make_winger(make_user):
    """Create a winger with an active relationship to `dater_id`."""
    counter = {"n": 0}

    def _make(dater_id: str, name: str = "Wing") -> str:
        counter["n"] += 1
        phone = f"+1555000{counter['n']:04d}"
        contact = relationship_service.invite(dater_id, phone)
        winger_id = make_user(name, phone=phone, dating=False)
        relationship_service.accept(contact.id, winger_id)
        return winger_id

    return _make
