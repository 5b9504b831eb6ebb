"""Candidate cards returned by the pool resolver."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from wingmatch.models.profile import DatingStatus, Gender


class PoolTab(str, Enum):
    """
    Discover tab selector.

    FOR_YOU: candidates nobody has suggested or decided on yet.
    WINGER: pending suggestions from one winger.
    ALL: FOR_YOU plus every pending suggestion, one card per candidate.
    """

    FOR_YOU = "for_you"
    WINGER = "winger"
    ALL = "all"


class WingCard(BaseModel):
    """Card shown on the WingSwipe screen."""

    profile_id: str  # dating profile id
    user_id: str  # profile id, the key decisions and matches use
    chosen_name: str
    gender: Optional[Gender] = None
    age: int
    city: str
    bio: Optional[str] = None
    dating_status: DatingStatus
    interests: List[str] = Field(default_factory=list)
    first_photo: Optional[str] = None


class DiscoverCard(WingCard):
    """Card shown on the Discover screen; carries suggestion context when one exists."""

    wing_note: Optional[str] = None
    suggested_by: Optional[str] = None
    suggester_name: Optional[str] = None

    @property
    def is_suggestion(self) -> bool:
        return self.suggested_by is not None
