"""Match models for the WingMatch engine."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Match(BaseModel):
    """
    Match model.

    Symmetric record of a mutual approval, keyed by the canonical pair
    (user_a_id < user_b_id).
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_a_id: str
    user_b_id: str
    created_at: Optional[datetime] = None

    def other_user(self, user_id: str) -> str:
        """Return the id of the other participant."""
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id


class UserMatch(BaseModel):
    """
    User match view model.

    What the matches screen shows for one match: the other person's details.
    """

    match_id: str
    user_id: str  # The other user's ID
    chosen_name: str
    age: Optional[int] = None
    city: Optional[str] = None
    bio: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    photo_url: Optional[str] = None
    created_at: datetime


class WingNote(BaseModel):
    """The wingperson note attached to the decision that led to a match."""

    note: str
    suggested_by: Optional[str] = None
    suggester_name: Optional[str] = None
