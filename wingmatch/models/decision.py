"""Decision models for the WingMatch engine."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DecisionOutcome(str, Enum):
    """Terminal outcome of a decision. A pending decision has no outcome."""

    APPROVED = "approved"
    DECLINED = "declined"


class Decision(BaseModel):
    """
    Decision model.

    One directional (actor, recipient) swipe outcome. `decision` is None while
    a wingperson suggestion awaits the dater.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    actor_id: str
    recipient_id: str
    decision: Optional[DecisionOutcome] = None
    suggested_by: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.decision is None


class WingerTab(BaseModel):
    """A winger with at least one pending suggestion, used to build Discover tabs."""

    winger_id: str
    chosen_name: str


class PendingSuggestion(BaseModel):
    """A suggestion awaiting the dater's approval or decline."""

    id: str
    recipient_id: str
    note: Optional[str] = None
    created_at: datetime
    winger: WingerTab


class PendingSuggestions(BaseModel):
    """Pending suggestions for a dater plus the distinct suggesting wingers."""

    suggestions: List[PendingSuggestion] = Field(default_factory=list)
    wingers: List[WingerTab] = Field(default_factory=list)
