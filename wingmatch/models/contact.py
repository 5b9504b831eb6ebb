"""Dater <-> wingperson relationship models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from wingmatch.models.profile import Gender


class ContactStatus(str, Enum):
    """
    Relationship status enumeration.

    INVITED -> ACTIVE on accept; any status -> REMOVED on decline or removal.
    """

    INVITED = "invited"
    ACTIVE = "active"
    REMOVED = "removed"


class Contact(BaseModel):
    """A directed relationship from a dater to a (possibly not yet linked) winger."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    user_id: str
    winger_id: Optional[str] = None
    phone_number: str
    status: ContactStatus = Field(default=ContactStatus.INVITED, validation_alias="wingperson_status")
    created_at: Optional[datetime] = None


class Wingperson(BaseModel):
    """Roster entry on the dater's "Your Wingpeople" list."""

    contact_id: str
    winger_id: str
    chosen_name: str
    gender: Optional[Gender] = None
    weekly_suggestions: int = 0
    created_at: datetime


class IncomingInvitation(BaseModel):
    """Invitation addressed to a linked winger, awaiting accept or decline."""

    contact_id: str
    dater_id: str
    dater_name: str
    created_at: datetime


class WingingFor(BaseModel):
    """A dater the winger actively supports, with context for the WingSwipe screen."""

    contact_id: str
    dater_id: str
    dater_name: str
    interests: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    created_at: datetime
