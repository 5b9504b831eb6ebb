"""Profile models for the WingMatch engine."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from wingmatch.utils.errors import ValidationError


class Gender(str, Enum):
    """Declared gender of a profile."""

    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "Non-Binary"


class Role(str, Enum):
    """Primary role chosen at onboarding."""

    DATER = "dater"
    WINGER = "winger"


class DatingStatus(str, Enum):
    """
    Dating status enumeration.

    Only OPEN profiles are visible in other users' pools.
    """

    OPEN = "open"
    BREAK = "break"
    WINGING = "winging"


class Profile(BaseModel):
    """Base account profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    chosen_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    role: Role = Role.DATER
    phone_number: Optional[str] = None
    created_at: Optional[datetime] = None


class DatingProfile(BaseModel):
    """
    Dating profile model.

    Holds the dater's preferences used by the pool resolver: age range,
    interested genders and dating status.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    user_id: str
    city: str
    bio: Optional[str] = None
    age_from: int = 18
    age_to: Optional[int] = None
    interested_gender: List[Gender] = Field(default_factory=list)
    religion: Optional[str] = None
    religious_preference: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    dating_status: DatingStatus = DatingStatus.OPEN
    created_at: Optional[datetime] = None

    @field_validator("age_from", "age_to")
    @classmethod
    def validate_age_range(cls, v: Optional[int], info: ValidationInfo) -> Optional[int]:
        """
        Validate the preferred age range.

        Ensures ages are adult (18-100) and that age_from does not exceed age_to.

        Raises:
            ValidationError: If an age is out of bounds or the range is inverted.
        """
        if v is not None and (v < 18 or v > 100):
            raise ValidationError("Preferred ages must be between 18 and 100")

        if info.field_name == "age_to" and v is not None:
            age_from = info.data.get("age_from")
            if age_from is not None and age_from > v:
                raise ValidationError("age_from must be less than or equal to age_to")
        return v

    @field_validator("interests")
    @classmethod
    def validate_interests(cls, v: List[str]) -> List[str]:
        """Strip blanks and drop duplicates while keeping order."""
        seen: list[str] = []
        for interest in v:
            cleaned = interest.strip()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen


class Photo(BaseModel):
    """Profile photo metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    dating_profile_id: str
    storage_url: str
    display_order: int = 0
    approved_at: Optional[datetime] = None
