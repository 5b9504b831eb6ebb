"""Input validation for engine operations.

Each validator raises `ValidationError` so malformed input is rejected before
any write happens.
"""

import re
from typing import Optional

from wingmatch.config import settings
from wingmatch.utils.errors import ValidationError

E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")


def require_id(value: Optional[str], field: str) -> str:
    """Ensure an identifier is present and non-blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", details={"field": field})
    return str(value).strip()


def require_distinct(first: str, second: str, message: str) -> None:
    """Ensure two identifiers differ (no self-swipes, no self-invites)."""
    if first == second:
        raise ValidationError(message, details={"id": first})


def validate_phone_number(phone_number: Optional[str]) -> str:
    """
    Validate an E.164 phone number.

    Formatting user input into E.164 is the client's job; the engine only
    accepts numbers that are already normalised.
    """
    if not phone_number:
        raise ValidationError("Phone number is required", details={"field": "phone_number"})
    cleaned = phone_number.strip()
    if not E164_PATTERN.match(cleaned):
        raise ValidationError("Phone number must be in E.164 format", details={"phone_number": cleaned})
    return cleaned


def validate_note(note: Optional[str]) -> Optional[str]:
    """Normalise a suggestion note: blank becomes None, overlong is rejected."""
    if note is None:
        return None
    cleaned = note.strip()
    if not cleaned:
        return None
    if len(cleaned) > settings.MAX_NOTE_LENGTH:
        raise ValidationError(
            f"Note must be at most {settings.MAX_NOTE_LENGTH} characters",
            details={"length": len(cleaned)},
        )
    return cleaned


def validate_page(page_size: int, offset: int) -> None:
    """Validate pagination parameters."""
    if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between 1 and {settings.MAX_PAGE_SIZE}",
            details={"page_size": page_size},
        )
    if offset < 0:
        raise ValidationError("page_offset must not be negative", details={"page_offset": offset})
