"""Profile service: the thin profile surface the matching engine consumes.

Profile CRUD belongs to the surrounding application. This module provides
the handful of writes the engine needs (onboarding, status changes, photos)
and the phone-number hook that links pending wingperson invites.
"""

from datetime import date
from typing import Optional

import sentry_sdk
from sqlalchemy import select
from sqlalchemy.orm import Session

from wingmatch.models.profile import DatingProfile, DatingStatus, Gender, Photo, Profile, Role
from wingmatch.services.relationship_service import link_invites_by_phone
from wingmatch.utils.database import DatingProfileDB, ProfileDB, ProfilePhotoDB, session_scope, utcnow
from wingmatch.utils.errors import ConflictError, NotFoundError, ValidationError
from wingmatch.utils.logging import get_logger
from wingmatch.utils.validators import require_id, validate_phone_number

logger = get_logger(__name__)


def _load_profile(session: Session, user_id: str) -> ProfileDB:
    profile = session.get(ProfileDB, user_id)
    if profile is None:
        raise NotFoundError(f"Profile not found: {user_id}", details={"user_id": user_id})
    return profile


def _load_dating_profile(session: Session, user_id: str) -> DatingProfileDB:
    dating_profile = session.scalars(select(DatingProfileDB).where(DatingProfileDB.user_id == user_id)).first()
    if dating_profile is None:
        raise NotFoundError(f"Dating profile not found: {user_id}", details={"user_id": user_id})
    return dating_profile


def create_profile(
    chosen_name: str,
    date_of_birth: Optional[date] = None,
    gender: Optional[Gender] = None,
    role: Role = Role.DATER,
    phone_number: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Profile:
    """
    Create a base profile.

    When a phone number is given, pending invites addressed to it are linked
    to the new account in the same transaction.
    """
    if not chosen_name or not chosen_name.strip():
        raise ValidationError("chosen_name is required")
    phone = validate_phone_number(phone_number) if phone_number else None

    with sentry_sdk.start_span(op="profile.create", name=chosen_name):
        with session_scope() as session:
            if user_id is not None and session.get(ProfileDB, user_id) is not None:
                raise ConflictError(f"Profile already exists: {user_id}", details={"user_id": user_id})

            row = ProfileDB(
                chosen_name=chosen_name.strip(),
                date_of_birth=date_of_birth,
                gender=gender.value if gender else None,
                role=role.value,
                phone_number=phone,
            )
            if user_id is not None:
                row.id = user_id
            session.add(row)
            session.flush()

            if phone:
                link_invites_by_phone(session, phone, row.id)

            profile = Profile.model_validate(row)

    logger.info("Profile created", user_id=profile.id, role=profile.role)
    return profile


def get_profile(user_id: str) -> Profile:
    """Get a base profile by id."""
    user_id = require_id(user_id, "user_id")
    with session_scope() as session:
        return Profile.model_validate(_load_profile(session, user_id))


def set_phone_number(user_id: str, phone_number: str) -> int:
    """
    Store a phone number on a profile and link any pending invites to it.

    Returns:
        int: Number of invites newly linked to this account.
    """
    user_id = require_id(user_id, "user_id")
    phone = validate_phone_number(phone_number)

    with session_scope() as session:
        profile = _load_profile(session, user_id)
        profile.phone_number = phone
        session.flush()
        linked = link_invites_by_phone(session, phone, user_id)

    logger.info("Phone number updated", user_id=user_id, linked_invites=linked)
    return linked


def create_dating_profile(dating_profile: DatingProfile) -> DatingProfile:
    """Create the dating profile for a user. Created once, at onboarding completion."""
    with session_scope() as session:
        _load_profile(session, dating_profile.user_id)
        existing = session.scalars(
            select(DatingProfileDB).where(DatingProfileDB.user_id == dating_profile.user_id)
        ).first()
        if existing is not None:
            raise ConflictError(
                "Dating profile already exists",
                details={"user_id": dating_profile.user_id},
            )

        row = DatingProfileDB(
            user_id=dating_profile.user_id,
            city=dating_profile.city,
            bio=dating_profile.bio,
            age_from=dating_profile.age_from,
            age_to=dating_profile.age_to,
            interested_gender=[g.value for g in dating_profile.interested_gender],
            religion=dating_profile.religion,
            religious_preference=dating_profile.religious_preference,
            interests=list(dating_profile.interests),
            dating_status=dating_profile.dating_status.value,
        )
        session.add(row)
        session.flush()
        created = DatingProfile.model_validate(row)

    logger.info("Dating profile created", user_id=created.user_id, dating_profile_id=created.id)
    return created


def get_dating_profile(user_id: str) -> DatingProfile:
    """Get the dating profile for a user."""
    user_id = require_id(user_id, "user_id")
    with session_scope() as session:
        return DatingProfile.model_validate(_load_dating_profile(session, user_id))


def update_dating_status(user_id: str, status: DatingStatus) -> DatingProfile:
    """Change a dater's status. Only `open` profiles appear in pools."""
    user_id = require_id(user_id, "user_id")
    with session_scope() as session:
        row = _load_dating_profile(session, user_id)
        row.dating_status = status.value
        session.flush()
        updated = DatingProfile.model_validate(row)

    logger.info("Dating status updated", user_id=user_id, status=status)
    return updated


def add_photo(user_id: str, storage_url: str, display_order: int = 0, approved: bool = False) -> Photo:
    """Attach a photo to a user's dating profile."""
    user_id = require_id(user_id, "user_id")
    if not storage_url:
        raise ValidationError("storage_url is required")

    with session_scope() as session:
        dating_profile = _load_dating_profile(session, user_id)
        row = ProfilePhotoDB(
            dating_profile_id=dating_profile.id,
            storage_url=storage_url,
            display_order=display_order,
            approved_at=utcnow() if approved else None,
        )
        session.add(row)
        session.flush()
        photo = Photo.model_validate(row)

    logger.debug("Photo added", user_id=user_id, photo_id=photo.id, approved=approved)
    return photo


def approve_photo(photo_id: str) -> Photo:
    """Mark a photo approved so it can appear on cards."""
    photo_id = require_id(photo_id, "photo_id")
    with session_scope() as session:
        row = session.get(ProfilePhotoDB, photo_id)
        if row is None:
            raise NotFoundError(f"Photo not found: {photo_id}")
        if row.approved_at is None:
            row.approved_at = utcnow()
        session.flush()
        return Photo.model_validate(row)
