"""Relationship registry: the dater <-> wingperson graph and its lifecycle."""

from datetime import timedelta
from typing import List

import sentry_sdk
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, aliased

from wingmatch.config import settings
from wingmatch.models.contact import Contact, ContactStatus, IncomingInvitation, Wingperson, WingingFor
from wingmatch.services.notification_service import dispatch_invite
from wingmatch.utils.cache import delete_cache, get_cache_models, set_cache
from wingmatch.utils.database import ContactDB, DatingProfileDB, DecisionDB, ProfileDB, session_scope, utcnow
from wingmatch.utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from wingmatch.utils.logging import get_logger
from wingmatch.utils.validators import require_id, validate_phone_number

logger = get_logger(__name__)

# Cache keys
WINGPEOPLE_CACHE_KEY = "wingpeople:{dater_id}"


def clear_wingpeople_cache(dater_id: str) -> None:
    """Drop the cached roster for a dater."""
    delete_cache(WINGPEOPLE_CACHE_KEY.format(dater_id=dater_id))


def _load_contact(session: Session, contact_id: str) -> ContactDB:
    contact = session.scalars(select(ContactDB).where(ContactDB.id == contact_id).with_for_update()).first()
    if contact is None:
        raise NotFoundError(f"Contact not found: {contact_id}", details={"contact_id": contact_id})
    return contact


def link_invites_by_phone(session: Session, phone_number: str, winger_id: str) -> int:
    """
    Point unlinked invites for `phone_number` at `winger_id`.

    Runs inside the caller's transaction. Only rows whose winger is still
    unknown are touched, so an existing link is never overwritten and a
    repeat call changes nothing.

    Returns:
        int: Number of invites linked by this call.
    """
    result = session.execute(
        update(ContactDB)
        .where(
            ContactDB.phone_number == phone_number,
            ContactDB.winger_id.is_(None),
            ContactDB.wingperson_status == ContactStatus.INVITED.value,
            ContactDB.user_id != winger_id,
        )
        .values(winger_id=winger_id)
        .execution_options(synchronize_session=False)
    )
    linked = result.rowcount or 0
    if linked:
        logger.info("Invites linked by phone", winger_id=winger_id, count=linked)
    return linked


def link_by_phone(phone_number: str, winger_id: str) -> int:
    """Link pending invites for a phone number to a registered account. Idempotent."""
    phone = validate_phone_number(phone_number)
    winger_id = require_id(winger_id, "winger_id")

    with session_scope() as session:
        if session.get(ProfileDB, winger_id) is None:
            raise NotFoundError(f"Profile not found: {winger_id}", details={"user_id": winger_id})
        return link_invites_by_phone(session, phone, winger_id)


def invite(dater_id: str, phone_number: str) -> Contact:
    """
    Invite someone to wing for a dater, by phone number.

    The number does not need to belong to an account yet. If it already does,
    the invite is linked to that account straight away.

    Raises:
        ValidationError: If the phone number is malformed or is the dater's own.
        NotFoundError: If the dater does not exist.
        ConflictError: If the dater already has a live invite or relationship for this number.
    """
    dater_id = require_id(dater_id, "dater_id")
    phone = validate_phone_number(phone_number)

    with sentry_sdk.start_span(op="contact.invite", name=dater_id):
        with session_scope() as session:
            dater = session.get(ProfileDB, dater_id)
            if dater is None:
                raise NotFoundError(f"Profile not found: {dater_id}", details={"user_id": dater_id})
            if dater.phone_number == phone:
                raise ValidationError("Cannot invite your own phone number")

            existing = session.scalars(
                select(ContactDB).where(
                    ContactDB.user_id == dater_id,
                    ContactDB.phone_number == phone,
                    ContactDB.wingperson_status != ContactStatus.REMOVED.value,
                )
            ).first()
            if existing is not None:
                raise ConflictError(
                    "This number has already been invited",
                    details={"contact_id": existing.id, "status": existing.wingperson_status},
                )

            contact = ContactDB(user_id=dater_id, phone_number=phone, wingperson_status=ContactStatus.INVITED.value)
            session.add(contact)
            session.flush()

            registered = session.scalars(
                select(ProfileDB.id).where(ProfileDB.phone_number == phone).order_by(ProfileDB.created_at)
            ).first()
            if registered is not None:
                link_invites_by_phone(session, phone, registered)
                session.refresh(contact)

            created = Contact.model_validate(contact)

    logger.info("Wingperson invited", dater_id=dater_id, contact_id=created.id, linked=created.winger_id is not None)
    dispatch_invite(dater_id, phone)
    return created


def _transition_as_winger(contact_id: str, caller_id: str, target: ContactStatus) -> Contact:
    contact_id = require_id(contact_id, "contact_id")
    caller_id = require_id(caller_id, "caller_id")

    with session_scope() as session:
        contact = _load_contact(session, contact_id)
        if contact.winger_id is None or contact.winger_id != caller_id:
            raise ForbiddenError(
                "Invitation is not addressed to this user",
                details={"contact_id": contact_id, "caller_id": caller_id},
            )
        if contact.wingperson_status != ContactStatus.INVITED.value:
            raise NotFoundError(
                "No pending invitation",
                details={"contact_id": contact_id, "status": contact.wingperson_status},
            )

        contact.wingperson_status = target.value
        session.flush()
        updated = Contact.model_validate(contact)

    clear_wingpeople_cache(updated.user_id)
    logger.info("Invitation answered", contact_id=contact_id, winger_id=caller_id, status=target)
    return updated


def accept(contact_id: str, caller_id: str) -> Contact:
    """
    Accept an invitation: invited -> active.

    Raises:
        ForbiddenError: If the caller is not the linked winger.
        NotFoundError: If the contact is missing or not in the invited state.
    """
    return _transition_as_winger(contact_id, caller_id, ContactStatus.ACTIVE)


def decline(contact_id: str, caller_id: str) -> Contact:
    """Decline an invitation: invited -> removed. Same guards as `accept`."""
    return _transition_as_winger(contact_id, caller_id, ContactStatus.REMOVED)


def remove(contact_id: str, dater_id: str) -> Contact:
    """
    Remove a wingperson from the dater's roster, from any status.

    Raises:
        ForbiddenError: If the caller is not the dater who owns the contact.
        NotFoundError: If the contact does not exist.
    """
    contact_id = require_id(contact_id, "contact_id")
    dater_id = require_id(dater_id, "dater_id")

    with session_scope() as session:
        contact = _load_contact(session, contact_id)
        if contact.user_id != dater_id:
            raise ForbiddenError(
                "Only the dater can remove a wingperson",
                details={"contact_id": contact_id, "caller_id": dater_id},
            )
        contact.wingperson_status = ContactStatus.REMOVED.value
        session.flush()
        updated = Contact.model_validate(contact)

    clear_wingpeople_cache(dater_id)
    logger.info("Wingperson removed", contact_id=contact_id, dater_id=dater_id)
    return updated


def has_active_relationship(session: Session, winger_id: str, dater_id: str) -> bool:
    """Check for an active dater -> winger relationship inside an open session."""
    found = session.scalars(
        select(ContactDB.id).where(
            ContactDB.user_id == dater_id,
            ContactDB.winger_id == winger_id,
            ContactDB.wingperson_status == ContactStatus.ACTIVE.value,
        )
    ).first()
    return found is not None


def require_active_relationship(session: Session, winger_id: str, dater_id: str) -> None:
    """Raise ForbiddenError unless `winger_id` actively wings for `dater_id`."""
    if not has_active_relationship(session, winger_id, dater_id):
        logger.warning("Winger without active relationship", winger_id=winger_id, dater_id=dater_id)
        raise ForbiddenError(
            "No active wingperson relationship",
            details={"winger_id": winger_id, "dater_id": dater_id},
        )


def is_active_wingperson(winger_id: str, dater_id: str) -> bool:
    """Return True if `winger_id` actively wings for `dater_id`."""
    with session_scope() as session:
        return has_active_relationship(session, winger_id, dater_id)


def _weekly_count(session: Session, winger_id: str, dater_id: str) -> int:
    since = utcnow() - timedelta(days=settings.WEEKLY_WINDOW_DAYS)
    count = session.scalar(
        select(func.count(DecisionDB.id)).where(
            DecisionDB.suggested_by == winger_id,
            DecisionDB.actor_id == dater_id,
            DecisionDB.created_at >= since,
        )
    )
    return int(count or 0)


def get_weekly_suggestion_count(winger_id: str, dater_id: str) -> int:
    """How many decisions a winger made for a dater in the trailing window. Display only."""
    winger_id = require_id(winger_id, "winger_id")
    dater_id = require_id(dater_id, "dater_id")
    with session_scope() as session:
        return _weekly_count(session, winger_id, dater_id)


def get_wingpeople(dater_id: str) -> List[Wingperson]:
    """Active wingpeople for a dater, oldest relationship first."""
    dater_id = require_id(dater_id, "dater_id")
    cache_key = WINGPEOPLE_CACHE_KEY.format(dater_id=dater_id)
    cached = get_cache_models(cache_key, Wingperson)
    if cached is not None:
        logger.debug("Wingpeople retrieved from cache", dater_id=dater_id)
        return cached

    with session_scope() as session:
        rows = session.execute(
            select(ContactDB, ProfileDB)
            .join(ProfileDB, ProfileDB.id == ContactDB.winger_id)
            .where(ContactDB.user_id == dater_id, ContactDB.wingperson_status == ContactStatus.ACTIVE.value)
            .order_by(ContactDB.created_at, ContactDB.id)
        ).all()
        roster = [
            Wingperson(
                contact_id=contact.id,
                winger_id=winger.id,
                chosen_name=winger.chosen_name,
                gender=winger.gender,
                weekly_suggestions=_weekly_count(session, winger.id, dater_id),
                created_at=contact.created_at,
            )
            for contact, winger in rows
        ]

    set_cache(cache_key, roster, expiration=settings.ROSTER_CACHE_TTL)
    return roster


def get_incoming_invitations(winger_id: str) -> List[IncomingInvitation]:
    """Invitations addressed to a linked winger that await an answer, newest first."""
    winger_id = require_id(winger_id, "winger_id")
    with session_scope() as session:
        rows = session.execute(
            select(ContactDB, ProfileDB)
            .join(ProfileDB, ProfileDB.id == ContactDB.user_id)
            .where(ContactDB.winger_id == winger_id, ContactDB.wingperson_status == ContactStatus.INVITED.value)
            .order_by(ContactDB.created_at.desc(), ContactDB.id)
        ).all()
        return [
            IncomingInvitation(
                contact_id=contact.id,
                dater_id=dater.id,
                dater_name=dater.chosen_name,
                created_at=contact.created_at,
            )
            for contact, dater in rows
        ]


def get_winging_for(winger_id: str) -> List[WingingFor]:
    """Daters the winger actively supports, with their interests and bio."""
    winger_id = require_id(winger_id, "winger_id")
    dater = aliased(ProfileDB)
    with session_scope() as session:
        rows = session.execute(
            select(ContactDB, dater, DatingProfileDB)
            .join(dater, dater.id == ContactDB.user_id)
            .outerjoin(DatingProfileDB, DatingProfileDB.user_id == dater.id)
            .where(ContactDB.winger_id == winger_id, ContactDB.wingperson_status == ContactStatus.ACTIVE.value)
            .order_by(ContactDB.created_at, ContactDB.id)
        ).all()
        return [
            WingingFor(
                contact_id=contact.id,
                dater_id=profile.id,
                dater_name=profile.chosen_name,
                interests=list(dating_profile.interests or []) if dating_profile else [],
                bio=dating_profile.bio if dating_profile else None,
                created_at=contact.created_at,
            )
            for contact, profile, dating_profile in rows
        ]
