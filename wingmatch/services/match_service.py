"""Match detector: derives symmetric match records from mutual approvals."""

from typing import Any, List, Optional, Tuple

import sentry_sdk
from sqlalchemy import Select, and_, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, aliased

from wingmatch.config import settings
from wingmatch.models.decision import DecisionOutcome
from wingmatch.models.match import Match, UserMatch, WingNote
from wingmatch.services.notification_service import dispatch_match
from wingmatch.utils.cache import get_cache, set_cache
from wingmatch.utils.database import (
    DatingProfileDB,
    DecisionDB,
    MatchDB,
    ProfileDB,
    ProfilePhotoDB,
    new_id,
    session_scope,
    utcnow,
)
from wingmatch.utils.helpers import calculate_age, canonical_pair
from wingmatch.utils.logging import get_logger
from wingmatch.utils.validators import require_id

logger = get_logger(__name__)

# Cache keys
MATCH_EXISTS_CACHE_KEY = "match_exists:{user_a}:{user_b}"


def pair_lock_statement(user_a: str, user_b: str) -> Select:
    """SELECT ... FOR UPDATE over both profiles of a pair, in canonical id order."""
    first, second = canonical_pair(user_a, user_b)
    return select(ProfileDB).where(ProfileDB.id.in_((first, second))).order_by(ProfileDB.id).with_for_update()


def lock_pair(session: Session, user_a: str, user_b: str) -> List[ProfileDB]:
    """
    Lock both profiles of a pair until the transaction ends.

    Every decision write on the pair takes this lock before reading existing
    decisions, so the second of two concurrent approvals always sees the
    first one committed and creates the match. Rows are locked in canonical
    order, so writers coming from either side cannot deadlock.
    """
    return list(session.scalars(pair_lock_statement(user_a, user_b)).all())


def _insert_match_if_absent(session: Session, user_a: str, user_b: str) -> bool:
    """
    Insert the canonical match row unless it already exists.

    Uses the dialect's ON CONFLICT DO NOTHING so two approvals landing at the
    same instant cannot produce a duplicate or abort the approving write.

    Returns:
        bool: True if this call created the row.
    """
    values = {"id": new_id(), "user_a_id": user_a, "user_b_id": user_b, "created_at": utcnow()}
    dialect = session.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(MatchDB).values(**values).on_conflict_do_nothing(index_elements=["user_a_id", "user_b_id"])
        return (session.execute(stmt).rowcount or 0) == 1

    existing = session.scalars(
        select(MatchDB.id).where(MatchDB.user_a_id == user_a, MatchDB.user_b_id == user_b).with_for_update()
    ).first()
    if existing is not None:
        return False
    session.add(MatchDB(**values))
    session.flush()
    return True


def detect_match(session: Session, actor_id: str, recipient_id: str) -> Tuple[Optional[Match], bool]:
    """
    Run match detection inside the transaction that wrote an approval.

    Checks for an approved decision in the reverse direction and, if present,
    ensures exactly one match row exists for the canonical pair.

    Returns:
        Tuple[Optional[Match], bool]: The match (None when not mutual) and
        whether this call created it.
    """
    reverse = session.scalars(
        select(DecisionDB.id).where(
            DecisionDB.actor_id == recipient_id,
            DecisionDB.recipient_id == actor_id,
            DecisionDB.decision == DecisionOutcome.APPROVED.value,
        )
    ).first()
    if reverse is None:
        return None, False

    user_a, user_b = canonical_pair(actor_id, recipient_id)
    created = _insert_match_if_absent(session, user_a, user_b)
    row = session.scalars(select(MatchDB).where(MatchDB.user_a_id == user_a, MatchDB.user_b_id == user_b)).one()
    match = Match.model_validate(row)

    if created:
        logger.info("Match created", match_id=match.id, user_a_id=user_a, user_b_id=user_b)
    else:
        logger.debug("Match already exists", match_id=match.id)
    return match, created


def on_approval(actor_id: str, recipient_id: str) -> Optional[Match]:
    """
    Evaluate mutuality after `actor_id` approved `recipient_id`.

    Safe to call any number of times for the same pair: the canonical pair
    is unique, so retries never create a second match.

    Returns:
        Optional[Match]: The match for the pair, or None if not mutual.
    """
    actor_id = require_id(actor_id, "actor_id")
    recipient_id = require_id(recipient_id, "recipient_id")

    with sentry_sdk.start_span(op="match.on_approval", name=f"{actor_id} -> {recipient_id}"):
        with session_scope() as session:
            lock_pair(session, actor_id, recipient_id)
            approved = session.scalars(
                select(DecisionDB.id).where(
                    DecisionDB.actor_id == actor_id,
                    DecisionDB.recipient_id == recipient_id,
                    DecisionDB.decision == DecisionOutcome.APPROVED.value,
                )
            ).first()
            if approved is None:
                return None
            match, created = detect_match(session, actor_id, recipient_id)

    if match is not None and created:
        dispatch_match(match.user_a_id, match.user_b_id)
    return match


def get_match_between(user_a: str, user_b: str) -> Optional[Match]:
    """Look up the match for a pair, in either argument order."""
    first, second = canonical_pair(require_id(user_a, "user_a"), require_id(user_b, "user_b"))
    with session_scope() as session:
        row = session.scalars(select(MatchDB).where(MatchDB.user_a_id == first, MatchDB.user_b_id == second)).first()
        return Match.model_validate(row) if row else None


def exists(user_a: str, user_b: str) -> bool:
    """
    Whether two users are matched.

    Positive answers are cached: matches are never deleted, so a hit stays true.
    """
    first, second = canonical_pair(require_id(user_a, "user_a"), require_id(user_b, "user_b"))
    cache_key = MATCH_EXISTS_CACHE_KEY.format(user_a=first, user_b=second)
    if get_cache(cache_key):
        return True

    found = get_match_between(first, second) is not None
    if found:
        set_cache(cache_key, "1", expiration=settings.MATCH_CACHE_TTL)
    logger.debug("Match existence checked", user_a_id=first, user_b_id=second, exists=found)
    return found


def _first_photo_subquery(dating_profile_id: Any) -> Any:
    return (
        select(ProfilePhotoDB.storage_url)
        .where(ProfilePhotoDB.dating_profile_id == dating_profile_id, ProfilePhotoDB.approved_at.is_not(None))
        .order_by(ProfilePhotoDB.display_order, ProfilePhotoDB.id)
        .limit(1)
        .scalar_subquery()
    )


def get_user_matches(user_id: str) -> List[UserMatch]:
    """All matches for a user, newest first, each with the other person's details."""
    user_id = require_id(user_id, "user_id")
    other = aliased(ProfileDB)

    with session_scope() as session:
        rows = session.execute(
            select(MatchDB, other, DatingProfileDB, _first_photo_subquery(DatingProfileDB.id))
            .join(
                other,
                or_(
                    and_(MatchDB.user_a_id == user_id, other.id == MatchDB.user_b_id),
                    and_(MatchDB.user_b_id == user_id, other.id == MatchDB.user_a_id),
                ),
            )
            .outerjoin(DatingProfileDB, DatingProfileDB.user_id == other.id)
            .order_by(MatchDB.created_at.desc(), MatchDB.id)
        ).all()

        return [
            UserMatch(
                match_id=match.id,
                user_id=profile.id,
                chosen_name=profile.chosen_name,
                age=calculate_age(profile.date_of_birth) if profile.date_of_birth else None,
                city=dating_profile.city if dating_profile else None,
                bio=dating_profile.bio if dating_profile else None,
                interests=list(dating_profile.interests or []) if dating_profile else [],
                photo_url=photo,
                created_at=match.created_at,
            )
            for match, profile, dating_profile, photo in rows
        ]


def get_wing_note_for_match(user_id: str, other_user_id: str) -> Optional[WingNote]:
    """The wingperson note on `user_id`'s decision about `other_user_id`, if any."""
    user_id = require_id(user_id, "user_id")
    other_user_id = require_id(other_user_id, "other_user_id")
    suggester = aliased(ProfileDB)

    with session_scope() as session:
        row = session.execute(
            select(DecisionDB.note, DecisionDB.suggested_by, suggester.chosen_name)
            .outerjoin(suggester, suggester.id == DecisionDB.suggested_by)
            .where(
                DecisionDB.actor_id == user_id,
                DecisionDB.recipient_id == other_user_id,
                DecisionDB.note.is_not(None),
            )
            .order_by(DecisionDB.created_at)
        ).first()

    if row is None:
        return None
    note, suggested_by, suggester_name = row
    return WingNote(note=note, suggested_by=suggested_by, suggester_name=suggester_name)
