"""Decision store: direct swipes, wingperson suggestions and their resolution.

Every write first locks the pair's two profiles, so decisions on one pair are
serialized across sessions and devices. Approval writes run match detection
in the same transaction, so an approved pair can never be left without its
match row.
"""

from typing import List, Optional

import sentry_sdk
from sqlalchemy import select, update
from sqlalchemy.orm import Session, aliased

from wingmatch.models.decision import (
    Decision,
    DecisionOutcome,
    PendingSuggestion,
    PendingSuggestions,
    WingerTab,
)
from wingmatch.models.match import Match
from wingmatch.services.match_service import detect_match, lock_pair
from wingmatch.services.notification_service import dispatch_match, dispatch_suggestion
from wingmatch.services.relationship_service import clear_wingpeople_cache, require_active_relationship
from wingmatch.utils.database import DecisionDB, ProfileDB, session_scope
from wingmatch.utils.errors import ConflictError, NotFoundError, ValidationError
from wingmatch.utils.logging import get_logger
from wingmatch.utils.validators import require_distinct, require_id, validate_note

logger = get_logger(__name__)


def parse_outcome(outcome: object) -> DecisionOutcome:
    """Coerce an outcome value, rejecting anything but approved/declined."""
    if isinstance(outcome, DecisionOutcome):
        return outcome
    try:
        return DecisionOutcome(str(outcome))
    except ValueError as e:
        raise ValidationError("Invalid decision outcome", details={"outcome": str(outcome)}) from e


def _require_profile(session: Session, user_id: str) -> None:
    if session.get(ProfileDB, user_id) is None:
        raise NotFoundError(f"Profile not found: {user_id}", details={"user_id": user_id})


def _decisions_for_pair(session: Session, actor_id: str, recipient_id: str) -> List[DecisionDB]:
    return list(
        session.scalars(
            select(DecisionDB)
            .where(DecisionDB.actor_id == actor_id, DecisionDB.recipient_id == recipient_id)
            .order_by(DecisionDB.created_at, DecisionDB.id)
        ).all()
    )


def _after_approval(session: Session, actor_id: str, recipient_id: str) -> Optional[Match]:
    match, created = detect_match(session, actor_id, recipient_id)
    return match if created else None


def record_direct(actor_id: str, recipient_id: str, outcome: DecisionOutcome | str) -> Decision:
    """
    Record a like or pass from the actor's own Discover screen.

    Raises:
        ValidationError: On missing ids, a self-swipe, or an invalid outcome.
        NotFoundError: If either profile does not exist.
        ConflictError: If any decision, pending or resolved, already governs the pair.
    """
    actor_id = require_id(actor_id, "actor_id")
    recipient_id = require_id(recipient_id, "recipient_id")
    require_distinct(actor_id, recipient_id, "Cannot decide on your own profile")
    result = parse_outcome(outcome)

    new_match: Optional[Match] = None
    with sentry_sdk.start_span(op="decision.record_direct", name=f"{actor_id} -> {recipient_id}") as span:
        with session_scope() as session:
            lock_pair(session, actor_id, recipient_id)
            _require_profile(session, actor_id)
            _require_profile(session, recipient_id)

            existing = _decisions_for_pair(session, actor_id, recipient_id)
            if existing:
                raise ConflictError(
                    "A decision already exists for this pair",
                    details={"actor_id": actor_id, "recipient_id": recipient_id, "decision_id": existing[0].id},
                )

            row = DecisionDB(actor_id=actor_id, recipient_id=recipient_id, decision=result.value)
            session.add(row)
            session.flush()
            decision = Decision.model_validate(row)

            if result == DecisionOutcome.APPROVED:
                new_match = _after_approval(session, actor_id, recipient_id)

        span.set_data("outcome", result.value)
        span.set_data("matched", new_match is not None)

    logger.info("Decision recorded", actor_id=actor_id, recipient_id=recipient_id, outcome=result.value)
    if new_match is not None:
        dispatch_match(new_match.user_a_id, new_match.user_b_id)
    return decision


def resolve_pending(actor_id: str, recipient_id: str, outcome: DecisionOutcome | str) -> int:
    """
    Resolve the pending suggestion(s) for a pair.

    Updates the row(s) where the decision is still null; no row is ever
    created. The update is a single conditional statement, so two racing
    resolutions cannot both succeed.

    Returns:
        int: Number of rows updated. Zero means nothing was pending, which
        callers treat as a soft failure.
    """
    actor_id = require_id(actor_id, "actor_id")
    recipient_id = require_id(recipient_id, "recipient_id")
    result = parse_outcome(outcome)

    new_match: Optional[Match] = None
    with sentry_sdk.start_span(op="decision.resolve_pending", name=f"{actor_id} -> {recipient_id}"):
        with session_scope() as session:
            lock_pair(session, actor_id, recipient_id)
            updated = session.execute(
                update(DecisionDB)
                .where(
                    DecisionDB.actor_id == actor_id,
                    DecisionDB.recipient_id == recipient_id,
                    DecisionDB.decision.is_(None),
                )
                .values(decision=result.value)
                .execution_options(synchronize_session=False)
            ).rowcount or 0

            if updated and result == DecisionOutcome.APPROVED:
                new_match = _after_approval(session, actor_id, recipient_id)

    if not updated:
        logger.warning("No pending suggestion to resolve", actor_id=actor_id, recipient_id=recipient_id)
        return 0

    logger.info(
        "Suggestion resolved", actor_id=actor_id, recipient_id=recipient_id, outcome=result.value, rows=updated
    )
    if new_match is not None:
        dispatch_match(new_match.user_a_id, new_match.user_b_id)
    return updated


def _insert_suggestion(
    dater_id: str,
    recipient_id: str,
    winger_id: str,
    decision: Optional[DecisionOutcome],
    note: Optional[str],
) -> Decision:
    with session_scope() as session:
        require_active_relationship(session, winger_id, dater_id)
        lock_pair(session, dater_id, recipient_id)
        _require_profile(session, recipient_id)

        existing = _decisions_for_pair(session, dater_id, recipient_id)
        for row in existing:
            if row.decision is not None:
                raise ConflictError(
                    "The dater already has a decision for this profile",
                    details={"actor_id": dater_id, "recipient_id": recipient_id, "decision_id": row.id},
                )
            if row.suggested_by == winger_id:
                raise ConflictError(
                    "This profile was already suggested by this wingperson",
                    details={"actor_id": dater_id, "recipient_id": recipient_id, "decision_id": row.id},
                )

        row = DecisionDB(
            actor_id=dater_id,
            recipient_id=recipient_id,
            decision=decision.value if decision else None,
            suggested_by=winger_id,
            note=note,
        )
        session.add(row)
        session.flush()
        created = Decision.model_validate(row)

    clear_wingpeople_cache(dater_id)
    return created


def suggest(dater_id: str, recipient_id: str, winger_id: str, note: Optional[str] = None) -> Decision:
    """
    Suggest a candidate to a dater on the winger's behalf.

    Leaves the decision pending until the dater acts. Another winger may
    already have a pending suggestion for the same candidate; a resolved
    decision or a repeat by the same winger is a conflict.

    Raises:
        ForbiddenError: If the winger has no active relationship with the dater.
        ConflictError: If the dater already decided, or this winger already suggested.
    """
    dater_id = require_id(dater_id, "dater_id")
    recipient_id = require_id(recipient_id, "recipient_id")
    winger_id = require_id(winger_id, "winger_id")
    require_distinct(dater_id, recipient_id, "Cannot suggest a dater to themselves")
    cleaned_note = validate_note(note)

    with sentry_sdk.start_span(op="decision.suggest", name=f"{winger_id} for {dater_id}"):
        decision = _insert_suggestion(dater_id, recipient_id, winger_id, None, cleaned_note)

    logger.info(
        "Suggestion recorded",
        actor_id=dater_id,
        recipient_id=recipient_id,
        suggested_by=winger_id,
        has_note=cleaned_note is not None,
    )
    dispatch_suggestion(dater_id, winger_id)
    return decision


def suggest_decline(dater_id: str, recipient_id: str, winger_id: str) -> Decision:
    """Screen out a candidate for a dater without asking them. Terminal on creation."""
    dater_id = require_id(dater_id, "dater_id")
    recipient_id = require_id(recipient_id, "recipient_id")
    winger_id = require_id(winger_id, "winger_id")
    require_distinct(dater_id, recipient_id, "Cannot decide on a dater's own profile")

    with sentry_sdk.start_span(op="decision.suggest_decline", name=f"{winger_id} for {dater_id}"):
        decision = _insert_suggestion(dater_id, recipient_id, winger_id, DecisionOutcome.DECLINED, None)

    logger.info("Wing decline recorded", actor_id=dater_id, recipient_id=recipient_id, suggested_by=winger_id)
    return decision


def get_decisions(actor_id: str, recipient_id: str) -> List[Decision]:
    """Every decision row for an ordered pair, oldest first."""
    actor_id = require_id(actor_id, "actor_id")
    recipient_id = require_id(recipient_id, "recipient_id")
    with session_scope() as session:
        return [Decision.model_validate(row) for row in _decisions_for_pair(session, actor_id, recipient_id)]


def pending_suggestions_for(dater_id: str) -> PendingSuggestions:
    """
    Pending wingperson suggestions for a dater, newest first.

    Also returns the distinct suggesting wingers, ordered by their earliest
    pending suggestion, for the Discover tab bar.
    """
    dater_id = require_id(dater_id, "dater_id")
    winger = aliased(ProfileDB)

    with session_scope() as session:
        rows = session.execute(
            select(DecisionDB, winger)
            .join(winger, winger.id == DecisionDB.suggested_by)
            .where(
                DecisionDB.actor_id == dater_id,
                DecisionDB.decision.is_(None),
                DecisionDB.suggested_by.is_not(None),
            )
            .order_by(DecisionDB.created_at.desc(), DecisionDB.id)
        ).all()

        suggestions = [
            PendingSuggestion(
                id=row.id,
                recipient_id=row.recipient_id,
                note=row.note,
                created_at=row.created_at,
                winger=WingerTab(winger_id=profile.id, chosen_name=profile.chosen_name),
            )
            for row, profile in rows
        ]

    wingers: List[WingerTab] = []
    for suggestion in sorted(suggestions, key=lambda s: (s.created_at, s.id)):
        if all(tab.winger_id != suggestion.winger.winger_id for tab in wingers):
            wingers.append(suggestion.winger)

    logger.debug("Pending suggestions loaded", dater_id=dater_id, count=len(suggestions), wingers=len(wingers))
    return PendingSuggestions(suggestions=suggestions, wingers=wingers)


def get_active_winger_tabs(dater_id: str) -> List[WingerTab]:
    """Distinct wingers with pending suggestions for the dater."""
    return pending_suggestions_for(dater_id).wingers
