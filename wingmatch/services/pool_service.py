"""Pool resolver: paginated candidate pools for Discover and WingSwipe.

A candidate qualifies for a viewer's pool only if all of these hold:

1. their dating status is `open`;
2. they are not the viewer (nor, on WingSwipe, the acting winger);
3. their gender is in the viewer's interested genders (an empty set means
   no restriction);
4. their age, derived from date of birth today, is within the viewer's
   `[age_from, age_to or infinity]`;
5. the viewer has no decision row about them, pending or resolved.
   The one exception is a pending suggestion, which is exactly what the
   winger and "All" tabs exist to show.

Pages are ordered by (profile creation time, profile id) so repeated fetches
with increasing offsets never skip or repeat a candidate for a fixed snapshot.
"""

from datetime import date
from typing import Any, List, Optional

import sentry_sdk
from sqlalchemy import Select, exists, func, or_, select
from sqlalchemy.orm import Session, aliased

from wingmatch.config import settings
from wingmatch.models.card import DiscoverCard, PoolTab, WingCard
from wingmatch.models.profile import DatingStatus
from wingmatch.services.relationship_service import require_active_relationship
from wingmatch.utils.database import DatingProfileDB, DecisionDB, ProfileDB, ProfilePhotoDB, session_scope
from wingmatch.utils.errors import NotFoundError, ValidationError
from wingmatch.utils.helpers import birthdate_bounds, calculate_age
from wingmatch.utils.logging import get_logger
from wingmatch.utils.validators import require_id, validate_page

logger = get_logger(__name__)


def _load_preferences(session: Session, user_id: str) -> DatingProfileDB:
    dating_profile = session.scalars(select(DatingProfileDB).where(DatingProfileDB.user_id == user_id)).first()
    if dating_profile is None:
        raise NotFoundError(f"Dating profile not found: {user_id}", details={"user_id": user_id})
    return dating_profile


def _first_photo() -> Any:
    return (
        select(ProfilePhotoDB.storage_url)
        .where(ProfilePhotoDB.dating_profile_id == DatingProfileDB.id, ProfilePhotoDB.approved_at.is_not(None))
        .order_by(ProfilePhotoDB.display_order, ProfilePhotoDB.id)
        .limit(1)
        .correlate(DatingProfileDB)
        .scalar_subquery()
        .label("first_photo")
    )


def _any_decision(actor_id: str) -> Any:
    return exists().where(DecisionDB.actor_id == actor_id, DecisionDB.recipient_id == ProfileDB.id)


def _resolved_decision(actor_id: str) -> Any:
    return exists().where(
        DecisionDB.actor_id == actor_id,
        DecisionDB.recipient_id == ProfileDB.id,
        DecisionDB.decision.is_not(None),
    )


def _eligible_candidates(
    preferences: DatingProfileDB,
    excluded_ids: List[str],
    today: Optional[date] = None,
) -> Select[Any]:
    """Base statement applying eligibility rules 1-4 against `preferences`."""
    earliest, latest = birthdate_bounds(preferences.age_from, preferences.age_to, today)

    conditions = [
        DatingProfileDB.dating_status == DatingStatus.OPEN.value,
        ProfileDB.id.not_in(excluded_ids),
        ProfileDB.date_of_birth.is_not(None),
        ProfileDB.date_of_birth <= latest,
    ]
    if earliest is not None:
        conditions.append(ProfileDB.date_of_birth > earliest)

    interested = list(preferences.interested_gender or [])
    if interested:
        conditions.append(ProfileDB.gender.in_(interested))

    return (
        select(ProfileDB, DatingProfileDB, _first_photo())
        .join(DatingProfileDB, DatingProfileDB.user_id == ProfileDB.id)
        .where(*conditions)
    )


def _paginate(stmt: Select[Any], page_size: int, offset: int) -> Select[Any]:
    return stmt.order_by(ProfileDB.created_at, ProfileDB.id).limit(page_size).offset(offset)


def _card_fields(profile: ProfileDB, dating_profile: DatingProfileDB, first_photo: Optional[str], today: date) -> dict:
    return {
        "profile_id": dating_profile.id,
        "user_id": profile.id,
        "chosen_name": profile.chosen_name,
        "gender": profile.gender,
        "age": calculate_age(profile.date_of_birth, today),
        "city": dating_profile.city,
        "bio": dating_profile.bio,
        "dating_status": dating_profile.dating_status,
        "interests": list(dating_profile.interests or []),
        "first_photo": first_photo,
    }


def resolve_discover_pool(
    viewer_id: str,
    filter_winger_id: Optional[str] = None,
    page_size: Optional[int] = None,
    offset: int = 0,
    tab: PoolTab | str = PoolTab.FOR_YOU,
    today: Optional[date] = None,
) -> List[DiscoverCard]:
    """
    Fetch one page of the viewer's Discover pool.

    Args:
        viewer_id (str): The dater browsing.
        filter_winger_id (Optional[str]): Restrict to pending suggestions from
            this winger. Setting it selects the winger tab.
        page_size (Optional[int]): Rows per page; defaults to DISCOVER_PAGE_SIZE.
        offset (int): Rows to skip.
        tab (PoolTab): FOR_YOU or ALL when no winger filter is given.
        today (Optional[date]): Reference date for ages; defaults to today.

    Returns:
        List[DiscoverCard]: Fewer than `page_size` cards only when exhausted.

    Raises:
        ValidationError: On bad ids, paging or tab values.
        NotFoundError: If the viewer has no dating profile.
    """
    viewer_id = require_id(viewer_id, "viewer_id")
    page_size = page_size or settings.DISCOVER_PAGE_SIZE
    validate_page(page_size, offset)
    try:
        tab = PoolTab(tab)
    except ValueError as e:
        raise ValidationError("Invalid tab", details={"tab": str(tab)}) from e
    if filter_winger_id:
        tab = PoolTab.WINGER
    elif tab == PoolTab.WINGER:
        raise ValidationError("The winger tab requires filter_winger_id")
    today = today or date.today()

    with sentry_sdk.start_span(op="pool.discover", name=viewer_id) as span:
        span.set_data("tab", tab.value)
        with session_scope() as session:
            preferences = _load_preferences(session, viewer_id)

            # One pending suggestion per candidate: the earliest one wins.
            ranked = (
                select(
                    DecisionDB.recipient_id,
                    DecisionDB.note,
                    DecisionDB.suggested_by,
                    func.row_number()
                    .over(partition_by=DecisionDB.recipient_id, order_by=(DecisionDB.created_at, DecisionDB.id))
                    .label("rank"),
                )
                .where(
                    DecisionDB.actor_id == viewer_id,
                    DecisionDB.decision.is_(None),
                    DecisionDB.suggested_by.is_not(None),
                )
            )
            if tab == PoolTab.WINGER:
                ranked = ranked.where(DecisionDB.suggested_by == filter_winger_id)
            ranked_sq = ranked.subquery()
            suggestion = select(ranked_sq).where(ranked_sq.c.rank == 1).subquery()
            suggester = aliased(ProfileDB)

            stmt = (
                _eligible_candidates(preferences, [viewer_id], today)
                .add_columns(suggestion.c.note, suggestion.c.suggested_by, suggester.chosen_name)
                .outerjoin(suggestion, suggestion.c.recipient_id == ProfileDB.id)
                .outerjoin(suggester, suggester.id == suggestion.c.suggested_by)
            )

            if tab == PoolTab.FOR_YOU:
                stmt = stmt.where(~_any_decision(viewer_id))
            elif tab == PoolTab.WINGER:
                stmt = stmt.where(suggestion.c.recipient_id.is_not(None), ~_resolved_decision(viewer_id))
            else:
                stmt = stmt.where(
                    ~_resolved_decision(viewer_id),
                    or_(suggestion.c.recipient_id.is_not(None), ~_any_decision(viewer_id)),
                )

            rows = session.execute(_paginate(stmt, page_size, offset)).all()
            cards = [
                DiscoverCard(
                    **_card_fields(profile, dating_profile, first_photo, today),
                    wing_note=note,
                    suggested_by=suggested_by,
                    suggester_name=suggester_name,
                )
                for profile, dating_profile, first_photo, note, suggested_by, suggester_name in rows
            ]

        span.set_data("count", len(cards))

    logger.debug(
        "Discover pool resolved",
        viewer_id=viewer_id,
        tab=tab.value,
        filter_winger_id=filter_winger_id,
        offset=offset,
        count=len(cards),
    )
    return cards


def resolve_wing_pool(
    winger_id: str,
    dater_id: str,
    page_size: Optional[int] = None,
    offset: int = 0,
    today: Optional[date] = None,
) -> List[WingCard]:
    """
    Fetch one page of candidates a winger can browse for a dater.

    Eligibility is evaluated against the dater's preferences, and anyone with
    a decision row for the dater (their own, or another winger's suggestion
    or decline) is excluded.

    Raises:
        ForbiddenError: If the winger has no active relationship with the dater.
        NotFoundError: If the dater has no dating profile.
    """
    winger_id = require_id(winger_id, "winger_id")
    dater_id = require_id(dater_id, "dater_id")
    page_size = page_size or settings.DISCOVER_PAGE_SIZE
    validate_page(page_size, offset)
    today = today or date.today()

    with sentry_sdk.start_span(op="pool.wing", name=f"{winger_id} for {dater_id}") as span:
        with session_scope() as session:
            require_active_relationship(session, winger_id, dater_id)
            preferences = _load_preferences(session, dater_id)

            stmt = _eligible_candidates(preferences, [dater_id, winger_id], today).where(~_any_decision(dater_id))
            rows = session.execute(_paginate(stmt, page_size, offset)).all()
            cards = [
                WingCard(**_card_fields(profile, dating_profile, first_photo, today))
                for profile, dating_profile, first_photo in rows
            ]

        span.set_data("count", len(cards))

    logger.debug("Wing pool resolved", winger_id=winger_id, dater_id=dater_id, offset=offset, count=len(cards))
    return cards

