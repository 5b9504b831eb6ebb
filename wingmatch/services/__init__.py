"""Services package for the WingMatch engine."""

from wingmatch.services.decision_service import (
    get_active_winger_tabs,
    pending_suggestions_for,
    record_direct,
    resolve_pending,
    suggest,
    suggest_decline,
)
from wingmatch.services.match_service import exists, get_user_matches, get_wing_note_for_match, on_approval
from wingmatch.services.pool_service import resolve_discover_pool, resolve_wing_pool
from wingmatch.services.relationship_service import (
    accept,
    decline,
    get_incoming_invitations,
    get_weekly_suggestion_count,
    get_winging_for,
    get_wingpeople,
    invite,
    link_by_phone,
    remove,
)
from wingmatch.services.swipe_session import DiscoverSession, SwipeOutcome, SwipeResult, WingSwipeSession

__all__ = [
    "DiscoverSession",
    "SwipeOutcome",
    "SwipeResult",
    "WingSwipeSession",
    "accept",
    "decline",
    "exists",
    "get_active_winger_tabs",
    "get_incoming_invitations",
    "get_user_matches",
    "get_weekly_suggestion_count",
    "get_wing_note_for_match",
    "get_winging_for",
    "get_wingpeople",
    "invite",
    "link_by_phone",
    "on_approval",
    "pending_suggestions_for",
    "record_direct",
    "remove",
    "resolve_discover_pool",
    "resolve_pending",
    "resolve_wing_pool",
    "suggest",
    "suggest_decline",
]
