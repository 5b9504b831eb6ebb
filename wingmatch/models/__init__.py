"""Models package for the WingMatch engine."""

from wingmatch.models.card import DiscoverCard, PoolTab, WingCard
from wingmatch.models.contact import Contact, ContactStatus, IncomingInvitation, Wingperson, WingingFor
from wingmatch.models.decision import Decision, DecisionOutcome, PendingSuggestion, PendingSuggestions, WingerTab
from wingmatch.models.match import Match, UserMatch, WingNote
from wingmatch.models.profile import DatingProfile, DatingStatus, Gender, Photo, Profile, Role

__all__ = [
    "Contact",
    "ContactStatus",
    "DatingProfile",
    "DatingStatus",
    "Decision",
    "DecisionOutcome",
    "DiscoverCard",
    "Gender",
    "IncomingInvitation",
    "Match",
    "PendingSuggestion",
    "PendingSuggestions",
    "Photo",
    "PoolTab",
    "Profile",
    "Role",
    "UserMatch",
    "WingCard",
    "WingNote",
    "WingerTab",
    "Wingperson",
    "WingingFor",
]
