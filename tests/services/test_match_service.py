from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from wingmatch.models.decision import DecisionOutcome
from wingmatch.services import decision_service, match_service, profile_service
from wingmatch.services.notification_service import Notifier, set_notifier
from wingmatch.utils.database import MatchDB, session_scope


def _match_count() -> int:
    with session_scope() as session:
        return session.scalar(select(func.count(MatchDB.id)))


@pytest.mark.parametrize("first_mover", ["a", "b"])
def test_mutual_match_idempotence(make_user, first_mover):
    users = {"a": make_user("Ana"), "b": make_user("Budi")}
    first = users[first_mover]
    second = users["b" if first_mover == "a" else "a"]

    decision_service.record_direct(first, second, DecisionOutcome.APPROVED)
    assert match_service.exists(first, second) is False
    assert match_service.on_approval(first, second) is None

    decision_service.record_direct(second, first, DecisionOutcome.APPROVED)

    for _ in range(3):
        match_service.on_approval(first, second)
        match_service.on_approval(second, first)

    assert _match_count() == 1
    match = match_service.get_match_between(second, first)
    assert (match.user_a_id, match.user_b_id) == tuple(sorted((first, second)))
    assert match_service.exists(first, second) is True
    assert match_service.exists(second, first) is True


def test_on_approval_without_own_approval(make_user):
    a = make_user("Ana")
    b = make_user("Budi")
    decision_service.record_direct(b, a, DecisionOutcome.APPROVED)
    decision_service.record_direct(a, b, DecisionOutcome.DECLINED)

    assert match_service.on_approval(a, b) is None
    assert _match_count() == 0


def test_declines_never_match(make_user):
    a = make_user("Ana")
    b = make_user("Budi")
    decision_service.record_direct(a, b, DecisionOutcome.APPROVED)
    decision_service.record_direct(b, a, DecisionOutcome.DECLINED)

    assert match_service.exists(a, b) is False
    assert match_service.get_user_matches(a) == []


def test_match_notification_sent_once(make_user):
    notifier = MagicMock(spec=Notifier)
    set_notifier(notifier)
    a = make_user("Ana")
    b = make_user("Budi")

    decision_service.record_direct(a, b, DecisionOutcome.APPROVED)
    decision_service.record_direct(b, a, DecisionOutcome.APPROVED)
    match_service.on_approval(a, b)

    notifier.notify_match.assert_called_once()


def test_get_user_matches(make_user):
    a = make_user("Ana", age=28, interests=["hiking"], bio="Coffee first")
    b = make_user("Budi", age=31, interests=["chess"], bio="Board games")
    c = make_user("Cici")
    photo = profile_service.add_photo(b, "https://cdn.example/b-2.jpg", display_order=2, approved=True)
    profile_service.add_photo(b, "https://cdn.example/b-1.jpg", display_order=1)

    decision_service.record_direct(a, b, DecisionOutcome.APPROVED)
    decision_service.record_direct(b, a, DecisionOutcome.APPROVED)
    decision_service.record_direct(a, c, DecisionOutcome.APPROVED)

    matches = match_service.get_user_matches(a)
    assert len(matches) == 1
    match = matches[0]
    assert match.user_id == b
    assert match.chosen_name == "Budi"
    assert match.age == 31
    assert match.interests == ["chess"]
    assert match.bio == "Board games"
    # Unapproved photos are skipped
    assert match.photo_url == photo.storage_url

    other_side = match_service.get_user_matches(b)
    assert [m.user_id for m in other_side] == [a]
    assert other_side[0].match_id == match.match_id


def test_wing_note_for_match(make_user, make_winger):
    a = make_user("Ana")
    b = make_user("Budi")
    winger_id = make_winger(a, "Wulan")

    decision_service.record_direct(b, a, DecisionOutcome.APPROVED)
    decision_service.suggest(a, b, winger_id, "loves hiking")
    decision_service.resolve_pending(a, b, DecisionOutcome.APPROVED)

    note = match_service.get_wing_note_for_match(a, b)
    assert note.note == "loves hiking"
    assert note.suggested_by == winger_id
    assert note.suggester_name == "Wulan"
    assert match_service.get_wing_note_for_match(b, a) is None


def test_exists_caches_positive_results(make_user):
    a = make_user("Ana")
    b = make_user("Budi")
    first, second = sorted((a, b))

    with (
        patch.object(match_service, "get_cache", return_value=None),
        patch.object(match_service, "set_cache") as mock_set,
    ):
        assert match_service.exists(a, b) is False
        mock_set.assert_not_called()

        decision_service.record_direct(a, b, DecisionOutcome.APPROVED)
        decision_service.record_direct(b, a, DecisionOutcome.APPROVED)

        assert match_service.exists(a, b) is True
        mock_set.assert_called_once_with(f"match_exists:{first}:{second}", "1", expiration=86400)

    with (
        patch.object(match_service, "get_cache", return_value="1"),
        patch.object(match_service, "get_match_between") as mock_lookup,
    ):
        assert match_service.exists(b, a) is True
        mock_lookup.assert_not_called()


def test_pair_lock_is_select_for_update_in_canonical_order():
    forward = match_service.pair_lock_statement("user-b", "user-a")
    backward = match_service.pair_lock_statement("user-a", "user-b")

    sql = str(forward.compile(dialect=postgresql.dialect()))
    assert sql.rstrip().endswith("FOR UPDATE")
    assert "ORDER BY profiles.id" in sql
    assert list(forward.compile().params.values()) == list(backward.compile().params.values())


def test_on_approval_locks_the_pair(make_user):
    a = make_user("Ana")
    b = make_user("Budi")
    decision_service.record_direct(a, b, DecisionOutcome.APPROVED)
    decision_service.record_direct(b, a, DecisionOutcome.APPROVED)

    with patch.object(match_service, "lock_pair", wraps=match_service.lock_pair) as mock_lock:
        match_service.on_approval(a, b)

    mock_lock.assert_called_once()
    assert mock_lock.call_args.args[1:] == (a, b)
