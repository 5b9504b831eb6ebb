"""Small pure helpers shared by the services."""

from datetime import date
from typing import Optional, Tuple


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Return the age in whole years on `today` (defaults to the current date)."""
    today = today or date.today()
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 on a non-leap target year
        return day.replace(year=day.year - years, day=28)


def birthdate_bounds(age_from: int, age_to: Optional[int], today: Optional[date] = None) -> Tuple[Optional[date], date]:
    """
    Translate an inclusive age range into date-of-birth bounds.

    Someone is at least `age_from` when born on or before the returned upper
    bound, and at most `age_to` when born strictly after the returned lower
    bound. The lower bound is None for an open-ended range.

    Returns:
        Tuple[Optional[date], date]: (exclusive lower bound, inclusive upper bound).
    """
    today = today or date.today()
    latest = _years_before(today, age_from)
    if age_to is None:
        return None, latest
    return _years_before(today, age_to + 1), latest


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """Order two user ids so the smaller comes first."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)
