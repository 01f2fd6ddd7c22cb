"""Consecutive-day streak computation.

A streak counts consecutive calendar days ending at an anchor day. The anchor
is today when today is completed; otherwise yesterday, so an unbroken run is
still shown while today's check-in is pending (the grace day). Without either
the streak is 0.
"""

from collections.abc import Iterable
from datetime import date, timedelta

from habitmate.core.config import Constants
from habitmate.core.date_normalizer import normalize_date, previous_day, to_date


def completion_date_set(dates: Iterable[object]) -> frozenset[str]:
    """Normalize and deduplicate completion dates."""
    return frozenset(normalize_date(d) for d in dates)


def streak_anchor(date_set: frozenset[str], *, today: date) -> date | None:
    """Return the day the streak is counted back from, or None when it is broken."""
    if normalize_date(today) in date_set:
        return today
    yesterday = previous_day(today)
    if normalize_date(yesterday) in date_set:
        return yesterday
    return None


def calculate_streak(dates: Iterable[object], *, today: date | str) -> int:
    """Return the current streak for a collection of completion dates.

    Args:
        dates: Completion dates in any supported representation, any order,
            duplicates allowed
        today: The reference day (never read from the clock here)

    Returns:
        Number of consecutive completed days ending at today or yesterday
    """
    date_set = completion_date_set(dates)
    if not date_set:
        return 0

    anchor = streak_anchor(date_set, today=to_date(today))
    if anchor is None:
        return 0

    streak = 0
    cursor = anchor
    for _ in range(Constants.STREAK_LOOKBACK_LIMIT):
        if normalize_date(cursor) not in date_set:
            break
        streak += 1
        cursor = previous_day(cursor)

    return streak


def calculate_longest_streak(dates: Iterable[object]) -> int:
    """Return the longest run of consecutive days anywhere in the history."""
    days = sorted(to_date(d) for d in completion_date_set(dates))

    longest = 0
    run = 0
    last_day: date | None = None
    for day in days:
        if last_day is not None and day == last_day + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        last_day = day

    return longest
