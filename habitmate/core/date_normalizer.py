"""Calendar date normalization.

Completion rows arrive as plain ``YYYY-MM-DD`` strings, ISO timestamps or
date objects depending on where they were read from. Everything that compares
days goes through :func:`normalize_date` first so that all comparisons happen
on the same canonical local-date string.
"""

import re
from datetime import date, datetime, timedelta, tzinfo
from functools import cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habitmate.core.config import settings
from habitmate.core.errors import DateParseError


_CANONICAL_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


@cache
def configured_timezone() -> tzinfo | None:
    """Return the configured IANA zone, or None to use the system local zone."""
    if not settings.timezone:
        return None
    try:
        return ZoneInfo(settings.timezone)
    except ZoneInfoNotFoundError as e:
        raise DateParseError(f"Unknown timezone: {settings.timezone}") from e


def format_date(value: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return value.strftime("%Y-%m-%d")


def _local_date_of(moment: datetime, tz: tzinfo | None) -> date:
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz or configured_timezone()).date()


def to_date(value: object, *, tz: tzinfo | None = None) -> date:
    """Interpret ``value`` as a local calendar date.

    Raises:
        DateParseError: If the value is not a date, datetime or parseable string
    """
    # datetime is a subclass of date, so it has to be checked first
    if isinstance(value, datetime):
        return _local_date_of(value, tz)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise DateParseError(f"Unsupported date value: {value!r}")

    text = value.strip()
    if not text:
        raise DateParseError("Empty date value")

    try:
        if _CANONICAL_DATE.fullmatch(text):
            return date.fromisoformat(text)
        return _local_date_of(datetime.fromisoformat(text), tz)
    except ValueError as e:
        raise DateParseError(f"Invalid date value: {value!r}") from e


def normalize_date(value: object, *, tz: tzinfo | None = None) -> str:
    """Return the canonical ``YYYY-MM-DD`` local date string for ``value``.

    Canonical strings come back unchanged, timestamps carrying an offset are
    moved into ``tz`` (the configured zone when omitted) before the date is
    taken, and naive timestamps are assumed to already be local.
    """
    if isinstance(value, str) and _CANONICAL_DATE.fullmatch(value):
        # Validate without reformatting so the round trip is exact
        to_date(value)
        return value
    return format_date(to_date(value, tz=tz))


def local_today(now: datetime, *, tz: tzinfo | None = None) -> date:
    """Return the local calendar date of an injected ``now``."""
    return _local_date_of(now, tz)


def previous_day(value: date) -> date:
    return value - timedelta(days=1)
