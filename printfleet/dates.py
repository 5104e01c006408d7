"""Date helpers for the reporting engine.

Provides:
- strict ``dd/mm/yyyy`` validation as used by the request intake form
- lenient timestamp parsing for values coming back from the store
- calendar-month arithmetic for bucketing and month-range predicates

Unparsable store values are never fatal: ``parse_timestamp`` returns None and
callers skip the record.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, tzinfo
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo

MonthKey = tuple[int, int]

_DMY_REGEX = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


class InvalidDateError(ValueError):
    """Raised when a ``dd/mm/yyyy`` string fails validation."""


def parse_dmy(text: str) -> date:
    """Validate a ``dd/mm/yyyy`` string and return the calendar date.

    Args:
        text: User-entered date, e.g. ``"29/02/2024"``.

    Returns:
        The parsed date.

    Raises:
        InvalidDateError: with a user-facing message describing the problem.
    """
    match = _DMY_REGEX.match((text or "").strip())
    if not match:
        raise InvalidDateError("Formato inválido. Use dd/mm/yyyy")

    day, month, year = (int(part) for part in match.groups())
    if month < 1 or month > 12:
        raise InvalidDateError("Mes inválido (1-12)")
    if day < 1 or day > 31:
        raise InvalidDateError("Día inválido (1-31)")
    if year < 1:
        raise InvalidDateError("Año inválido")
    if day > calendar.monthrange(year, month)[1]:
        raise InvalidDateError(f"Día inválido para {month}/{year}")
    return date(year, month, day)


def dmy_to_iso(text: str) -> str:
    """Return the ISO ``yyyy-mm-dd`` form of a valid ``dd/mm/yyyy`` string."""
    return parse_dmy(text).isoformat()


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a store value into a datetime, or None when it cannot be parsed.

    Accepts datetimes, dates (midnight), ISO-8601 strings (a trailing ``Z`` is
    treated as UTC) and ``dd/mm/yyyy`` strings. Naive results are returned
    naive; callers attach the report timezone.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if _DMY_REGEX.match(text):
        try:
            return datetime.combine(parse_dmy(text), time.min)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


@lru_cache(maxsize=32)
def get_zone(name: str) -> ZoneInfo:
    """Return a cached ZoneInfo for an IANA timezone name."""
    return ZoneInfo(name)


def to_zone(moment: datetime, tz: tzinfo) -> datetime:
    """Express ``moment`` in ``tz``; naive values are taken to already be local."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def month_key(moment: datetime) -> MonthKey:
    return (moment.year, moment.month)


def shift_month(key: MonthKey, delta: int) -> MonthKey:
    """Move a ``(year, month)`` key by ``delta`` months."""
    index = key[0] * 12 + (key[1] - 1) + delta
    return (index // 12, index % 12 + 1)


def month_window(now: datetime, months: int) -> list[MonthKey]:
    """Return ``months`` consecutive month keys ending at ``now``'s month, oldest first."""
    if months < 1:
        raise ValueError("months must be >= 1")
    current = month_key(now)
    return [shift_month(current, -offset) for offset in range(months - 1, -1, -1)]


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Return ``[start of now's month, start of next month)`` in now's timezone."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    year, month = shift_month(month_key(now), 1)
    return start, start.replace(year=year, month=month)
