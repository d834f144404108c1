"""
Time and calendar helpers.

Everything in the engine works in "minutes from local midnight" and keys dates
by the room's local calendar day. These helpers are pure (stdlib only) so the
data models can use them for input normalisation.
"""

import math
import re
from datetime import date as date_type, datetime, timedelta, tzinfo
from typing import List, Optional, Union

from .constants import HORIZON_DAYS, SLOT_MINUTES, WEEKEND

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DateLike = Union[str, date_type, datetime]


def minutes_of(value: Optional[str]) -> int:
    """'HH:MM' -> minutes from midnight. Empty or malformed input yields 0."""
    if not value or ":" not in value:
        return 0
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def format_minutes(minutes: int) -> str:
    """Minutes from midnight -> 'HH:MM' (24:00 is allowed as an end marker)."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_local_date(value: DateLike, tz: Optional[tzinfo] = None) -> str:
    """
    Normalise a date-ish value to the local 'YYYY-MM-DD' key.

    Pre-formatted date strings pass through untouched. Aware datetimes are
    converted to ``tz`` (or the process-local zone) before the day is taken,
    so a late-evening UTC timestamp never lands on the wrong day.
    """
    if isinstance(value, str):
        value = value.strip()
        if _DATE_ONLY.match(value):
            return value
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date().isoformat()

    if isinstance(value, date_type):
        return value.isoformat()

    raise ValueError(f"Unsupported date value: {value!r}")


def parse_local_date(value: DateLike, tz: Optional[tzinfo] = None) -> date_type:
    return date_type.fromisoformat(to_local_date(value, tz))


def ceil_to_slot(seconds: float) -> int:
    """Provider seconds -> minutes, rounded up to a whole number of slots."""
    if not seconds or seconds <= 0:
        return 0
    return math.ceil(seconds / 60 / SLOT_MINUTES) * SLOT_MINUTES


def ceil_minutes(seconds: float) -> int:
    if not seconds or seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


def intervals_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open interval test: [start1, end1) vs [start2, end2)."""
    return start1 < end2 and end1 > start2


def weekday_horizon(start: date_type, days: int = HORIZON_DAYS) -> List[date_type]:
    """
    Candidate dates for relocation: ``start`` and the following calendar days
    up to ``days`` offsets, with Saturdays and Sundays dropped.
    """
    candidates = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        if day.weekday() in WEEKEND:
            continue
        candidates.append(day)
    return candidates


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours} h {mins} min"
    if hours:
        return f"{hours} h"
    return f"{mins} min"
