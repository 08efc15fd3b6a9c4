"""Interval utilities — clock parsing, overlap and gap arithmetic.

Pure functions, no logging. All intervals are same-day: an end at or before
its start is a negative duration, never an overnight shift.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import TYPE_CHECKING

from timetrust.exceptions import TimeParseError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timetrust.models.entry import TimeInterval

_CLOCK_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})\s*$")

MINUTES_PER_DAY = 24 * 60
EXACT_HOUR_EPSILON = 1e-9


def parse_clock(value: str) -> int:
    """Parse "HH:MM" into minutes after midnight.

    "24:00" is accepted as end-of-day (1440).
    """
    if not isinstance(value, str):
        raise TimeParseError(value)
    match = _CLOCK_RE.match(value)
    if match is None:
        raise TimeParseError(value)
    hours, minutes = int(match["h"]), int(match["m"])
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise TimeParseError(value)
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    """Format minutes after midnight as "HH:MM" (wrapping past midnight)."""
    minutes = int(round(minutes)) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_instant(day: dt.date, clock: str) -> dt.datetime:
    """Combine a calendar date and "HH:MM" into a naive local datetime."""
    return dt.datetime.combine(day, dt.time.min) + dt.timedelta(minutes=parse_clock(clock))


def duration_hours(start: str, end: str) -> float:
    """Hours between two same-day clock values (negative if end < start)."""
    return (parse_clock(end) - parse_clock(start)) / 60


def entry_bounds(entry: TimeInterval) -> tuple[int, int]:
    """(start, end) of an entry in minutes after midnight."""
    return parse_clock(entry.start_time), parse_clock(entry.end_time)


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap test: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def entries_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    """True when two entries of the same date share at least one minute."""
    if a.date != b.date:
        return False
    return intervals_overlap(*entry_bounds(a), *entry_bounds(b))


def overlap_window(a: TimeInterval, b: TimeInterval) -> tuple[int, int] | None:
    """(start, end) minutes shared by two entries, or None."""
    if not entries_overlap(a, b):
        return None
    a_start, a_end = entry_bounds(a)
    b_start, b_end = entry_bounds(b)
    return max(a_start, b_start), min(a_end, b_end)


def gap_minutes(earlier: TimeInterval, later: TimeInterval) -> int:
    """Unoccupied minutes between two chronologically adjacent entries.

    Negative when they overlap.
    """
    return parse_clock(later.start_time) - parse_clock(earlier.end_time)


def sort_chronologically(entries: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Sort by (date, start minute, end minute, id) so ties are stable."""
    return sorted(
        entries,
        key=lambda e: (e.date, parse_clock(e.start_time), parse_clock(e.end_time), e.id),
    )


def is_exact_hour(hours: float, tolerance: float = EXACT_HOUR_EPSILON) -> bool:
    """True when ``hours`` is within ``tolerance`` of a whole number."""
    return abs(hours - round(hours)) <= tolerance


def start_hour(entry: TimeInterval) -> int:
    """The hour-of-day an entry starts in (0–23)."""
    return parse_clock(entry.start_time) // 60


def is_parseable(entry: TimeInterval) -> bool:
    """True when both clock values of an entry parse."""
    try:
        entry_bounds(entry)
    except TimeParseError:
        return False
    return True
