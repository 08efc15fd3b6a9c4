"""Engine exceptions.

Advisory findings (soft rules, anomalies, low trust) are never raised; only
blocking validation, malformed clock input and concurrency conflicts are.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from timetrust.models.validation import ValidationResult


class TimeTrustError(Exception):
    """Base class for all engine errors."""


class TimeParseError(TimeTrustError, ValueError):
    """A clock string could not be parsed as HH:MM."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid clock time: {value!r} (expected HH:MM)")
        self.value = value


class BlockingValidationError(TimeTrustError):
    """Hard validation rules failed; the entry must not be persisted."""

    def __init__(self, entry_id: str, results: list[ValidationResult]) -> None:
        codes = ", ".join(r.code for r in results)
        super().__init__(f"Entry {entry_id} blocked by hard rules: {codes}")
        self.entry_id = entry_id
        self.results = results


class InsufficientHistoryError(TimeTrustError):
    """A statistic was requested on fewer samples than its guard allows."""

    def __init__(self, check: str, required: int, available: int) -> None:
        super().__init__(
            f"{check}: needs at least {required} entries, got {available}"
        )
        self.check = check
        self.required = required
        self.available = available


class StaleEntryCollectionError(TimeTrustError):
    """The owner-day changed since the caller read it (optimistic concurrency)."""

    def __init__(self, owner_id: str, date: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Entries for {owner_id} on {date} changed "
            f"(expected version {expected[:12]}, found {actual[:12]})"
        )
        self.owner_id = owner_id
        self.date = date
        self.expected = expected
        self.actual = actual
