"""Baseline statistics and cached aggregates over entry histories.

Owner, project and team profiles feed the anomaly detector; the
``aggregate_by_*`` helpers sum hours per owner, project or date and go
through an optional AggregationCache.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import logging
import statistics
from collections import Counter
from collections.abc import Callable, Hashable, Iterable, Sequence, Sized

from pydantic import BaseModel, ConfigDict

from timetrust.cache import AggregationCache
from timetrust.engines.intervals import parse_clock, start_hour
from timetrust.exceptions import InsufficientHistoryError, TimeParseError
from timetrust.models.entry import TimeInterval

logger = logging.getLogger(__name__)

MICRO_ENTRY_HOURS = 0.25


# === Statistics helpers ===


def mean(values: Sequence[float]) -> float:
    return statistics.fmean(values) if values else 0.0


def pstdev(values: Sequence[float]) -> float:
    """Population standard deviation (0 for fewer than two values)."""
    return statistics.pstdev(values) if len(values) > 1 else 0.0


def require_history(check: str, samples: Sized, minimum: int) -> None:
    """Raise InsufficientHistoryError when ``samples`` holds fewer than ``minimum``."""
    if len(samples) < minimum:
        raise InsufficientHistoryError(check, minimum, len(samples))


def _recency_key(entry: TimeInterval) -> tuple:
    try:
        minute = parse_clock(entry.start_time)
    except TimeParseError:
        minute = -1
    return (entry.date, minute, entry.id)


def most_recent(entries: Iterable[TimeInterval], limit: int) -> list[TimeInterval]:
    """The ``limit`` latest entries, oldest first."""
    return sorted(entries, key=_recency_key)[-limit:]


def start_hours(entries: Iterable[TimeInterval]) -> list[int]:
    """Start hours of entries whose clock values parse."""
    hours = []
    for e in entries:
        try:
            hours.append(start_hour(e))
        except TimeParseError:
            logger.debug("Skipping %s in start-hour stats: unreadable time", e.id)
    return hours


def is_micro(entry: TimeInterval) -> bool:
    return entry.duration <= MICRO_ENTRY_HOURS


# === Profiles ===


class OwnerBaseline(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_count: int
    avg_duration: float
    most_common_start_hour: int
    top_projects: list[str]
    micro_entry_share: float
    avg_entries_per_day: float


class ProjectBaseline(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    entry_count: int
    avg_duration: float
    typical_start_hours: list[int]
    top_tasks: list[str]


class TeamBaseline(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_count: int
    avg_duration: float
    avg_entries_per_day: float  # per owner-day


def owner_baseline(history: Sequence[TimeInterval]) -> OwnerBaseline:
    """Typical behaviour of one owner over ``history``."""
    hours = Counter(start_hours(history))
    projects = Counter(e.project_id for e in history)
    per_day = Counter(e.date for e in history)
    return OwnerBaseline(
        entry_count=len(history),
        avg_duration=mean([e.duration for e in history]),
        most_common_start_hour=hours.most_common(1)[0][0] if hours else 9,
        top_projects=[p for p, _ in projects.most_common(5)],
        micro_entry_share=(
            sum(1 for e in history if is_micro(e)) / len(history) if history else 0.0
        ),
        avg_entries_per_day=mean(list(per_day.values())),
    )


def project_baseline(history: Sequence[TimeInterval], project_id: str) -> ProjectBaseline:
    entries = [e for e in history if e.project_id == project_id]
    hours = Counter(start_hours(entries))
    tasks = Counter(e.task_id for e in entries if e.task_id)
    return ProjectBaseline(
        project_id=project_id,
        entry_count=len(entries),
        avg_duration=mean([e.duration for e in entries]),
        typical_start_hours=[h for h, _ in hours.most_common(3)],
        top_tasks=[t for t, _ in tasks.most_common(3)],
    )


def team_baseline(history: Sequence[TimeInterval]) -> TeamBaseline:
    per_owner_day = Counter((e.owner_id, e.date) for e in history)
    return TeamBaseline(
        entry_count=len(history),
        avg_duration=mean([e.duration for e in history]),
        avg_entries_per_day=mean(list(per_owner_day.values())),
    )


# === Cached aggregates ===


class AggregateFilter(BaseModel):
    """Filter applied before aggregating. Frozen so it can key the cache."""

    model_config = ConfigDict(frozen=True)

    date_from: dt.date | None = None
    date_to: dt.date | None = None
    owner_ids: tuple[str, ...] = ()
    project_ids: tuple[str, ...] = ()
    billable: bool | None = None

    def matches(self, entry: TimeInterval) -> bool:
        if self.date_from and entry.date < self.date_from:
            return False
        if self.date_to and entry.date > self.date_to:
            return False
        if self.owner_ids and entry.owner_id not in self.owner_ids:
            return False
        if self.project_ids and entry.project_id not in self.project_ids:
            return False
        if self.billable is not None and entry.billable != self.billable:
            return False
        return True


class Aggregate(BaseModel):
    model_config = ConfigDict(frozen=True)

    hours: float = 0.0
    billable_hours: float = 0.0
    entries: int = 0


def snapshot_key(entries: Sequence[TimeInterval]) -> str:
    """Content digest of an entry collection, order included."""
    digest = hashlib.sha256()
    for entry in entries:
        digest.update(entry.model_dump_json().encode())
    return digest.hexdigest()


def _aggregate(
    operation: str,
    entries: Sequence[TimeInterval],
    key_of: Callable[[TimeInterval], Hashable],
    filters: AggregateFilter | None,
    cache: AggregationCache | None,
) -> dict:
    filters = filters or AggregateFilter()

    def compute() -> dict:
        totals: dict = {}
        for entry in entries:
            if not filters.matches(entry):
                continue
            hours, billable, count = totals.get(key_of(entry), (0.0, 0.0, 0))
            totals[key_of(entry)] = (
                hours + entry.duration,
                billable + (entry.duration if entry.billable else 0.0),
                count + 1,
            )
        return {
            key: Aggregate(hours=h, billable_hours=b, entries=n)
            for key, (h, b, n) in totals.items()
        }

    if cache is None:
        return compute()
    # Aggregates are frozen; the dict is copied so callers cannot reshape the cached one
    return dict(cache.get_or_compute(operation, (filters, snapshot_key(entries)), compute))


def aggregate_by_owner(
    entries: Sequence[TimeInterval],
    filters: AggregateFilter | None = None,
    cache: AggregationCache | None = None,
) -> dict[str, Aggregate]:
    return _aggregate("agg-owner", entries, lambda e: e.owner_id, filters, cache)


def aggregate_by_project(
    entries: Sequence[TimeInterval],
    filters: AggregateFilter | None = None,
    cache: AggregationCache | None = None,
) -> dict[str, Aggregate]:
    return _aggregate("agg-project", entries, lambda e: e.project_id, filters, cache)


def aggregate_by_date(
    entries: Sequence[TimeInterval],
    filters: AggregateFilter | None = None,
    cache: AggregationCache | None = None,
) -> dict[dt.date, Aggregate]:
    return _aggregate("agg-date", entries, lambda e: e.date, filters, cache)
