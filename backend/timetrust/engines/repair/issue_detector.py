"""Issue Detector — gaps, overlaps and missing data across owner-days.

Deterministic engine. Scans each owner's chronologically sorted same-day
entries and returns Issues carrying confidence-ranked RepairActions. Actions
are proposals only; RepairEngine applies them.

Action payloads (consumed by RepairEngine):
- fill_gap: owner_id, tenant_id, date, start_time, end_time, project_id,
  task_id, previous_entry_id, next_entry_id
- update_field: entry_id, changes {field: value}
- split_entry: entry_id, split_at, split_end
- delete_entry: entry_id
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence

from timetrust.engines.intervals import (
    entry_bounds,
    format_clock,
    gap_minutes,
    is_parseable,
    overlap_window,
    sort_chronologically,
)
from timetrust.models.anomaly import FindingSeverity
from timetrust.models.entry import TimeInterval
from timetrust.models.repair import Issue, RepairAction, TimeGap, TimeOverlap

logger = logging.getLogger(__name__)

MIN_GAP_MINUTES = 15
MAX_GAP_MINUTES = 180
ADJACENT_ADJUST_MAX_HOURS = 1.5


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def gap_severity(minutes: int) -> FindingSeverity:
    if minutes > 90:
        return "critical"
    if minutes >= 30:
        return "warning"
    return "info"


def rank_actions(actions: Iterable[RepairAction]) -> list[RepairAction]:
    """Highest confidence first; ties keep proposal order."""
    return sorted(actions, key=lambda a: -a.confidence)


class IssueDetector:
    """Finds structural defects in entry collections."""

    def __init__(self, clock: Callable[[], dt.datetime] = _utcnow) -> None:
        self._clock = clock

    def detect_issues(
        self,
        entries: Sequence[TimeInterval],
        owner_ids: Iterable[str] | None = None,
    ) -> list[Issue]:
        """Scan ``entries`` (optionally restricted to ``owner_ids``).

        Entries with unreadable clock values are left out of the gap and
        overlap scans but still checked for missing data.
        """
        wanted = set(owner_ids) if owner_ids is not None else None
        by_owner: dict[str, list[TimeInterval]] = defaultdict(list)
        for entry in entries:
            if wanted is None or entry.owner_id in wanted:
                by_owner[entry.owner_id].append(entry)

        issues: list[Issue] = []
        for owner_id in sorted(by_owner):
            owner_entries = by_owner[owner_id]
            days: dict[dt.date, list[TimeInterval]] = defaultdict(list)
            for entry in owner_entries:
                if is_parseable(entry):
                    days[entry.date].append(entry)
                else:
                    logger.debug("Skipping %s in gap/overlap scan: unreadable time", entry.id)

            for day in sorted(days):
                day_entries = sort_chronologically(days[day])
                issues.extend(self._detect_gaps(owner_id, day, day_entries))
                issues.extend(self._detect_overlaps(owner_id, day, day_entries))
            issues.extend(self._detect_missing_data(owner_entries))

        logger.info(
            "Issue scan: %d owners, %d issues", len(by_owner), len(issues),
        )
        return issues

    # === Gaps ===

    def _detect_gaps(
        self, owner_id: str, day: dt.date, entries: list[TimeInterval],
    ) -> list[Issue]:
        """Gaps in unoccupied time, measured from the latest end seen so far.

        An entry contained in an earlier, longer one does not open a gap of
        its own; the gap starts where the longest-running entry ends.
        """
        issues: list[Issue] = []
        current: TimeInterval | None = None
        covered_until = 0
        for following in entries:
            _, end = entry_bounds(following)
            if current is not None:
                minutes = gap_minutes(current, following)
                if MIN_GAP_MINUTES <= minutes <= MAX_GAP_MINUTES:
                    issues.append(self._gap_issue(owner_id, day, current, following, minutes))
            if current is None or end > covered_until:
                current, covered_until = following, end
        return issues

    def _gap_issue(
        self,
        owner_id: str,
        day: dt.date,
        current: TimeInterval,
        following: TimeInterval,
        minutes: int,
    ) -> Issue:
        gap = TimeGap(
            date=day,
            start_time=current.end_time,
            end_time=following.start_time,
            minutes=minutes,
            previous_entry_id=current.id,
            next_entry_id=following.id,
        )
        issue_id = f"gap-{current.id}-{following.id}"
        return Issue(
            id=issue_id,
            type="gap",
            severity=gap_severity(minutes),
            title=f"Gap of {gap.hours:.1f}h detected",
            description=(
                f"{gap.hours:.1f} hours unrecorded between "
                f"{current.end_time} and {following.start_time}"
            ),
            owner_id=owner_id,
            date=day,
            affected_entry_ids=[current.id, following.id],
            gap=gap,
            suggested_actions=rank_actions(
                self._gap_actions(issue_id, gap, current, following)
            ),
            created_at=self._clock(),
        )

    @staticmethod
    def _gap_actions(
        group: str, gap: TimeGap, previous: TimeInterval, following: TimeInterval,
    ) -> list[RepairAction]:
        actions = [
            RepairAction(
                type="fill_gap",
                label="Fill gap",
                description=f"Create a new entry for {gap.start_time} - {gap.end_time}",
                confidence=0.8,
                exclusive_group=group,
                payload={
                    "owner_id": previous.owner_id,
                    "tenant_id": previous.tenant_id,
                    "date": gap.date.isoformat(),
                    "start_time": gap.start_time,
                    "end_time": gap.end_time,
                    "project_id": previous.project_id,
                    "task_id": previous.task_id,
                    "previous_entry_id": previous.id,
                    "next_entry_id": following.id,
                },
            ),
        ]
        if gap.hours > ADJACENT_ADJUST_MAX_HOURS:
            return actions

        actions.append(RepairAction(
            type="update_field",
            label="Extend previous entry",
            description=(
                f"{previous.start_time} - {gap.end_time} "
                f"({previous.duration + gap.hours:.1f}h)"
            ),
            auto_applicable=not previous.is_immutable,
            confidence=0.7,
            exclusive_group=group,
            payload={"entry_id": previous.id, "changes": {"end_time": gap.end_time}},
        ))
        actions.append(RepairAction(
            type="update_field",
            label="Pull next entry forward",
            description=(
                f"{gap.start_time} - {following.end_time} "
                f"({following.duration + gap.hours:.1f}h)"
            ),
            auto_applicable=not following.is_immutable,
            confidence=0.7,
            exclusive_group=group,
            payload={"entry_id": following.id, "changes": {"start_time": gap.start_time}},
        ))
        return actions

    # === Overlaps ===

    def _detect_overlaps(
        self, owner_id: str, day: dt.date, entries: list[TimeInterval],
    ) -> list[Issue]:
        issues: list[Issue] = []
        for i, first in enumerate(entries):
            for second in entries[i + 1:]:
                window = overlap_window(first, second)
                if window is None:
                    continue
                start, end = window
                overlap = TimeOverlap(
                    date=day,
                    entry1_id=first.id,
                    entry2_id=second.id,
                    overlap_start=format_clock(start),
                    overlap_end=format_clock(end),
                    minutes=end - start,
                )
                issues.append(Issue(
                    id=f"overlap-{first.id}-{second.id}",
                    type="overlap",
                    severity="critical",
                    title=f"Overlap of {overlap.minutes / 60:.1f}h detected",
                    description=(
                        f"Entries overlap between {overlap.overlap_start} "
                        f"and {overlap.overlap_end}"
                    ),
                    owner_id=owner_id,
                    date=day,
                    affected_entry_ids=[first.id, second.id],
                    overlap=overlap,
                    suggested_actions=rank_actions(
                        self._overlap_actions(overlap, first, second)
                    ),
                    created_at=self._clock(),
                ))
        return issues

    @staticmethod
    def _overlap_actions(
        overlap: TimeOverlap, first: TimeInterval, second: TimeInterval,
    ) -> list[RepairAction]:
        first_start, first_end = entry_bounds(first)
        second_start, second_end = entry_bounds(second)
        window_start, window_end = second_start, min(first_end, second_end)
        actions: list[RepairAction] = []

        # Each action is only offered when it leaves non-empty entries behind
        if first_start < window_start and window_end < first_end:
            actions.append(RepairAction(
                type="split_entry",
                label="Split first entry",
                description=(
                    f"Split around the overlap ({first.start_time} - {overlap.overlap_start} "
                    f"and {overlap.overlap_end} - {first.end_time})"
                ),
                auto_applicable=not first.is_immutable,
                confidence=0.8,
                payload={
                    "entry_id": first.id,
                    "split_at": overlap.overlap_start,
                    "split_end": overlap.overlap_end,
                },
            ))
        if first_start < window_start:
            actions.append(RepairAction(
                type="update_field",
                label="Shorten first entry",
                description=f"Set end time to {overlap.overlap_start}",
                auto_applicable=not first.is_immutable,
                confidence=0.9,
                recommended=True,
                payload={"entry_id": first.id, "changes": {"end_time": overlap.overlap_start}},
            ))
        if window_end < second_end:
            actions.append(RepairAction(
                type="update_field",
                label="Shorten second entry",
                description=f"Set start time to {overlap.overlap_end}",
                auto_applicable=not second.is_immutable,
                confidence=0.9,
                recommended=True,
                payload={"entry_id": second.id, "changes": {"start_time": overlap.overlap_end}},
            ))
        actions.append(RepairAction(
            type="delete_entry",
            label="Delete second entry",
            description="Remove the overlapping entry completely",
            auto_applicable=not second.is_immutable,
            confidence=0.5,
            payload={"entry_id": second.id},
        ))
        return actions

    # === Missing data ===

    def _detect_missing_data(self, entries: list[TimeInterval]) -> list[Issue]:
        issues: list[Issue] = []
        for entry in entries:
            missing: list[str] = []
            if not entry.has_notes and (entry.billable or not entry.task_id):
                missing.append("notes")
            if not entry.task_id and not entry.has_notes:
                missing.append("task")
            if not missing:
                continue

            fields = ", ".join(missing)
            issues.append(Issue(
                id=f"missing-data-{entry.id}",
                type="missing_data",
                severity="info",
                title=f"Missing details: {fields}",
                description=f"Entry could be more detailed ({fields} missing)",
                owner_id=entry.owner_id,
                date=entry.date,
                affected_entry_ids=[entry.id],
                missing_fields=missing,
                suggested_actions=[RepairAction(
                    type="update_field",
                    label="Add details",
                    description=f"Complete {' and '.join(missing)}",
                    auto_applicable=False,
                    confidence=0.5,
                    payload={"entry_id": entry.id, "fields": missing},
                )],
                created_at=self._clock(),
            ))
        return issues
