"""Daily coverage — per-owner daily totals against the expected workday.

Reports workdays with no entries or too few hours, days with overtime and
weekend work. Days covered by an approved vacation, sickness or holiday
absence are skipped.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Sequence

from timetrust.models.entry import Absence, TimeInterval
from timetrust.models.repair import CoverageAnalysis, CoverageIssue, CoverageSummary

logger = logging.getLogger(__name__)

STANDARD_WORK_HOURS = 8.0
MIN_WORK_HOURS = 6.0
OVERTIME_HOURS = 10.0
HIGH_OVERTIME_HOURS = 12.0

_EXCUSING_ABSENCES = frozenset({"vacation", "sick", "holiday"})


class DailyCoverageAnalyzer:
    """Compares recorded daily hours with the standard workday."""

    def __init__(
        self,
        standard_hours: float = STANDARD_WORK_HOURS,
        min_hours: float = MIN_WORK_HOURS,
        overtime_hours: float = OVERTIME_HOURS,
    ) -> None:
        self.standard_hours = standard_hours
        self.min_hours = min_hours
        self.overtime_hours = overtime_hours

    def analyze(
        self,
        owner_id: str,
        entries: Sequence[TimeInterval],
        start: dt.date,
        end: dt.date,
        absences: Iterable[Absence] = (),
    ) -> CoverageAnalysis:
        """Analyze ``owner_id`` for every day from ``start`` to ``end`` inclusive."""
        owner_absences = [
            a for a in absences
            if a.owner_id == owner_id
            and a.approval_status == "approved"
            and a.kind in _EXCUSING_ABSENCES
        ]
        totals: dict[dt.date, float] = {}
        for e in entries:
            if e.owner_id == owner_id and start <= e.date <= end:
                totals[e.date] = totals.get(e.date, 0.0) + e.duration

        issues: list[CoverageIssue] = []
        day = start
        while day <= end:
            if not any(a.covers(day) for a in owner_absences):
                issue = self._check_day(owner_id, day, totals.get(day, 0.0))
                if issue is not None:
                    issues.append(issue)
            day += dt.timedelta(days=1)

        analysis = CoverageAnalysis(
            owner_id=owner_id, issues=issues, summary=self._summarize(issues),
        )
        logger.debug("Coverage for %s %s..%s: %d issues", owner_id, start, end, len(issues))
        return analysis

    def analyze_last_days(
        self,
        owner_id: str,
        entries: Sequence[TimeInterval],
        today: dt.date,
        days: int = 7,
        absences: Iterable[Absence] = (),
    ) -> CoverageAnalysis:
        return self.analyze(owner_id, entries, today - dt.timedelta(days=days), today, absences)

    def _check_day(self, owner_id: str, day: dt.date, total: float) -> CoverageIssue | None:
        base = {"owner_id": owner_id, "date": day, "actual_hours": total}
        if day.weekday() >= 5:
            if total <= 0:
                return None
            return CoverageIssue(
                id=f"{owner_id}-{day.isoformat()}-weekend",
                type="weekend_work",
                severity="medium",
                title="Weekend work",
                description=f"{total:.1f} hours worked on a weekend",
                expected_hours=0,
                difference=total,
                suggested_action="Check time off in lieu or mark as overtime",
                **base,
            )

        if total == 0:
            return CoverageIssue(
                id=f"{owner_id}-{day.isoformat()}-missing",
                type="no_entries",
                severity="high",
                title="No entries",
                description="No time recorded for this workday",
                expected_hours=self.standard_hours,
                difference=-self.standard_hours,
                suggested_action="Record the missing time",
                **base,
            )
        if total < self.min_hours:
            missing = self.standard_hours - total
            return CoverageIssue(
                id=f"{owner_id}-{day.isoformat()}-gap",
                type="missing_hours",
                severity="high" if missing > 4 else "medium",
                title="Missing hours",
                description=f"Only {total:.1f} of {self.standard_hours:g} hours recorded",
                expected_hours=self.standard_hours,
                difference=-missing,
                suggested_action=f"Add the missing {missing:.1f} hours",
                **base,
            )
        if total >= self.overtime_hours:
            excess = total - self.standard_hours
            return CoverageIssue(
                id=f"{owner_id}-{day.isoformat()}-overtime",
                type="overtime",
                severity="high" if total >= HIGH_OVERTIME_HOURS else "medium",
                title="Overtime",
                description=f"{total:.1f} hours recorded ({excess:.1f}h overtime)",
                expected_hours=self.standard_hours,
                difference=excess,
                suggested_action="Confirm overtime or correct entries",
                **base,
            )
        return None

    @staticmethod
    def _summarize(issues: list[CoverageIssue]) -> CoverageSummary:
        short = [i for i in issues if i.type in ("missing_hours", "no_entries")]
        excess = [i for i in issues if i.type in ("overtime", "weekend_work")]
        return CoverageSummary(
            total_gaps=len(short),
            total_overtime=len(excess),
            total_missing_hours=sum(abs(i.difference) for i in short),
            total_excess_hours=sum(i.difference for i in excess),
            affected_days=len({i.date for i in issues}),
        )


def most_urgent(analysis: CoverageAnalysis) -> CoverageIssue | None:
    """Latest issue of the highest severity present."""
    for severity in ("high", "medium", "low"):
        matching = [i for i in analysis.issues if i.severity == severity]
        if matching:
            return max(matching, key=lambda i: i.date)
    return None
