"""Rule Validator — hard (blocking) and soft (advisory) rules for one entry.

Deterministic engine. Each rule is a private ``_check_*`` method returning a
list of ValidationResult; ``validate`` runs the hard rules first, then the
soft ones. Hard results must stop the caller from persisting the entry
(see ``ensure_persistable``); soft results never do.

Malformed clock values never raise here: they surface as a hard
INVALID_TIME result and the time-based rules are skipped for that entry.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable

from timetrust.engines.anomaly.baselines import most_recent
from timetrust.engines.intervals import (
    EXACT_HOUR_EPSILON,
    entry_bounds,
    format_clock,
    intervals_overlap,
    is_exact_hour,
    is_parseable,
    parse_clock,
    sort_chronologically,
)
from timetrust.exceptions import BlockingValidationError, TimeParseError
from timetrust.models.entry import Absence, Project, TenantSettings, TimeInterval
from timetrust.models.strictness import StrictnessProfile
from timetrust.models.validation import (
    QuickFix,
    QuickFixAction,
    ValidationResult,
    ValidationSummary,
)

logger = logging.getLogger(__name__)

_ABSENCE_LABELS = {
    "vacation": "vacation",
    "sick": "sick leave",
    "holiday": "public holiday",
    "blocked": "blocked period",
}

DEFAULT_MAX_DAILY_HOURS = 12.0
LONG_SHIFT_HOURS = 10.0
ROUNDING_MIN_DURATION = 4.0
ROUNDING_MIN_HISTORY = 10
ROUNDING_WINDOW = 20
ROUNDING_SHARE = 0.7
PAUSE_MIN_TOTAL_HOURS = 8.0
PAUSE_MIN_MINUTES = 30


def _as_date(value: dt.date | str) -> dt.date:
    return value if isinstance(value, dt.date) else dt.date.fromisoformat(value)


class RuleValidator:
    """Evaluates one entry against hard and soft rules.

    Hard rules:
    1. OVERLAP — pairwise half-open overlap with the owner's same-day entries
    2. NEGATIVE_DURATION — end at or before start
    3. RESTRICTED_HOURS — start inside the tenant's restricted window
    4. PROJECT_NOT_FOUND / PROJECT_INACTIVE / PROJECT_ENDED
    5. ABSENCE_CONFLICT — date inside an approved absence of the owner

    Soft rules: EXCESSIVE_DAILY_HOURS, MISSING_NOTES, MISSING_TASK_OR_NOTES,
    UNUSUAL_ROUNDING, WEEKEND_WORK, HOLIDAY_WORK, LONG_SHIFT, NO_PAUSES.

    Passing a StrictnessProfile replaces the long-shift cutoff with
    ``overtime_warning`` and lets whole-hour detection tolerate
    ``rounding_tolerance`` hours.
    """

    def __init__(self, profile: StrictnessProfile | None = None) -> None:
        self._profile = profile

    @property
    def profile(self) -> StrictnessProfile | None:
        return self._profile

    @property
    def long_shift_hours(self) -> float:
        if self._profile is None:
            return LONG_SHIFT_HOURS
        return self._profile.thresholds.overtime_warning

    @property
    def rounding_tolerance(self) -> float:
        if self._profile is None:
            return EXACT_HOUR_EPSILON
        return self._profile.thresholds.rounding_tolerance

    def validate(
        self,
        entry: TimeInterval,
        all_entries: Iterable[TimeInterval],
        projects: Iterable[Project] = (),
        absences: Iterable[Absence] = (),
        holidays: Iterable[dt.date | str] = (),
        settings: TenantSettings | None = None,
    ) -> list[ValidationResult]:
        """Run every rule against ``entry``.

        Args:
            entry: The entry being created or edited.
            all_entries: Entries of the owner (others are ignored); may include
                a previous version of ``entry`` itself, which is skipped by id.
            projects: Project reference data.
            absences: Absences (any owner; filtered here).
            holidays: Public holiday dates.
            settings: Tenant rule configuration.
        """
        settings = settings or TenantSettings()
        others = [
            e for e in all_entries
            if e.owner_id == entry.owner_id and e.id != entry.id
        ]
        projects_by_id = {p.id: p for p in projects}
        holiday_dates = {_as_date(h) for h in holidays}
        parseable = is_parseable(entry)

        results: list[ValidationResult] = []

        # Hard rules
        if parseable:
            results.extend(self._check_overlaps(entry, others))
            results.extend(self._check_negative_duration(entry))
            results.extend(self._check_restricted_hours(entry, settings))
        else:
            results.append(self._invalid_time(entry))
        results.extend(self._check_project(entry, projects_by_id))
        results.extend(self._check_absences(entry, absences))

        # Soft rules
        results.extend(self._check_daily_hours(entry, others, settings))
        results.extend(self._check_missing_notes(entry, projects_by_id, settings))
        results.extend(self._check_unusual_rounding(entry, others))
        results.extend(self._check_weekend_work(entry, settings))
        results.extend(self._check_holiday_work(entry, holiday_dates))
        results.extend(self._check_long_shift(entry))
        if parseable:
            results.extend(self._check_no_pauses(entry, others))

        logger.debug(
            "Validated %s: %d hard, %d soft",
            entry.id,
            sum(1 for r in results if r.blocking),
            sum(1 for r in results if not r.blocking),
        )
        return results

    # === Hard rules ===

    @staticmethod
    def _invalid_time(entry: TimeInterval) -> ValidationResult:
        bad = []
        for field in ("start_time", "end_time"):
            try:
                parse_clock(getattr(entry, field))
            except TimeParseError:
                bad.append(field)
        return ValidationResult(
            severity="hard",
            code="INVALID_TIME",
            message=f"Unreadable clock value in {', '.join(bad)} (expected HH:MM)",
            field=bad[0] if bad else "start_time",
            metadata={
                "start_time": entry.start_time,
                "end_time": entry.end_time,
                "invalid_fields": bad,
            },
        )

    @staticmethod
    def _check_overlaps(
        entry: TimeInterval, others: list[TimeInterval],
    ) -> list[ValidationResult]:
        results: list[ValidationResult] = []
        start, end = entry_bounds(entry)

        for other in sort_chronologically(
            o for o in others if o.date == entry.date and is_parseable(o)
        ):
            o_start, o_end = entry_bounds(other)
            if not intervals_overlap(start, end, o_start, o_end):
                continue

            quick_fixes = [
                QuickFix(
                    id="move-to-end",
                    label="Start after the other entry",
                    description=f"Set start time to {other.end_time}",
                    action=QuickFixAction(
                        type="update_field", field="start_time", value=other.end_time,
                    ),
                ),
                QuickFix(
                    id="adjust-end",
                    label="End before the other entry",
                    description=f"Set end time to {other.start_time}",
                    action=QuickFixAction(
                        type="update_field", field="end_time", value=other.start_time,
                    ),
                ),
                QuickFix(
                    id="delete-other",
                    label="Delete the other entry",
                    description="Remove the overlapping entry",
                    action=QuickFixAction(type="delete_entry", entry_ids=[other.id]),
                ),
            ]
            results.append(
                ValidationResult(
                    severity="hard",
                    code="OVERLAP",
                    message=(
                        f"Overlaps another entry ({other.start_time} - {other.end_time})"
                    ),
                    field="start_time",
                    explanation=(
                        "Two entries of the same person cannot cover the same time. "
                        f"{entry.start_time}-{entry.end_time} overlaps "
                        f"{other.start_time}-{other.end_time}."
                    ),
                    metadata={
                        "conflicting_entry_id": other.id,
                        "conflicting_project_id": other.project_id,
                        "conflicting_start_time": other.start_time,
                        "conflicting_end_time": other.end_time,
                    },
                    quick_fixes=quick_fixes,
                )
            )
        return results

    @staticmethod
    def _check_negative_duration(entry: TimeInterval) -> list[ValidationResult]:
        start, end = entry_bounds(entry)
        if end > start:
            return []

        quick_fixes = [
            QuickFix(
                id="swap-times",
                label="Swap start and end",
                description="Exchange start and end time",
                action=QuickFixAction(
                    type="update_field",
                    field="times",
                    value={"start_time": entry.end_time, "end_time": entry.start_time},
                ),
            ),
            QuickFix(
                id="add-12-hours",
                label="+12 hours to end time",
                description="Shift the end time by twelve hours",
                action=QuickFixAction(
                    type="update_field", field="end_time", value=format_clock(end + 12 * 60),
                ),
            ),
        ]
        return [
            ValidationResult(
                severity="hard",
                code="NEGATIVE_DURATION",
                message="End time must be after start time",
                field="end_time",
                explanation=(
                    f"The end time ({entry.end_time}) is not after the start time "
                    f"({entry.start_time}), which gives a negative duration. Shifts "
                    "crossing midnight must be recorded as two entries."
                ),
                metadata={"duration_minutes": end - start},
                quick_fixes=quick_fixes,
            )
        ]

    @staticmethod
    def _check_restricted_hours(
        entry: TimeInterval, settings: TenantSettings,
    ) -> list[ValidationResult]:
        window = settings.restricted_hours
        if window is None:
            return []
        try:
            w_start, w_end = parse_clock(window.start), parse_clock(window.end)
        except TimeParseError:
            logger.warning("Ignoring malformed restricted window %s-%s", window.start, window.end)
            return []

        start = parse_clock(entry.start_time)
        if w_start <= w_end:
            inside = w_start <= start < w_end
        else:
            # Window wraps midnight, e.g. 22:00-06:00
            inside = start >= w_start or start < w_end
        if not inside:
            return []
        return [
            ValidationResult(
                severity="hard",
                code="RESTRICTED_HOURS",
                message=f"Work between {window.start} and {window.end} requires approval",
                field="start_time",
                metadata={"restricted_window": {"start": window.start, "end": window.end}},
            )
        ]

    @staticmethod
    def _check_project(
        entry: TimeInterval, projects_by_id: dict[str, Project],
    ) -> list[ValidationResult]:
        project = projects_by_id.get(entry.project_id)
        if project is None:
            return [
                ValidationResult(
                    severity="hard",
                    code="PROJECT_NOT_FOUND",
                    message="Project not found",
                    field="project_id",
                    metadata={"project_id": entry.project_id},
                )
            ]

        results: list[ValidationResult] = []
        if not project.active:
            results.append(
                ValidationResult(
                    severity="hard",
                    code="PROJECT_INACTIVE",
                    message=f'Project "{project.name}" is locked or closed',
                    field="project_id",
                    metadata={"project_name": project.name},
                )
            )
        if project.end_date is not None and entry.date > project.end_date:
            results.append(
                ValidationResult(
                    severity="hard",
                    code="PROJECT_ENDED",
                    message=f'Project "{project.name}" ended on {project.end_date.isoformat()}',
                    field="date",
                    metadata={
                        "project_name": project.name,
                        "end_date": project.end_date.isoformat(),
                    },
                )
            )
        return results

    @staticmethod
    def _check_absences(
        entry: TimeInterval, absences: Iterable[Absence],
    ) -> list[ValidationResult]:
        conflict = next(
            (
                a for a in absences
                if a.owner_id == entry.owner_id
                and a.approval_status == "approved"
                and a.covers(entry.date)
            ),
            None,
        )
        if conflict is None:
            return []
        return [
            ValidationResult(
                severity="hard",
                code="ABSENCE_CONFLICT",
                message=(
                    f"Cannot record time: {_ABSENCE_LABELS[conflict.kind]} "
                    f"on {entry.date.isoformat()}"
                ),
                field="date",
                metadata={
                    "absence_id": conflict.id,
                    "absence_kind": conflict.kind,
                    "absence_reason": conflict.reason,
                },
            )
        ]

    # === Soft rules ===

    @staticmethod
    def _check_daily_hours(
        entry: TimeInterval, others: list[TimeInterval], settings: TenantSettings,
    ) -> list[ValidationResult]:
        limit = settings.max_daily_hours or DEFAULT_MAX_DAILY_HOURS
        total = entry.duration + sum(o.duration for o in others if o.date == entry.date)
        if total <= limit:
            return []
        return [
            ValidationResult(
                severity="soft",
                code="EXCESSIVE_DAILY_HOURS",
                message=f"Daily total exceeds {limit:g} hours ({total:.1f}h)",
                field="duration",
                metadata={"total_hours": total, "limit": limit},
            )
        ]

    @staticmethod
    def _check_missing_notes(
        entry: TimeInterval, projects_by_id: dict[str, Project], settings: TenantSettings,
    ) -> list[ValidationResult]:
        if entry.has_notes:
            return []
        results: list[ValidationResult] = []
        project = projects_by_id.get(entry.project_id)
        project_name = project.name if project else ""

        if settings.require_notes_for_billable and entry.billable:
            results.append(
                ValidationResult(
                    severity="soft",
                    code="MISSING_NOTES",
                    message="Billable time should carry a note",
                    field="notes",
                    explanation=(
                        "Billable time should describe the work done so the client "
                        "can follow what the hours were spent on."
                    ),
                    metadata={"project_name": project_name},
                    quick_fixes=[
                        QuickFix(
                            id="add-standard-note",
                            label="Add standard note",
                            description="Record generic project work",
                            action=QuickFixAction(
                                type="update_field",
                                field="notes",
                                value=f"Project work {project_name}".strip(),
                            ),
                        ),
                        QuickFix(
                            id="mark-non-billable",
                            label="Mark as non-billable",
                            description="When no details are needed",
                            action=QuickFixAction(
                                type="update_field", field="billable", value=False,
                            ),
                        ),
                    ],
                )
            )

        if not entry.task_id:
            results.append(
                ValidationResult(
                    severity="soft",
                    code="MISSING_TASK_OR_NOTES",
                    message="An entry without a task should carry a note",
                    field="notes",
                    explanation=(
                        "Without a task, a note is the only record of what the "
                        "time was spent on."
                    ),
                    quick_fixes=[
                        QuickFix(
                            id="add-placeholder-note",
                            label="Add placeholder",
                            description="Temporary note, complete later",
                            action=QuickFixAction(
                                type="update_field", field="notes", value="[details pending]",
                            ),
                        )
                    ],
                )
            )
        return results

    def _check_unusual_rounding(
        self, entry: TimeInterval, others: list[TimeInterval],
    ) -> list[ValidationResult]:
        tolerance = self.rounding_tolerance
        if entry.duration < ROUNDING_MIN_DURATION or not is_exact_hour(entry.duration, tolerance):
            return []

        recent = most_recent(others, ROUNDING_WINDOW)
        if len(recent) < ROUNDING_MIN_HISTORY:
            return []
        exact = sum(1 for e in recent if e.duration > 0 and is_exact_hour(e.duration, tolerance))
        share = exact / len(recent)
        if share < ROUNDING_SHARE:
            return []
        return [
            ValidationResult(
                severity="soft",
                code="UNUSUAL_ROUNDING",
                message=f"Unusually frequent whole-hour durations ({round(share * 100)}%)",
                field="duration",
                explanation=(
                    "Most recent entries are whole hours, which suggests the times "
                    "are estimated afterwards rather than measured."
                ),
                metadata={
                    "exact_hour_share": share,
                    "sample_size": len(recent),
                    "duration": entry.duration,
                },
            )
        ]

    @staticmethod
    def _check_weekend_work(
        entry: TimeInterval, settings: TenantSettings,
    ) -> list[ValidationResult]:
        if not settings.weekend_work_requires_approval:
            return []
        if entry.date.weekday() < 5 or entry.owner_id in settings.weekend_approved_owner_ids:
            return []
        return [
            ValidationResult(
                severity="soft",
                code="WEEKEND_WORK",
                message=f"Weekend work may need approval ({entry.date.isoformat()})",
                field="date",
                metadata={"is_weekend": True, "day": entry.date.strftime("%A")},
            )
        ]

    @staticmethod
    def _check_holiday_work(
        entry: TimeInterval, holidays: set[dt.date],
    ) -> list[ValidationResult]:
        if entry.date not in holidays:
            return []
        return [
            ValidationResult(
                severity="soft",
                code="HOLIDAY_WORK",
                message=f"Work on a public holiday ({entry.date.isoformat()})",
                field="date",
                metadata={"is_holiday": True},
            )
        ]

    def _check_long_shift(self, entry: TimeInterval) -> list[ValidationResult]:
        cutoff = self.long_shift_hours
        if entry.duration < cutoff:
            return []
        return [
            ValidationResult(
                severity="soft",
                code="LONG_SHIFT",
                message=f"Long shift: {entry.duration:.1f} hours without a documented break",
                field="duration",
                metadata={"duration": entry.duration, "cutoff": cutoff},
            )
        ]

    @staticmethod
    def _check_no_pauses(
        entry: TimeInterval, others: list[TimeInterval],
    ) -> list[ValidationResult]:
        day = sort_chronologically(
            [o for o in others if o.date == entry.date and is_parseable(o)] + [entry]
        )
        if len(day) < 2:
            return []
        total = sum(e.duration for e in day)
        if total < PAUSE_MIN_TOTAL_HOURS:
            return []

        for current, following in zip(day, day[1:]):
            if parse_clock(following.start_time) - parse_clock(current.end_time) >= PAUSE_MIN_MINUTES:
                return []
        return [
            ValidationResult(
                severity="soft",
                code="NO_PAUSES",
                message=f"{total:.1f} hours without a detectable break (min. 30 min)",
                field="duration",
                metadata={"total_duration": total, "entry_count": len(day)},
            )
        ]


def summarize(results: Iterable[ValidationResult]) -> ValidationSummary:
    """Split results into hard errors and soft warnings."""
    hard: list[ValidationResult] = []
    soft: list[ValidationResult] = []
    for r in results:
        (hard if r.blocking else soft).append(r)
    return ValidationSummary(hard_errors=hard, soft_warnings=soft)


def ensure_persistable(results: Iterable[ValidationResult], entry_id: str = "") -> None:
    """Raise BlockingValidationError when any hard rule failed."""
    summary = summarize(results)
    if not summary.can_save:
        raise BlockingValidationError(entry_id, summary.hard_errors)
