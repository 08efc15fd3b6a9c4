"""Insight registry — explanation and action builders keyed by rule code.

Adding a rule means registering one InsightBuilder; the explainer never
branches on rule codes itself. Codes without a builder fall back to the
default builder; every anomaly type shares the anomaly builder.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from timetrust.engines.intervals import entry_bounds, parse_clock
from timetrust.exceptions import TimeParseError
from timetrust.models.anomaly import AnomalyDetection
from timetrust.models.entry import Project, TimeInterval
from timetrust.models.insight import (
    ComparisonValue,
    DecisionAction,
    DecisionPayload,
    Explanation,
)
from timetrust.models.validation import ValidationResult

Finding = ValidationResult | AnomalyDetection

DEFAULT_QUESTION = "What would you like to do now?"
ANOMALY_QUESTION = "What would you like to do with this anomaly?"


@dataclass(frozen=True)
class InsightContext:
    """Reference data available to builders."""

    projects: Mapping[str, Project] = field(default_factory=dict)

    def project_name(self, project_id: str) -> str:
        project = self.projects.get(project_id)
        return project.name if project and project.name else "Unknown"


ExplainFn = Callable[[TimeInterval, Finding, InsightContext], Explanation]
ActionsFn = Callable[[TimeInterval, Finding, InsightContext], list[DecisionAction]]


@dataclass(frozen=True)
class InsightBuilder:
    explain: ExplainFn
    actions: ActionsFn
    question: str = DEFAULT_QUESTION


class InsightRegistry:
    """Maps rule codes to InsightBuilders."""

    def __init__(self, default: InsightBuilder, anomaly: InsightBuilder) -> None:
        self._builders: dict[str, InsightBuilder] = {}
        self.default = default
        self.anomaly = anomaly

    def register(self, rule_code: str, builder: InsightBuilder) -> None:
        self._builders[rule_code] = builder

    def get(self, rule_code: str) -> InsightBuilder | None:
        return self._builders.get(rule_code)

    def resolve(self, finding: Finding) -> InsightBuilder:
        """Builder for a finding: anomaly, registered rule code, or default."""
        if isinstance(finding, AnomalyDetection):
            return self.anomaly
        return self._builders.get(finding.code, self.default)

    def codes(self) -> list[str]:
        return sorted(self._builders)


# === Shared actions ===


def _confirm(action_id: str, label: str, description: str, consequence: str, **params) -> DecisionAction:
    return DecisionAction(
        id=action_id,
        label=label,
        description=description,
        kind="accept",
        consequence=consequence,
        action=DecisionPayload(type="confirm", params={"override_validation": True, **params}),
        learn_from_this=True,
    )


def _manual_review(action_id: str, label: str, description: str, consequence: str, **params) -> DecisionAction:
    return DecisionAction(
        id=action_id,
        label=label,
        description=description,
        kind="manual",
        consequence=consequence,
        action=DecisionPayload(type="manual_review", params=params),
    )


def _default_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    return [
        _confirm(
            "accept-general", "Accept entry", "Ignore the warning and continue",
            "The entry is saved",
        ),
        _manual_review(
            "manual-review", "Review manually", "Inspect the entry in detail",
            "Opens the detail view",
        ),
    ]


def _default_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    return Explanation(
        reason=finding.explanation or finding.message,
        context="See the finding metadata for details.",
    )


# === Validation rules ===


def _overlap_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    meta = finding.metadata
    comparisons = []
    if meta.get("conflicting_start_time") and meta.get("conflicting_end_time"):
        comparisons.append(ComparisonValue(
            label="Current entry",
            current=f"{entry.start_time} - {entry.end_time}",
            typical=f"{meta['conflicting_start_time']} - {meta['conflicting_end_time']}",
            unit="time",
        ))
    return Explanation(
        reason="Overlapping times are impossible: nobody works on two tasks at once.",
        comparisons=comparisons,
        evidence=[
            "Overlap with an existing entry detected",
            "Both entries cover the same period",
        ],
        context="Overlaps distort project cost accounting and are not allowed.",
    )


def _split_boundary(entry: TimeInterval, meta: Mapping) -> str | None:
    """The conflicting entry's start or end that falls strictly inside ``entry``."""
    try:
        start, end = entry_bounds(entry)
        for boundary in (meta.get("conflicting_start_time"), meta.get("conflicting_end_time")):
            if boundary and start < parse_clock(boundary) < end:
                return boundary
    except TimeParseError:
        return None
    return None


def _overlap_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    meta = finding.metadata
    actions = [
        _confirm(
            "accept-overlap", "Accept entry", "The overlap is correct (e.g. multitasking)",
            "The entry is saved despite the overlap",
        ),
    ]
    boundary = _split_boundary(entry, meta)
    # No split when the entry lies entirely inside the conflicting one
    if boundary is not None:
        actions.append(DecisionAction(
            id="split-entry",
            label="Split entry",
            description="Divide the time between the projects",
            kind="split",
            consequence="Creates two separate entries",
            action=DecisionPayload(
                type="split_entry",
                params={"entry_id": entry.id, "split_at": boundary},
            ),
        ))
    if meta.get("conflicting_entry_id"):
        actions.append(DecisionAction(
            id="adjust-times",
            label="Adjust times automatically",
            description="Start after the other entry ends",
            kind="fix",
            consequence="The start time is moved",
            action=DecisionPayload(
                type="update_entry",
                params={"entry_id": entry.id, "start_time": meta.get("conflicting_end_time")},
            ),
        ))
    return actions


def _daily_hours_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    limit = finding.metadata.get("limit", 12)
    total = finding.metadata.get("total_hours", entry.duration)
    return Explanation(
        reason=f"The total working time of this day exceeds the limit of {limit:g} hours.",
        comparisons=[ComparisonValue(
            label="Daily working time",
            current=total,
            typical=limit,
            deviation_pct=(total - limit) / limit * 100 if limit else None,
            unit="h",
        )],
        evidence=[
            f"Total hours on {entry.date.isoformat()}: {total:.1f}h",
            f"Allowed maximum: {limit:g}h",
            f"Excess: {total - limit:.1f}h",
        ],
        context="Long days can indicate input errors or breach working-time regulations.",
    )


def _daily_hours_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    total = finding.metadata.get("total_hours", 12)
    return [
        _confirm(
            "accept-overtime", "Accept overtime", "The working time is recorded correctly",
            "The entry is saved and the overtime documented",
        ),
        _manual_review(
            "review-entries", "Review entries", "Check every entry of the day",
            "Opens the day view for manual review", date=entry.date.isoformat(),
        ),
        DecisionAction(
            id="adjust-project-limit",
            label="Adjust project rule",
            description=f'Raise the daily limit for project "{ctx.project_name(entry.project_id)}"',
            kind="adjust",
            consequence="The warning no longer appears for this project",
            action=DecisionPayload(
                type="adjust_rule",
                params={"project_id": entry.project_id, "max_daily_hours": total + 2},
            ),
            learn_from_this=True,
        ),
    ]


def _missing_notes_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    return Explanation(
        reason="Billable work in this project needs notes so the client can follow it.",
        evidence=[
            f"Project: {ctx.project_name(entry.project_id)}",
            "Billable: yes",
            "Notes: empty",
        ],
        context="Detailed notes make invoices traceable.",
    )


def _missing_notes_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    return [
        _confirm(
            "accept-no-notes", "Continue without notes", "No further description needed",
            "The entry is saved without notes",
        ),
        DecisionAction(
            id="add-notes",
            label="Add notes",
            description="Describe the work done",
            kind="fix",
            consequence="Opens the notes field",
            action=DecisionPayload(type="manual_review", params={"focus_field": "notes"}),
        ),
        DecisionAction(
            id="notify-employee",
            label="Notify employee",
            description="Send a reminder that notes are required",
            kind="notify",
            consequence="The employee receives a notification",
            action=DecisionPayload(
                type="send_notification",
                params={"owner_id": entry.owner_id, "template": "missing_notes_reminder"},
            ),
        ),
        DecisionAction(
            id="disable-notes-rule",
            label="Disable rule for this project",
            description=f'Stop requiring notes for "{ctx.project_name(entry.project_id)}"',
            kind="disable",
            consequence="The warning no longer appears for this project",
            action=DecisionPayload(
                type="disable_rule",
                params={"project_id": entry.project_id, "rule_code": "MISSING_NOTES"},
            ),
            learn_from_this=True,
        ),
    ]


def _rounding_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    share = finding.metadata.get("exact_hour_share")
    evidence = [f"Duration: {entry.duration:g}h (whole hours)"]
    if share is not None:
        evidence.append(f"{round(share * 100)}% of recent entries are whole hours")
    evidence.append("Measured times usually vary (e.g. 3.75h, 7.5h)")
    return Explanation(
        reason=(
            "The entry is an exact whole number of hours, which suggests it was "
            "adjusted afterwards rather than measured."
        ),
        comparisons=[ComparisonValue(
            label="Duration", current=entry.duration, typical="variable", unit="h",
        )],
        evidence=evidence,
        context="Rounded times are not wrong, but frequent rounding can mean imprecise recording.",
    )


def _weekend_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    evidence = [
        f"Date: {entry.date.isoformat()} (weekend)",
        f"Project: {ctx.project_name(entry.project_id)}",
    ]
    if entry.has_notes:
        evidence.append(f"Note: {entry.notes}")
    return Explanation(
        reason="Weekend work requires approval or a justification.",
        evidence=evidence,
        context="Weekend work should be documented and approved to meet working-time rules.",
    )


def _weekend_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    return [
        _confirm(
            "accept-weekend", "Approve weekend work", "Weekend work is authorized",
            "The entry is saved and marked approved", approved=True,
        ),
        DecisionAction(
            id="notify-approval",
            label="Request approval",
            description="Ask the project lead for approval",
            kind="notify",
            consequence="The project lead receives an approval request",
            action=DecisionPayload(
                type="send_notification",
                params={"template": "weekend_approval_request", "project_id": entry.project_id},
            ),
        ),
        DecisionAction(
            id="allow-weekend-project",
            label="Allow weekend work for project",
            description=f'"{ctx.project_name(entry.project_id)}" regularly runs on weekends',
            kind="adjust",
            consequence="The warning no longer appears for this project",
            action=DecisionPayload(
                type="adjust_rule",
                params={"project_id": entry.project_id, "allow_weekend_work": True},
            ),
            learn_from_this=True,
        ),
    ]


def _long_shift_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    cutoff = finding.metadata.get("cutoff", 10)
    return Explanation(
        reason=f"A single entry of {entry.duration:.1f} hours exceeds the {cutoff:g}-hour shift limit.",
        comparisons=[ComparisonValue(
            label="Shift length",
            current=entry.duration,
            typical=cutoff,
            deviation_pct=(entry.duration - cutoff) / cutoff * 100 if cutoff else None,
            unit="h",
        )],
        evidence=[f"{entry.start_time} - {entry.end_time} without a recorded break"],
        context="Very long shifts often hide a forgotten stop or missing break.",
    )


def _no_pauses_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    total = finding.metadata.get("total_duration", entry.duration)
    count = finding.metadata.get("entry_count", 1)
    return Explanation(
        reason=f"{total:.1f} hours across {count} entries with no break of at least 30 minutes.",
        evidence=[
            f"Entries on {entry.date.isoformat()}: {count}",
            f"Total: {total:.1f}h",
        ],
        context="Working-time rules require breaks on long days.",
    )


def _shift_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    return [
        *_default_actions(entry, finding, ctx),
        DecisionAction(
            id="notify-employee-break",
            label="Ask about breaks",
            description="Ask the employee to record breaks",
            kind="notify",
            consequence="The employee receives a notification",
            action=DecisionPayload(
                type="send_notification",
                params={"owner_id": entry.owner_id, "template": "break_reminder"},
            ),
        ),
    ]


# === Anomalies ===


def _anomaly_explanation(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> Explanation:
    return Explanation(
        reason=finding.description,
        comparisons=[ComparisonValue(
            label=finding.baseline.metric,
            current=finding.baseline.current,
            typical=finding.baseline.typical,
        )],
        evidence=list(finding.evidence),
        context=f"Detected with {round(finding.confidence * 100)}% confidence.",
    )


def _anomaly_actions(entry: TimeInterval, finding: Finding, ctx: InsightContext) -> list[DecisionAction]:
    return [
        DecisionAction(
            id="accept-anomaly",
            label="Confirm as correct",
            description="This pattern is intended",
            kind="accept",
            consequence="The pattern is learned as normal",
            action=DecisionPayload(type="confirm", params={"learn_pattern": True}),
            learn_from_this=True,
        ),
        _manual_review(
            "investigate", "Investigate", "Inspect the entry and its context",
            "Opens the extended analysis", show_comparison=True,
        ),
        DecisionAction(
            id="notify-employee-anomaly",
            label="Ask the employee",
            description="Ask about the unusual pattern",
            kind="notify",
            consequence="The employee receives an inquiry",
            action=DecisionPayload(
                type="send_notification",
                params={
                    "owner_id": entry.owner_id,
                    "template": "anomaly_inquiry",
                    "anomaly_type": finding.type,
                },
            ),
        ),
    ]


def default_registry() -> InsightRegistry:
    """Registry with builders for every built-in rule code."""
    registry = InsightRegistry(
        default=InsightBuilder(_default_explanation, _default_actions),
        anomaly=InsightBuilder(_anomaly_explanation, _anomaly_actions, ANOMALY_QUESTION),
    )
    registry.register("OVERLAP", InsightBuilder(_overlap_explanation, _overlap_actions))
    registry.register(
        "EXCESSIVE_DAILY_HOURS", InsightBuilder(_daily_hours_explanation, _daily_hours_actions),
    )
    registry.register(
        "MISSING_NOTES", InsightBuilder(_missing_notes_explanation, _missing_notes_actions),
    )
    registry.register("UNUSUAL_ROUNDING", InsightBuilder(_rounding_explanation, _default_actions))
    registry.register("WEEKEND_WORK", InsightBuilder(_weekend_explanation, _weekend_actions))
    registry.register("LONG_SHIFT", InsightBuilder(_long_shift_explanation, _shift_actions))
    registry.register("NO_PAUSES", InsightBuilder(_no_pauses_explanation, _shift_actions))
    return registry
