"""Issue and repair-action models for the repair engine.

An Issue is a structural defect across an owner's entry set; its
``suggested_actions`` are ranked by confidence, highest first.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from timetrust.models.anomaly import FindingSeverity
from timetrust.models.entry import ChangeLogEntry, TimeInterval

# === Type aliases ===

IssueType = Literal["gap", "overlap", "missing_data"]
IssueStatus = Literal["pending", "in_review", "resolved", "dismissed"]

RepairActionType = Literal[
    "fill_gap",
    "split_entry",
    "shift_entry",
    "delete_entry",
    "merge_entries",
    "update_field",
    "batch_update",
]


class RepairAction(BaseModel):
    """A proposed, confidence-scored edit resolving an issue.

    Actions sharing an ``exclusive_group`` resolve the same defect in
    incompatible ways; apply at most one of them.
    """

    model_config = ConfigDict(frozen=True)

    type: RepairActionType
    label: str
    description: str = ""
    auto_applicable: bool = False
    confidence: float = Field(ge=0.0, le=1.0)
    recommended: bool = False
    exclusive_group: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class TimeGap(BaseModel):
    """Unoccupied time between two consecutive entries of one day."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    start_time: str
    end_time: str
    minutes: int
    previous_entry_id: str
    next_entry_id: str

    @property
    def hours(self) -> float:
        return self.minutes / 60


class TimeOverlap(BaseModel):
    """Window shared by two entries of one day."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    entry1_id: str
    entry2_id: str
    overlap_start: str
    overlap_end: str
    minutes: int


class Issue(BaseModel):
    """A detected gap, overlap or missing-data defect."""

    id: str
    type: IssueType
    severity: FindingSeverity
    status: IssueStatus = "pending"
    title: str = ""
    description: str = ""
    owner_id: str
    date: dt.date
    affected_entry_ids: list[str] = Field(default_factory=list)
    gap: TimeGap | None = None
    overlap: TimeOverlap | None = None
    missing_fields: list[str] = Field(default_factory=list)
    suggested_actions: list[RepairAction] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    resolved_at: dt.datetime | None = None
    resolved_by: str | None = None
    dismissed_reason: str | None = None

    @property
    def recommended_actions(self) -> list[RepairAction]:
        return [a for a in self.suggested_actions if a.recommended]


class RepairOutcome(BaseModel):
    """Result of applying one repair action to an entry collection."""

    entries: list[TimeInterval]
    applied: bool
    touched_entry_ids: list[str] = Field(default_factory=list)
    created_entry_ids: list[str] = Field(default_factory=list)
    deleted_entry_ids: list[str] = Field(default_factory=list)
    change_log: list[tuple[str, ChangeLogEntry]] = Field(default_factory=list)
    reason: str = ""


# === Daily coverage ===

CoverageIssueType = Literal["missing_hours", "overtime", "weekend_work", "no_entries"]
CoverageSeverity = Literal["low", "medium", "high"]


class CoverageIssue(BaseModel):
    """Daily total hours deviating from the expected workday."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: CoverageIssueType
    severity: CoverageSeverity
    owner_id: str
    date: dt.date
    title: str = ""
    description: str = ""
    expected_hours: float
    actual_hours: float
    difference: float
    suggested_action: str = ""


class CoverageSummary(BaseModel):
    total_gaps: int = 0
    total_overtime: int = 0
    total_missing_hours: float = 0.0
    total_excess_hours: float = 0.0
    affected_days: int = 0


class CoverageAnalysis(BaseModel):
    owner_id: str
    issues: list[CoverageIssue] = Field(default_factory=list)
    summary: CoverageSummary = Field(default_factory=CoverageSummary)
