"""Time entry and reference-data models.

Includes: TimeInterval (the "entry"), EvidenceAnchor, AuditMetadata,
ChangeLogEntry, Project, Absence, TenantSettings.

All models are frozen. A mutation is a new instance produced with
``TimeInterval.with_changes``; the engine never edits a record in place.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

# === Type aliases ===

ApprovalStatus = Literal["draft", "submitted", "approved", "rejected"]
AbsenceKind = Literal["vacation", "sick", "holiday", "blocked"]
AnchorKind = Literal["calendar", "file", "location_hash", "approval", "system"]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class EvidenceAnchor(BaseModel):
    """An independently verifiable fact supporting an entry."""

    model_config = ConfigDict(frozen=True)

    kind: AnchorKind
    timestamp: dt.datetime = Field(default_factory=_utcnow)
    value: str = ""
    verified: bool = False


class AuditMetadata(BaseModel):
    """Who created/last touched an entry."""

    model_config = ConfigDict(frozen=True)

    created_by: str = "system"
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_by: str | None = None
    updated_at: dt.datetime | None = None
    device: str | None = None


class ChangeLogEntry(BaseModel):
    """One row of an entry's ordered change log."""

    model_config = ConfigDict(frozen=True)

    timestamp: dt.datetime = Field(default_factory=_utcnow)
    actor: str
    before: dict[str, Any] = Field(default_factory=dict)
    after: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""
    device: str | None = None


class TimeInterval(BaseModel):
    """One recorded start–end work period for one owner.

    ``start_time``/``end_time`` are local "HH:MM" strings on ``date``. They are
    deliberately not validated here: the rule validator reports malformed
    clock values as a hard result instead of failing at construction.
    ``duration`` (hours) is derived from the clock values when omitted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"entry-{uuid4().hex[:12]}")
    tenant_id: str = "default-tenant"
    owner_id: str
    project_id: str
    task_id: str | None = None
    phase_id: str | None = None
    date: dt.date
    start_time: str
    end_time: str
    duration: float = 0.0
    billable: bool = True
    notes: str = ""
    tags: list[str] = Field(default_factory=list)
    approval_status: ApprovalStatus = "draft"
    locked: bool = False
    audit: AuditMetadata = Field(default_factory=AuditMetadata)
    change_log: list[ChangeLogEntry] = Field(default_factory=list)
    evidence: list[EvidenceAnchor] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _derive_duration(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("duration") is not None:
            return data
        # Local import: intervals depends on nothing in models
        from timetrust.engines.intervals import duration_hours

        try:
            hours = duration_hours(data.get("start_time"), data.get("end_time"))
        except ValueError:
            hours = 0.0
        return {**data, "duration": max(hours, 0.0)}

    @property
    def is_immutable(self) -> bool:
        """Locked or approved entries are never changed by the engine."""
        return self.locked or self.approval_status == "approved"

    @property
    def has_notes(self) -> bool:
        return bool(self.notes and self.notes.strip())

    def with_changes(self, **changes: Any) -> TimeInterval:
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return TimeInterval.model_validate(data)


class Project(BaseModel):
    """Project reference data consulted by the hard project rules."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    active: bool = True
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class Absence(BaseModel):
    """Vacation, sickness, holiday or blocked period of one owner."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"absence-{uuid4().hex[:12]}")
    owner_id: str
    kind: AbsenceKind
    start_date: dt.date
    end_date: dt.date
    approval_status: ApprovalStatus = "approved"
    reason: str | None = None

    def covers(self, day: dt.date) -> bool:
        return self.start_date <= day <= self.end_date


class RestrictedHours(BaseModel):
    """Window ("HH:MM"–"HH:MM") in which starting work needs approval."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str


class TenantSettings(BaseModel):
    """Per-tenant rule configuration passed to the validator."""

    model_config = ConfigDict(frozen=True)

    max_daily_hours: float = 12.0
    restricted_hours: RestrictedHours | None = None
    weekend_work_requires_approval: bool = False
    require_notes_for_billable: bool = False
    weekend_approved_owner_ids: list[str] = Field(default_factory=list)
