"""Anomaly detection models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# === Type aliases ===

AnomalyType = Literal[
    "time_of_day",
    "duration",
    "micro_entries",
    "frequency",
    "project_switching",
    "deviation_from_team",
]

FindingSeverity = Literal["info", "warning", "critical"]


class AnomalyBaseline(BaseModel):
    """Typical vs current value of the metric that triggered a detection."""

    model_config = ConfigDict(frozen=True)

    metric: str
    typical: str
    current: str


class AnomalyDetection(BaseModel):
    """A deviation of one entry from historical behaviour."""

    model_config = ConfigDict(frozen=True)

    type: AnomalyType
    severity: FindingSeverity = "info"
    title: str = ""
    description: str = ""
    evidence: list[str] = Field(default_factory=list)
    baseline: AnomalyBaseline
    confidence: float = Field(ge=0.0, le=1.0)

    @property
    def code(self) -> str:
        """Rule code used by the insight registry and decision log."""
        return self.type.upper()


class SkippedCheck(BaseModel):
    """A check that did not run because its minimum history was not met."""

    model_config = ConfigDict(frozen=True)

    check: str
    required: int
    available: int
    scope: Literal["owner", "project", "team"] = "owner"


class AnomalyReport(BaseModel):
    """Detections plus the precondition-not-met checks of one analysis."""

    entry_id: str
    detections: list[AnomalyDetection] = Field(default_factory=list)
    skipped_checks: list[SkippedCheck] = Field(default_factory=list)
    confidence_floor: float = 0.6

    @property
    def complete(self) -> bool:
        """True when every check had enough history to run."""
        return not self.skipped_checks
