"""Trust / plausibility models."""

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from timetrust.models.entry import EvidenceAnchor

TrustLevel = Literal["high", "medium", "low", "unverified"]

# Lower bound (inclusive) of each level, highest first
TRUST_LEVEL_FLOORS: tuple[tuple[TrustLevel, int], ...] = (
    ("high", 85),
    ("medium", 70),
    ("low", 50),
    ("unverified", 0),
)


def classify_trust(score: float) -> TrustLevel:
    """Map a plausibility score onto exactly one trust level."""
    for level, floor in TRUST_LEVEL_FLOORS:
        if score >= floor:
            return level
    return "unverified"


class PlausibilityFactors(BaseModel):
    """The five factor scores (0–100) behind a plausibility score."""

    model_config = ConfigDict(frozen=True)

    temporal_consistency: float = Field(ge=0, le=100)
    plan_vs_actual: float = Field(ge=0, le=100)
    project_history: float = Field(ge=0, le=100)
    team_comparison: float = Field(ge=0, le=100)
    evidence_quality: float = Field(ge=0, le=100)


class TrustMetrics(BaseModel):
    """Plausibility score, its factors and the derived trust level."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    plausibility_score: int = Field(ge=0, le=100)
    factors: PlausibilityFactors
    evidence_anchors: list[EvidenceAnchor] = Field(default_factory=list)
    flagged_issues: list[str] = Field(default_factory=list)
    trust_level: TrustLevel
    calculated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )


class ProjectTrustReport(BaseModel):
    """Trust distribution over one project's scored entries."""

    project_id: str
    project_name: str = ""
    total_entries: int = 0
    average_plausibility: int = 0
    high_trust: int = 0
    medium_trust: int = 0
    low_trust: int = 0
    unverified: int = 0
    manual_corrections: int = 0
    evidence_anchored: int = 0


class OwnerTrustReport(BaseModel):
    """Trust summary over one owner's scored entries."""

    owner_id: str
    owner_name: str = ""
    total_entries: int = 0
    average_plausibility: int = 0
    consistency_score: int = 0
    evidence_usage_rate: int = 0  # percent of entries with anchors
