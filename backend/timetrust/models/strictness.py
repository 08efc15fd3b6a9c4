"""Strictness presets — named threshold bundles for rule sensitivity."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict

from timetrust.models.anomaly import AnomalyDetection
from timetrust.models.validation import ValidationResult

if TYPE_CHECKING:
    from timetrust.models.insight import LearningData

StrictnessMode = Literal["strict", "neutral", "relaxed"]


class StrictnessThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_deviation: float  # min relative deviation for a duration anomaly
    overtime_warning: float    # hours; long-shift cutoff
    rounding_tolerance: float  # hours; distance from a whole hour still "exact"
    anomaly_confidence: float  # detection floor


class AutoApprove(BaseModel):
    model_config = ConfigDict(frozen=True)

    minor_deviations: bool
    repeated_patterns: bool


class StrictnessProfile(BaseModel):
    """A named preset mapping to concrete thresholds and auto-approval flags."""

    model_config = ConfigDict(frozen=True)

    mode: StrictnessMode
    label: str
    description: str = ""
    thresholds: StrictnessThresholds
    auto_approve: AutoApprove

    def auto_approves(
        self,
        finding: ValidationResult | AnomalyDetection,
        learning: LearningData | None = None,
    ) -> bool:
        """Whether a finding may be approved without human acknowledgment.

        Hard validation results are never auto-approved. Minor findings are
        soft results and info-level anomalies; repeated patterns are findings
        whose decision history suggests "accept".
        """
        if isinstance(finding, ValidationResult) and finding.blocking:
            return False
        minor = isinstance(finding, ValidationResult) or finding.severity == "info"
        if minor and self.auto_approve.minor_deviations:
            return True
        if (
            self.auto_approve.repeated_patterns
            and learning is not None
            and learning.suggested_action == "accept"
        ):
            return True
        return False


STRICTNESS_PROFILES: dict[StrictnessMode, StrictnessProfile] = {
    "strict": StrictnessProfile(
        mode="strict",
        label="Strict",
        description="Billing and audits: every deviation is reviewed.",
        thresholds=StrictnessThresholds(
            duration_deviation=0.1,
            overtime_warning=8.5,
            rounding_tolerance=0.05,
            anomaly_confidence=0.5,
        ),
        auto_approve=AutoApprove(minor_deviations=False, repeated_patterns=False),
    ),
    "neutral": StrictnessProfile(
        mode="neutral",
        label="Neutral",
        description="Internal projects: balance between control and efficiency.",
        thresholds=StrictnessThresholds(
            duration_deviation=0.25,
            overtime_warning=10,
            rounding_tolerance=0.1,
            anomaly_confidence=0.7,
        ),
        auto_approve=AutoApprove(minor_deviations=True, repeated_patterns=True),
    ),
    "relaxed": StrictnessProfile(
        mode="relaxed",
        label="Relaxed",
        description="Creative work: trust and flexibility first.",
        thresholds=StrictnessThresholds(
            duration_deviation=0.5,
            overtime_warning=12,
            rounding_tolerance=0.25,
            anomaly_confidence=0.85,
        ),
        auto_approve=AutoApprove(minor_deviations=True, repeated_patterns=True),
    ),
}


def get_profile(mode: StrictnessMode) -> StrictnessProfile:
    """Look up a preset by name, raising KeyError for unknown modes."""
    return STRICTNESS_PROFILES[mode]
