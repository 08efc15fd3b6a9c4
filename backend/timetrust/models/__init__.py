"""Pydantic record and result models shared by all engines."""

from timetrust.models.anomaly import AnomalyDetection, AnomalyReport
from timetrust.models.entry import (
    Absence,
    EvidenceAnchor,
    Project,
    TenantSettings,
    TimeInterval,
)
from timetrust.models.insight import AdminDecision, Insight
from timetrust.models.repair import Issue, RepairAction, RepairOutcome
from timetrust.models.strictness import STRICTNESS_PROFILES, StrictnessProfile
from timetrust.models.trust import TrustMetrics
from timetrust.models.validation import QuickFix, ValidationResult

__all__ = [
    "STRICTNESS_PROFILES",
    "Absence",
    "AdminDecision",
    "AnomalyDetection",
    "AnomalyReport",
    "EvidenceAnchor",
    "Insight",
    "Issue",
    "Project",
    "QuickFix",
    "RepairAction",
    "RepairOutcome",
    "StrictnessProfile",
    "TenantSettings",
    "TimeInterval",
    "TrustMetrics",
    "ValidationResult",
]
