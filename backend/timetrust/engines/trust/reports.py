"""Trust reports aggregated per project and per owner."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from timetrust.engines.anomaly.baselines import mean
from timetrust.models.entry import TimeInterval
from timetrust.models.trust import OwnerTrustReport, ProjectTrustReport, TrustMetrics


def project_trust_report(
    project_id: str,
    entries: Sequence[TimeInterval],
    metrics: Mapping[str, TrustMetrics],
    project_name: str = "",
) -> ProjectTrustReport:
    """Summarize trust over one project's entries.

    ``metrics`` maps entry id to its TrustMetrics; unscored entries still count
    towards ``total_entries`` and ``manual_corrections``.
    """
    project_entries = [e for e in entries if e.project_id == project_id]
    scored = [metrics[e.id] for e in project_entries if e.id in metrics]
    levels = [m.trust_level for m in scored]
    return ProjectTrustReport(
        project_id=project_id,
        project_name=project_name,
        total_entries=len(project_entries),
        average_plausibility=round(mean([m.plausibility_score for m in scored])),
        high_trust=levels.count("high"),
        medium_trust=levels.count("medium"),
        low_trust=levels.count("low"),
        unverified=levels.count("unverified"),
        manual_corrections=sum(1 for e in project_entries if e.change_log),
        evidence_anchored=sum(1 for m in scored if m.evidence_anchors),
    )


def owner_trust_report(
    owner_id: str,
    entries: Sequence[TimeInterval],
    metrics: Mapping[str, TrustMetrics],
    owner_name: str = "",
) -> OwnerTrustReport:
    owner_entries = [e for e in entries if e.owner_id == owner_id]
    scored = [metrics[e.id] for e in owner_entries if e.id in metrics]
    with_evidence = sum(1 for m in scored if m.evidence_anchors)
    return OwnerTrustReport(
        owner_id=owner_id,
        owner_name=owner_name,
        total_entries=len(owner_entries),
        average_plausibility=round(mean([m.plausibility_score for m in scored])),
        consistency_score=round(mean([m.factors.temporal_consistency for m in scored])),
        evidence_usage_rate=(
            round(with_evidence / len(owner_entries) * 100) if owner_entries else 0
        ),
    )
