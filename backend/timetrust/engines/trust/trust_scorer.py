"""Trust Scorer — plausibility of one entry from five weighted factors.

Deterministic engine. Each factor scores 0–100:
1. temporal_consistency — overlaps, excessive length, odd start, uniform days
2. plan_vs_actual — duration vs recent same project+task entries
3. project_history — owner's familiarity with the project
4. team_comparison — duration vs other owners on the same project+task
5. evidence_quality — independent anchors attached to the entry

The weighted sum is rounded into ``plausibility_score`` and classified into a
trust level. No surveillance data is used.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from timetrust.engines.anomaly.baselines import mean, most_recent
from timetrust.engines.intervals import (
    entries_overlap,
    entry_bounds,
    is_exact_hour,
    is_parseable,
)
from timetrust.models.entry import EvidenceAnchor, TimeInterval
from timetrust.models.trust import PlausibilityFactors, TrustMetrics, classify_trust

logger = logging.getLogger(__name__)

FACTOR_WEIGHTS: dict[str, float] = {
    "temporal_consistency": 0.30,
    "plan_vs_actual": 0.20,
    "project_history": 0.15,
    "team_comparison": 0.20,
    "evidence_quality": 0.15,
}

# (upper bound of relative deviation, score); first match wins
DEVIATION_BANDS: tuple[tuple[float, float], ...] = (
    (0.2, 100),
    (0.5, 85),
    (1.0, 70),
    (2.0, 55),
)
DEVIATION_FLOOR_SCORE = 40

PLAN_WINDOW = 10
NO_PLAN_HISTORY_SCORE = 50
MIN_TEAM_ENTRIES = 3
NEUTRAL_TEAM_SCORE = 70

FLAG_TEMPORAL = "Temporal inconsistency detected"
FLAG_PLAN = "Deviates strongly from the usual pattern"
FLAG_TEAM = "Deviates from the team average"


def band_deviation(actual: float, typical: float) -> float:
    """Map relative deviation of ``actual`` from ``typical`` onto a score."""
    deviation = abs(actual - typical) / typical
    for upper, score in DEVIATION_BANDS:
        if deviation < upper:
            return score
    return DEVIATION_FLOOR_SCORE


class TrustScorer:
    """Computes TrustMetrics for single entries."""

    def score(
        self,
        entry: TimeInterval,
        all_entries: Sequence[TimeInterval],
        evidence_anchors: Iterable[EvidenceAnchor] | None = None,
    ) -> TrustMetrics:
        """Score ``entry`` against the full entry collection.

        ``evidence_anchors`` defaults to the anchors stored on the entry.
        Raises TimeParseError when the entry's own clock values are unreadable.
        """
        anchors = list(entry.evidence if evidence_anchors is None else evidence_anchors)
        others = [e for e in all_entries if e.id != entry.id]

        factors = PlausibilityFactors(
            temporal_consistency=self.temporal_consistency(entry, others),
            plan_vs_actual=self.plan_vs_actual(entry, others),
            project_history=self.project_history(entry, others),
            team_comparison=self.team_comparison(entry, others),
            evidence_quality=self.evidence_quality(anchors),
        )
        weighted = sum(getattr(factors, name) * w for name, w in FACTOR_WEIGHTS.items())
        plausibility = max(0, min(100, round(weighted)))

        flagged: list[str] = []
        if factors.temporal_consistency < 60:
            flagged.append(FLAG_TEMPORAL)
        if factors.plan_vs_actual < 50:
            flagged.append(FLAG_PLAN)
        if factors.team_comparison < 50:
            flagged.append(FLAG_TEAM)

        metrics = TrustMetrics(
            entry_id=entry.id,
            plausibility_score=plausibility,
            factors=factors,
            evidence_anchors=anchors,
            flagged_issues=flagged,
            trust_level=classify_trust(plausibility),
        )
        logger.debug("Trust for %s: %d (%s)", entry.id, plausibility, metrics.trust_level)
        return metrics

    # === Factors ===

    @staticmethod
    def temporal_consistency(entry: TimeInterval, others: Sequence[TimeInterval]) -> float:
        score = 100.0
        start, _ = entry_bounds(entry)
        day = [
            e for e in others
            if e.owner_id == entry.owner_id and e.date == entry.date
        ]

        if any(is_parseable(e) and entries_overlap(entry, e) for e in day):
            score -= 40
        if entry.duration > 12:
            score -= 20
        if entry.duration > 16:
            score -= 30
        if start < 3 * 60 or start > 23 * 60:
            score -= 15

        if (
            is_exact_hour(entry.duration)
            and len(day) + 1 > 3
            and all(is_exact_hour(e.duration) for e in day)
        ):
            score -= 10
        return max(0.0, min(100.0, score))

    @staticmethod
    def plan_vs_actual(entry: TimeInterval, others: Sequence[TimeInterval]) -> float:
        matching = [
            e for e in others
            if e.project_id == entry.project_id and e.task_id == entry.task_id
        ]
        recent = most_recent(matching, PLAN_WINDOW)
        typical = mean([e.duration for e in recent])
        if not recent or typical <= 0:
            return NO_PLAN_HISTORY_SCORE
        return band_deviation(entry.duration, typical)

    @staticmethod
    def project_history(entry: TimeInterval, others: Sequence[TimeInterval]) -> float:
        prior = sum(
            1 for e in others
            if e.owner_id == entry.owner_id and e.project_id == entry.project_id
        )
        if prior > 20:
            return 95.0
        return min(95.0, 60 + prior * 1.75)

    @staticmethod
    def team_comparison(entry: TimeInterval, others: Sequence[TimeInterval]) -> float:
        team = [
            e for e in others
            if e.project_id == entry.project_id
            and e.task_id == entry.task_id
            and e.owner_id != entry.owner_id
        ]
        typical = mean([e.duration for e in team])
        if len(team) < MIN_TEAM_ENTRIES or typical <= 0:
            return NEUTRAL_TEAM_SCORE
        return band_deviation(entry.duration, typical)

    @staticmethod
    def evidence_quality(anchors: Sequence[EvidenceAnchor]) -> float:
        if not anchors:
            return 50.0
        score = 50.0 + 15 * sum(1 for a in anchors if a.verified)
        kinds = {a.kind for a in anchors}
        if "calendar" in kinds:
            score += 10
        if "location_hash" in kinds:
            score += 10
        if "approval" in kinds:
            score += 15
        return min(100.0, score)
