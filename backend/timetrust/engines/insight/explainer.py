"""Decision Explainer — turns validation results and anomalies into Insights.

An Insight carries a structured explanation, a rule-specific decision menu
and what previous administrator decisions suggest. The explainer is
immutable: recording a decision or switching the strictness profile returns
a new explainer, so insights already built are never affected.
"""

from __future__ import annotations

import logging

from timetrust.engines.insight.learning import (
    DEFAULT_ACCEPT_RATE,
    DecisionLog,
    analyze_previous_decisions,
    learning_note,
)
from timetrust.engines.insight.registry import (
    Finding,
    InsightContext,
    InsightRegistry,
    default_registry,
)
from timetrust.models.anomaly import AnomalyDetection, FindingSeverity
from timetrust.models.entry import TimeInterval
from timetrust.models.insight import AdminDecision, DecisionMode, Insight, LearningData
from timetrust.models.strictness import StrictnessProfile

logger = logging.getLogger(__name__)


def finding_code(finding: Finding) -> str:
    return finding.code


def finding_severity(finding: Finding) -> FindingSeverity:
    if isinstance(finding, AnomalyDetection):
        return finding.severity
    return "critical" if finding.blocking else "warning"


class DecisionExplainer:
    """Builds Insights against a fixed decision log and strictness profile."""

    def __init__(
        self,
        profile: StrictnessProfile | None = None,
        decisions: DecisionLog | None = None,
        registry: InsightRegistry | None = None,
    ) -> None:
        self._profile = profile
        self._decisions = decisions if decisions is not None else DecisionLog()
        self._registry = registry or default_registry()

    @property
    def profile(self) -> StrictnessProfile | None:
        return self._profile

    @property
    def decisions(self) -> DecisionLog:
        return self._decisions

    @property
    def registry(self) -> InsightRegistry:
        return self._registry

    def with_profile(self, profile: StrictnessProfile | None) -> DecisionExplainer:
        return DecisionExplainer(profile, self._decisions, self._registry)

    def record_decision(self, decision: AdminDecision) -> DecisionExplainer:
        """Explainer whose log additionally holds ``decision``."""
        logger.debug("Recorded %s decision on %s", decision.action_taken, decision.rule_code)
        return DecisionExplainer(self._profile, self._decisions.record(decision), self._registry)

    def build_insight(
        self,
        entry: TimeInterval,
        finding: Finding,
        context: InsightContext | None = None,
    ) -> Insight:
        ctx = context or InsightContext()
        code = finding_code(finding)
        builder = self._registry.resolve(finding)
        is_anomaly = isinstance(finding, AnomalyDetection)

        actions = builder.actions(entry, finding, ctx)
        learning = analyze_previous_decisions(self._decisions, code, entry)
        rate = learning.acceptance_rate

        default_action_id = None
        if rate is not None and rate >= DEFAULT_ACCEPT_RATE:
            default_action_id = next((a.id for a in actions if a.kind == "accept"), None)

        return Insight(
            id=f"insight-{entry.id}-{code}",
            kind="anomaly" if is_anomaly else "validation",
            rule_code=code,
            severity=finding_severity(finding),
            title=finding.title if is_anomaly else finding.message,
            short_message=finding.description if is_anomaly else finding.message,
            explanation=builder.explain(entry, finding, ctx),
            decision_mode=DecisionMode(
                question=builder.question,
                actions=actions,
                default_action_id=default_action_id,
                learning_note=learning_note(rate, code),
            ),
            learning=learning,
        )

    def auto_approves(self, finding: Finding, learning: LearningData | None = None) -> bool:
        """Whether the current profile lets ``finding`` pass without review."""
        if self._profile is None:
            return False
        return self._profile.auto_approves(finding, learning)
