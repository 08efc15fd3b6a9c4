"""TimeTrustEngine — single entry point over all engines.

Wires the validator, anomaly detector, trust scorer, issue detector, repair
engine and decision explainer to one tenant configuration and strictness
profile. The optional DecisionStore mirrors decisions and repair change logs
to SQL; nothing else here performs I/O.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from collections.abc import Callable, Iterable, Sequence

from timetrust.audit.decision_store import DecisionStore
from timetrust.cache import AggregationCache
from timetrust.config import Settings
from timetrust.engines.anomaly.anomaly_detector import AnomalyDetector
from timetrust.engines.insight.explainer import DecisionExplainer
from timetrust.engines.insight.learning import DecisionLog
from timetrust.engines.insight.registry import Finding, InsightContext
from timetrust.engines.repair.coverage import DailyCoverageAnalyzer
from timetrust.engines.repair.issue_detector import IssueDetector
from timetrust.engines.repair.repair_engine import RepairEngine
from timetrust.engines.trust.trust_scorer import TrustScorer
from timetrust.engines.validation.rule_validator import (
    RuleValidator,
    ensure_persistable,
    summarize,
)
from timetrust.models.anomaly import AnomalyReport
from timetrust.models.entry import (
    Absence,
    EvidenceAnchor,
    Project,
    TenantSettings,
    TimeInterval,
)
from timetrust.models.insight import AdminDecision, Insight
from timetrust.models.repair import CoverageAnalysis, Issue, RepairAction, RepairOutcome
from timetrust.models.strictness import StrictnessProfile
from timetrust.models.trust import TrustMetrics
from timetrust.models.validation import ValidationResult, ValidationSummary

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TimeTrustEngine:
    """Facade exposing validate, detect_anomalies, score_trust, detect_issues,
    apply_repair, build_insight and record_decision.
    """

    def __init__(
        self,
        tenant_settings: TenantSettings | None = None,
        profile: StrictnessProfile | None = None,
        decisions: DecisionLog | None = None,
        cache: AggregationCache | None = None,
        store: DecisionStore | None = None,
        clock: Callable[[], dt.datetime] = _utcnow,
        confidence_floor: float | None = None,
    ) -> None:
        self.tenant_settings = tenant_settings or TenantSettings()
        self.profile = profile
        self.cache = cache or AggregationCache()
        self.store = store
        self._clock = clock
        self._confidence_floor = confidence_floor

        self.validator = RuleValidator(profile)
        self.anomaly_detector = AnomalyDetector(profile, confidence_floor, self.cache)
        self.trust_scorer = TrustScorer()
        self.issue_detector = IssueDetector(clock)
        self.repair_engine = RepairEngine(clock)
        self.coverage_analyzer = DailyCoverageAnalyzer()
        self._explainer = DecisionExplainer(profile, decisions)
        self._explainer_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, config: Settings, store: DecisionStore | None = None,
    ) -> TimeTrustEngine:
        """Build an engine from env-loaded settings."""
        return cls(
            tenant_settings=config.tenant_settings(),
            profile=config.profile(),
            cache=AggregationCache(config.aggregation_cache_ttl_seconds),
            store=store if config.audit_sink_enabled else None,
            confidence_floor=config.anomaly_confidence_floor,
            decisions=store.load_log() if store is not None and config.audit_sink_enabled else None,
        )

    @property
    def explainer(self) -> DecisionExplainer:
        return self._explainer

    @property
    def decisions(self) -> DecisionLog:
        return self._explainer.decisions

    def with_profile(self, profile: StrictnessProfile | None) -> TimeTrustEngine:
        """Engine using ``profile`` for future evaluations; this one is unchanged."""
        return TimeTrustEngine(
            tenant_settings=self.tenant_settings,
            profile=profile,
            decisions=self.decisions,
            cache=self.cache,
            store=self.store,
            clock=self._clock,
            confidence_floor=self._confidence_floor,
        )

    # === Validation ===

    def validate(
        self,
        entry: TimeInterval,
        all_entries: Sequence[TimeInterval],
        projects: Iterable[Project] = (),
        absences: Iterable[Absence] = (),
        holidays: Iterable[dt.date | str] = (),
        settings: TenantSettings | None = None,
    ) -> list[ValidationResult]:
        return self.validator.validate(
            entry, all_entries, projects, absences, holidays,
            settings or self.tenant_settings,
        )

    def validate_for_save(
        self,
        entry: TimeInterval,
        all_entries: Sequence[TimeInterval],
        projects: Iterable[Project] = (),
        absences: Iterable[Absence] = (),
        holidays: Iterable[dt.date | str] = (),
        settings: TenantSettings | None = None,
    ) -> ValidationSummary:
        """Validate and raise BlockingValidationError on any hard result."""
        results = self.validate(entry, all_entries, projects, absences, holidays, settings)
        ensure_persistable(results, entry.id)
        return summarize(results)

    # === Analysis ===

    def detect_anomalies(
        self,
        entry: TimeInterval,
        owner_history: Sequence[TimeInterval],
        project_history: Sequence[TimeInterval] = (),
        team_history: Sequence[TimeInterval] = (),
    ) -> AnomalyReport:
        return self.anomaly_detector.analyze(entry, owner_history, project_history, team_history)

    def score_trust(
        self,
        entry: TimeInterval,
        all_entries: Sequence[TimeInterval],
        evidence_anchors: Iterable[EvidenceAnchor] | None = None,
    ) -> TrustMetrics:
        return self.trust_scorer.score(entry, all_entries, evidence_anchors)

    def detect_issues(
        self,
        entries: Sequence[TimeInterval],
        owner_ids: Iterable[str] | None = None,
    ) -> list[Issue]:
        return self.issue_detector.detect_issues(entries, owner_ids)

    def analyze_coverage(
        self,
        owner_id: str,
        entries: Sequence[TimeInterval],
        start: dt.date,
        end: dt.date,
        absences: Iterable[Absence] = (),
    ) -> CoverageAnalysis:
        return self.coverage_analyzer.analyze(owner_id, entries, start, end, absences)

    # === Repair ===

    def apply_repair(
        self,
        action: RepairAction,
        entries: Sequence[TimeInterval],
        actor: str,
    ) -> RepairOutcome:
        """Apply a repair; its change-log rows go to the store when configured."""
        outcome = self.repair_engine.apply(action, entries, actor)
        if outcome.applied and self.store is not None and outcome.change_log:
            self.store.record_outcome(outcome)
        if outcome.applied:
            self.cache.invalidate()
        return outcome

    # === Decisions ===

    def build_insight(
        self,
        entry: TimeInterval,
        finding: Finding,
        projects: Iterable[Project] = (),
    ) -> Insight:
        context = InsightContext(projects={p.id: p for p in projects})
        return self._explainer.build_insight(entry, finding, context)

    def record_decision(self, decision: AdminDecision) -> DecisionLog:
        """Append ``decision`` to the log (and the store). Returns the new log."""
        with self._explainer_lock:
            self._explainer = self._explainer.record_decision(decision)
            log = self._explainer.decisions
        if self.store is not None:
            self.store.record_decision(decision)
        logger.info("Decision %s on %s recorded", decision.action_taken, decision.rule_code)
        return log
