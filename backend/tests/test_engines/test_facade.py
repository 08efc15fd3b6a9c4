"""Tests for TimeTrustEngine — the facade over all engines."""

import pytest
from conftest import make_entry
from timetrust.config import Settings
from timetrust.engine import TimeTrustEngine
from timetrust.exceptions import BlockingValidationError
from timetrust.models.entry import TenantSettings
from timetrust.models.insight import AdminDecision
from timetrust.models.strictness import STRICTNESS_PROFILES


@pytest.fixture
def engine():
    return TimeTrustEngine(TenantSettings(require_notes_for_billable=True))


def test_validate_uses_tenant_settings(engine, projects):
    results = engine.validate(make_entry(task_id="t1"), [], projects)
    assert [r.code for r in results] == ["MISSING_NOTES"]


def test_validate_for_save_blocks_hard_results(engine, projects):
    existing = make_entry("09:00", "11:00")
    with pytest.raises(BlockingValidationError):
        engine.validate_for_save(make_entry("10:00", "12:00"), [existing], projects)


def test_validate_for_save_returns_summary(engine, projects):
    summary = engine.validate_for_save(make_entry(task_id="t1"), [], projects)
    assert summary.can_save
    assert summary.has_soft_warnings


def test_end_to_end_gap_repair(engine):
    entries = [
        make_entry("09:00", "10:00", task_id="t1", notes="a"),
        make_entry("11:30", "12:00", task_id="t1", notes="b"),
    ]
    [issue] = engine.detect_issues(entries)
    outcome = engine.apply_repair(issue.suggested_actions[1], entries, "admin")
    assert outcome.applied
    assert engine.detect_issues(outcome.entries) == []


def test_apply_repair_invalidates_cache(engine):
    engine.cache.set("agg-owner", "k", {"alice": 1})
    entries = [make_entry(entry_id="a")]
    action = engine.detect_issues(entries)[0].suggested_actions[0]
    assert action.payload["fields"] == ["notes", "task"]
    engine.apply_repair(
        action.model_copy(update={"payload": {"entry_id": "a", "changes": {"notes": "x"}}}),
        entries,
        "admin",
    )
    assert len(engine.cache) == 0


def test_score_and_anomalies(engine):
    entry = make_entry()
    assert engine.score_trust(entry, [entry]).trust_level == "medium"
    assert engine.detect_anomalies(entry, []).detections == []


def test_record_decision_feeds_next_insight(engine, projects):
    entry = make_entry(task_id="t1")
    finding = engine.validate(entry, [], projects)[0]
    for _ in range(3):
        engine.record_decision(AdminDecision(rule_code="MISSING_NOTES", action_taken="accept"))
    insight = engine.build_insight(entry, finding, projects)
    assert insight.decision_mode.default_action_id == "accept-no-notes"
    assert len(engine.decisions) == 3


def test_with_profile_shares_decisions(engine):
    engine.record_decision(AdminDecision(rule_code="X", action_taken="accept"))
    strict = engine.with_profile(STRICTNESS_PROFILES["strict"])
    assert strict.validator.long_shift_hours == 8.5
    assert strict.anomaly_detector.confidence_floor == 0.5
    assert len(strict.decisions) == 1
    assert engine.profile is None


def test_store_receives_decisions_and_change_logs(decision_store):
    engine = TimeTrustEngine(store=decision_store)
    engine.record_decision(AdminDecision(rule_code="OVERLAP", action_taken="fix"))
    entries = [make_entry("09:00", "10:00", entry_id="a"), make_entry("10:30", "11:00", entry_id="b")]
    gap = next(i for i in engine.detect_issues(entries) if i.type == "gap")
    extend = next(a for a in gap.suggested_actions if a.label == "Extend previous entry")
    engine.apply_repair(extend, entries, "admin")

    assert len(decision_store.list_decisions()) == 1
    assert len(decision_store.change_log_for("a")) == 1


def test_from_settings_loads_stored_log(monkeypatch, decision_store):
    decision_store.record_decision(AdminDecision(rule_code="X", action_taken="accept"))
    monkeypatch.setenv("TIMETRUST_AUDIT_SINK_ENABLED", "true")
    monkeypatch.setenv("TIMETRUST_STRICTNESS_PROFILE", "relaxed")
    engine = TimeTrustEngine.from_settings(Settings(_env_file=None), decision_store)
    assert engine.store is decision_store
    assert len(engine.decisions) == 1
    assert engine.profile.mode == "relaxed"
