"""Tests for TrustScorer — five weighted factors, trust levels and reports."""

import datetime as dt

import pytest
from conftest import history, make_entry
from timetrust.engines.trust import TrustScorer
from timetrust.engines.trust.anchors import (
    approval_anchor,
    calendar_anchor,
    file_anchor,
    location_hash,
    location_hash_anchor,
)
from timetrust.engines.trust.reports import owner_trust_report, project_trust_report
from timetrust.engines.trust.trust_scorer import FLAG_PLAN, FLAG_TEAM, FLAG_TEMPORAL, band_deviation
from timetrust.exceptions import TimeParseError
from timetrust.models.trust import classify_trust


@pytest.fixture
def scorer():
    return TrustScorer()


class TestScore:
    def test_isolated_entry_is_medium(self, scorer):
        """No history and no evidence: neutral factors give a medium score."""
        entry = make_entry()
        metrics = scorer.score(entry, [entry])
        assert metrics.factors.temporal_consistency == 100
        assert metrics.factors.plan_vs_actual == 50
        assert metrics.factors.project_history == 60
        assert metrics.factors.team_comparison == 70
        assert metrics.factors.evidence_quality == 50
        assert metrics.plausibility_score in (70, 71)
        assert metrics.trust_level == "medium"
        assert metrics.flagged_issues == []

    def test_score_always_in_bounds(self, scorer):
        entry = make_entry("01:00", "18:30")
        others = [make_entry("02:00", "03:00")] + history(10, start="09:00", end="10:00", task_id=None)
        metrics = scorer.score(entry, others)
        assert 0 <= metrics.plausibility_score <= 100

    def test_adding_verified_evidence_never_lowers_score(self, scorer):
        entry = make_entry()
        anchors = []
        previous = scorer.score(entry, [], anchors).plausibility_score
        for anchor in (
            calendar_anchor("Standup", "09:00"),
            location_hash_anchor(52.52, 13.405),
            approval_anchor("lead", dt.datetime(2024, 3, 4, tzinfo=dt.timezone.utc)),
        ):
            anchors.append(anchor)
            current = scorer.score(entry, [], anchors).plausibility_score
            assert current >= previous
            previous = current

    def test_anchors_default_to_entry_evidence(self, scorer):
        entry = make_entry(evidence=[calendar_anchor("Review", "09:00")])
        metrics = scorer.score(entry, [])
        assert metrics.factors.evidence_quality == 75
        assert len(metrics.evidence_anchors) == 1

    def test_malformed_entry_raises(self, scorer):
        with pytest.raises(TimeParseError):
            scorer.score(make_entry("nine", "10:00"), [])


class TestFactors:
    def test_overlap_lowers_temporal_consistency(self, scorer):
        entry = make_entry("09:00", "11:00")
        other = make_entry("10:00", "12:00")
        assert scorer.temporal_consistency(entry, [other]) == 60

    def test_long_overlapping_entry_is_flagged(self, scorer):
        entry = make_entry("05:00", "18:00")
        other = make_entry("10:00", "12:00")
        metrics = scorer.score(entry, [other])
        assert metrics.factors.temporal_consistency == 40
        assert FLAG_TEMPORAL in metrics.flagged_issues

    def test_night_start_penalty(self, scorer):
        assert scorer.temporal_consistency(make_entry("02:00", "03:00"), []) == 85

    def test_uniform_whole_hour_day_penalty(self, scorer):
        day = [make_entry("08:00", "09:00"), make_entry("09:00", "10:00"), make_entry("10:00", "11:00")]
        entry = make_entry("11:00", "12:00")
        assert scorer.temporal_consistency(entry, day) == 90
        assert scorer.temporal_consistency(entry, day[:2]) == 100

    def test_plan_vs_actual_bands(self, scorer):
        past = history(10, task_id="t1")
        assert scorer.plan_vs_actual(make_entry("09:00", "11:00", task_id="t1"), past) == 100
        assert scorer.plan_vs_actual(make_entry("09:00", "14:00", task_id="t1"), past) == 55
        assert scorer.plan_vs_actual(make_entry("08:00", "16:00", task_id="t1"), past) == 40

    def test_plan_window_orders_single_digit_hours_by_clock(self, scorer):
        day = dt.date(2024, 1, 1)
        oldest = make_entry("9:00", "17:00", date=day, task_id="t1")
        recent = [make_entry(f"{h}:00", f"{h + 2}:00", date=day, task_id="t1") for h in range(10, 20)]
        entry = make_entry("09:00", "11:00", task_id="t1")
        assert scorer.plan_vs_actual(entry, [oldest, *recent]) == 100

    def test_plan_deviation_flagged(self, scorer):
        past = history(10, task_id="t1")
        metrics = scorer.score(make_entry("08:00", "16:00", task_id="t1"), past)
        assert FLAG_PLAN in metrics.flagged_issues

    def test_project_history_grows_with_familiarity(self, scorer):
        entry = make_entry()
        assert scorer.project_history(entry, history(10)) == pytest.approx(77.5)
        assert scorer.project_history(entry, history(21)) == 95

    def test_team_comparison(self, scorer):
        team = history(3, owner_id="bob", task_id="t1")
        entry = make_entry("08:00", "16:00", task_id="t1")
        assert scorer.team_comparison(entry, team) == 40
        assert scorer.team_comparison(entry, team[:2]) == 70
        assert FLAG_TEAM in scorer.score(entry, team).flagged_issues

    def test_evidence_quality_capped(self, scorer):
        anchors = [
            calendar_anchor("Standup", "09:00"),
            location_hash_anchor(52.52, 13.405),
            approval_anchor("lead", dt.datetime(2024, 3, 4, tzinfo=dt.timezone.utc)),
        ]
        assert scorer.evidence_quality(anchors) == 100

    def test_unverified_file_anchor(self, scorer):
        anchor = file_anchor("timesheet.docx", dt.datetime(2024, 3, 4, tzinfo=dt.timezone.utc))
        assert not anchor.verified
        assert scorer.evidence_quality([anchor]) == 50


class TestLevelsAndAnchors:
    @pytest.mark.parametrize(
        "score,level",
        [(100, "high"), (85, "high"), (84, "medium"), (70, "medium"), (69, "low"), (50, "low"), (49, "unverified"), (0, "unverified")],
    )
    def test_classify_trust(self, score, level):
        assert classify_trust(score) == level

    def test_band_deviation_edges(self):
        assert band_deviation(1.19, 1.0) == 100
        assert band_deviation(1.25, 1.0) == 85
        assert band_deviation(3.0, 1.0) == 40

    def test_location_hash_is_coarse(self):
        assert location_hash(52.520008, 13.404954) == "52.52,13.4±100m"
        anchor = location_hash_anchor(52.520008, 13.404954, radius=250)
        assert anchor.value.endswith("±250m")
        assert "52.520008" not in anchor.value


class TestReports:
    def test_project_report(self, scorer):
        entries = [
            make_entry("09:00", "10:00", evidence=[calendar_anchor("Sync", "09:00")]),
            make_entry("10:00", "11:00"),
            make_entry("10:00", "11:00", project_id="proj-b"),
        ]
        metrics = {e.id: scorer.score(e, entries) for e in entries}
        report = project_trust_report("proj-a", entries, metrics, "Website Relaunch")
        assert report.total_entries == 2
        assert report.evidence_anchored == 1
        assert report.high_trust + report.medium_trust + report.low_trust + report.unverified == 2

    def test_owner_report(self, scorer):
        entries = history(4)
        metrics = {e.id: scorer.score(e, entries) for e in entries[:2]}
        report = owner_trust_report("alice", entries, metrics)
        assert report.total_entries == 4
        assert report.evidence_usage_rate == 0
        assert report.consistency_score == 100
