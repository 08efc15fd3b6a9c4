"""Tests for RuleValidator — hard and soft rules for a single entry."""

import datetime as dt

import pytest
from conftest import MONDAY, history, make_entry
from timetrust.engines.validation import RuleValidator, ensure_persistable, summarize
from timetrust.exceptions import BlockingValidationError
from timetrust.models.entry import Absence, Project, RestrictedHours, TenantSettings
from timetrust.models.strictness import STRICTNESS_PROFILES

SATURDAY = dt.date(2024, 3, 9)


@pytest.fixture
def validator():
    return RuleValidator()


def codes(results):
    return [r.code for r in results]


def by_code(results, code):
    return next(r for r in results if r.code == code)


class TestOverlap:
    def test_overlap_is_hard_with_three_fixes(self, validator, projects):
        """A 10:00-12:00 entry against 09:00-11:00 is blocked with three fixes."""
        existing = make_entry("09:00", "11:00", entry_id="existing")
        entry = make_entry("10:00", "12:00")
        result = by_code(validator.validate(entry, [existing], projects), "OVERLAP")

        assert result.severity == "hard"
        assert result.blocking
        assert [f.id for f in result.quick_fixes] == ["move-to-end", "adjust-end", "delete-other"]
        assert result.quick_fixes[0].action.value == "11:00"
        assert result.quick_fixes[1].action.value == "09:00"
        assert result.quick_fixes[2].action.entry_ids == ["existing"]
        assert result.metadata["conflicting_entry_id"] == "existing"

    def test_overlap_is_symmetric(self, validator, projects):
        a = make_entry("09:00", "11:00")
        b = make_entry("10:00", "12:00")
        assert "OVERLAP" in codes(validator.validate(a, [b], projects))
        assert "OVERLAP" in codes(validator.validate(b, [a], projects))

    def test_touching_entries_do_not_overlap(self, validator, projects):
        existing = make_entry("09:00", "10:00")
        entry = make_entry("10:00", "11:00")
        assert "OVERLAP" not in codes(validator.validate(entry, [existing], projects))

    def test_other_owners_and_previous_version_ignored(self, validator, projects):
        entry = make_entry("09:00", "10:00", entry_id="same")
        previous_version = make_entry("09:00", "11:00", entry_id="same")
        colleague = make_entry("09:00", "10:00", owner_id="bob")
        results = validator.validate(entry, [previous_version, colleague], projects)
        assert "OVERLAP" not in codes(results)

    def test_one_result_per_conflict(self, validator, projects):
        others = [make_entry("09:00", "10:00"), make_entry("10:00", "11:00")]
        entry = make_entry("09:30", "10:30")
        assert codes(validator.validate(entry, others, projects)).count("OVERLAP") == 2


class TestTimeRules:
    def test_negative_duration(self, validator, projects):
        entry = make_entry("17:00", "09:00")
        result = by_code(validator.validate(entry, [], projects), "NEGATIVE_DURATION")
        assert result.severity == "hard"
        swap, plus12 = result.quick_fixes
        assert swap.id == "swap-times"
        assert swap.action.value == {"start_time": "09:00", "end_time": "17:00"}
        assert plus12.id == "add-12-hours"
        assert plus12.action.value == "21:00"

    def test_zero_length_is_negative_duration(self, validator, projects):
        entry = make_entry("09:00", "09:00")
        assert "NEGATIVE_DURATION" in codes(validator.validate(entry, [], projects))

    def test_malformed_time_is_hard_and_skips_time_rules(self, validator, projects):
        """Unreadable times report INVALID_TIME instead of raising."""
        existing = make_entry("09:00", "11:00")
        entry = make_entry("9am", "10:00")
        results = validator.validate(entry, [existing], projects)

        invalid = by_code(results, "INVALID_TIME")
        assert invalid.blocking
        assert invalid.field == "start_time"
        assert "OVERLAP" not in codes(results)
        assert "NEGATIVE_DURATION" not in codes(results)

    @pytest.mark.parametrize(
        "start,flagged",
        [("23:00", True), ("05:00", True), ("06:00", False), ("12:00", False)],
    )
    def test_restricted_window_wrapping_midnight(self, validator, projects, start, flagged):
        settings = TenantSettings(restricted_hours=RestrictedHours(start="22:00", end="06:00"))
        entry = make_entry(start, start[:3] + "30")
        results = validator.validate(entry, [], projects, settings=settings)
        assert ("RESTRICTED_HOURS" in codes(results)) is flagged

    def test_restricted_window_same_day(self, validator, projects):
        settings = TenantSettings(restricted_hours=RestrictedHours(start="12:00", end="13:00"))
        entry = make_entry("12:15", "12:45")
        assert "RESTRICTED_HOURS" in codes(validator.validate(entry, [], projects, settings=settings))


class TestProjectAndAbsence:
    def test_unknown_project(self, validator, projects):
        entry = make_entry(project_id="proj-x")
        result = by_code(validator.validate(entry, [], projects), "PROJECT_NOT_FOUND")
        assert result.blocking

    def test_inactive_project(self, validator):
        projects = [Project(id="proj-a", name="Archive", active=False)]
        assert "PROJECT_INACTIVE" in codes(validator.validate(make_entry(), [], projects))

    def test_project_ended(self, validator):
        projects = [Project(id="proj-a", name="Legacy", end_date=dt.date(2024, 3, 1))]
        result = by_code(validator.validate(make_entry(), [], projects), "PROJECT_ENDED")
        assert result.metadata["end_date"] == "2024-03-01"

    def test_approved_absence_blocks(self, validator, projects):
        absences = [Absence(owner_id="alice", kind="vacation", start_date=MONDAY, end_date=MONDAY)]
        result = by_code(validator.validate(make_entry(), [], projects, absences), "ABSENCE_CONFLICT")
        assert result.blocking
        assert "vacation" in result.message

    def test_pending_or_foreign_absence_ignored(self, validator, projects):
        absences = [
            Absence(
                owner_id="alice", kind="vacation", start_date=MONDAY, end_date=MONDAY,
                approval_status="submitted",
            ),
            Absence(owner_id="bob", kind="sick", start_date=MONDAY, end_date=MONDAY),
        ]
        results = validator.validate(make_entry(), [], projects, absences)
        assert "ABSENCE_CONFLICT" not in codes(results)


class TestSoftRules:
    def test_excessive_daily_hours(self, validator, projects):
        others = [make_entry("06:00", "14:00")]
        entry = make_entry("14:00", "19:00")
        result = by_code(validator.validate(entry, others, projects), "EXCESSIVE_DAILY_HOURS")
        assert result.severity == "soft"
        assert result.metadata["total_hours"] == 13.0
        assert result.metadata["limit"] == 12.0

    def test_daily_limit_is_inclusive(self, validator, projects):
        others = [make_entry("06:00", "14:00")]
        entry = make_entry("14:00", "18:00")
        assert "EXCESSIVE_DAILY_HOURS" not in codes(validator.validate(entry, others, projects))

    def test_missing_notes_offers_two_fixes(self, validator, projects, notes_settings):
        """Billable entry without notes gets MISSING_NOTES with two quick fixes."""
        entry = make_entry(billable=True, task_id="t1")
        results = validator.validate(entry, [], projects, settings=notes_settings)
        result = by_code(results, "MISSING_NOTES")

        assert result.severity == "soft"
        assert [f.id for f in result.quick_fixes] == ["add-standard-note", "mark-non-billable"]
        assert result.quick_fixes[0].action.value == "Project work Website Relaunch"
        assert result.quick_fixes[1].action.value is False
        assert "MISSING_TASK_OR_NOTES" not in codes(results)

    def test_missing_task_or_notes(self, validator, projects):
        entry = make_entry(billable=False)
        result = by_code(validator.validate(entry, [], projects), "MISSING_TASK_OR_NOTES")
        assert result.quick_fixes[0].id == "add-placeholder-note"

    def test_notes_satisfy_both_rules(self, validator, projects, notes_settings):
        entry = make_entry(notes="Landing page copy")
        results = validator.validate(entry, [], projects, settings=notes_settings)
        assert not {"MISSING_NOTES", "MISSING_TASK_OR_NOTES"} & set(codes(results))

    def test_unusual_rounding(self, validator, projects):
        past = history(12, start="09:00", end="13:00")
        entry = make_entry("09:00", "13:00")
        result = by_code(validator.validate(entry, past, projects), "UNUSUAL_ROUNDING")
        assert result.metadata["exact_hour_share"] == 1.0

    def test_rounding_window_orders_single_digit_hours_by_clock(self, validator, projects):
        """Short entries before 10:00 are the oldest of the day and fall out of the window."""
        day = dt.date(2024, 1, 1)
        early = [make_entry(f"{h}:00", f"{h}:20", date=day) for h in range(1, 8)]
        later = [make_entry(f"{h}:00", f"{h + 1}:00", date=day) for h in range(10, 23)]
        following = history(7, start="09:00", end="10:00", first_day=day + dt.timedelta(days=1))
        entry = make_entry("09:00", "13:00")
        results = validator.validate(entry, early + later + following, projects)
        assert by_code(results, "UNUSUAL_ROUNDING").metadata["exact_hour_share"] == 1.0

    def test_rounding_needs_ten_entries_of_history(self, validator, projects):
        past = history(9, start="09:00", end="13:00")
        entry = make_entry("09:00", "13:00")
        assert "UNUSUAL_ROUNDING" not in codes(validator.validate(entry, past, projects))

    def test_rounding_ignores_short_entries(self, validator, projects):
        past = history(12, start="09:00", end="12:00")
        entry = make_entry("09:00", "12:00")
        assert "UNUSUAL_ROUNDING" not in codes(validator.validate(entry, past, projects))

    def test_weekend_work(self, validator, projects):
        settings = TenantSettings(weekend_work_requires_approval=True)
        entry = make_entry(date=SATURDAY)
        result = by_code(validator.validate(entry, [], projects, settings=settings), "WEEKEND_WORK")
        assert result.metadata["day"] == "Saturday"

    def test_weekend_work_pre_approved_owner(self, validator, projects):
        settings = TenantSettings(
            weekend_work_requires_approval=True, weekend_approved_owner_ids=["alice"],
        )
        entry = make_entry(date=SATURDAY)
        assert "WEEKEND_WORK" not in codes(validator.validate(entry, [], projects, settings=settings))

    def test_holiday_work(self, validator, projects):
        results = validator.validate(make_entry(), [], projects, holidays=["2024-03-04"])
        assert "HOLIDAY_WORK" in codes(results)

    def test_long_shift(self, validator, projects):
        entry = make_entry("08:00", "18:30")
        result = by_code(validator.validate(entry, [], projects), "LONG_SHIFT")
        assert result.metadata["cutoff"] == 10.0

    def test_no_pauses(self, validator, projects):
        others = [make_entry("08:00", "12:00")]
        entry = make_entry("12:10", "16:30")
        result = by_code(validator.validate(entry, others, projects), "NO_PAUSES")
        assert result.metadata["entry_count"] == 2

    def test_thirty_minute_break_counts(self, validator, projects):
        others = [make_entry("08:00", "12:00")]
        entry = make_entry("12:30", "16:45")
        assert "NO_PAUSES" not in codes(validator.validate(entry, others, projects))

    def test_soft_results_never_block(self, validator, projects):
        entry = make_entry("08:00", "18:30", date=SATURDAY)
        results = validator.validate(entry, [], projects)
        assert results
        assert all(not r.blocking for r in results)
        ensure_persistable(results, entry.id)


class TestStrictness:
    def test_strict_profile_lowers_long_shift_cutoff(self, projects):
        entry = make_entry("08:00", "17:00")
        strict = RuleValidator(STRICTNESS_PROFILES["strict"])
        assert "LONG_SHIFT" in codes(strict.validate(entry, [], projects))
        assert "LONG_SHIFT" not in codes(RuleValidator().validate(entry, [], projects))

    def test_relaxed_profile_tolerates_near_whole_hours(self, projects):
        past = history(12, start="09:00", end="13:10")
        entry = make_entry("09:00", "13:10")
        relaxed = RuleValidator(STRICTNESS_PROFILES["relaxed"])
        assert "UNUSUAL_ROUNDING" in codes(relaxed.validate(entry, past, projects))
        assert "UNUSUAL_ROUNDING" not in codes(RuleValidator().validate(entry, past, projects))


class TestPersistence:
    def test_hard_results_raise(self, validator, projects):
        existing = make_entry("09:00", "11:00")
        entry = make_entry("10:00", "12:00")
        results = validator.validate(entry, [existing], projects)
        with pytest.raises(BlockingValidationError) as exc:
            ensure_persistable(results, entry.id)
        assert exc.value.entry_id == entry.id
        assert [r.code for r in exc.value.results] == ["OVERLAP"]

    def test_summarize_splits_by_severity(self, validator, projects):
        entry = make_entry("10:00", "12:00", project_id="proj-x")
        summary = summarize(validator.validate(entry, [], projects))
        assert summary.has_hard_errors
        assert not summary.can_save
        assert all(r.severity == "hard" for r in summary.hard_errors)
        assert all(r.severity == "soft" for r in summary.soft_warnings)
