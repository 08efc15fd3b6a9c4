"""Tests for baseline statistics and cached aggregates."""

import datetime as dt

import pytest
from conftest import MONDAY, history, make_entry
from pydantic import ValidationError
from timetrust.cache import AggregationCache
from timetrust.engines.anomaly.baselines import (
    AggregateFilter,
    aggregate_by_date,
    aggregate_by_owner,
    aggregate_by_project,
    most_recent,
    owner_baseline,
    project_baseline,
    pstdev,
    require_history,
    snapshot_key,
    team_baseline,
)
from timetrust.exceptions import InsufficientHistoryError


class TestStatistics:
    def test_population_stdev(self):
        assert pstdev([2.0, 3.0]) == 0.5
        assert pstdev([4.0]) == 0.0

    def test_require_history(self):
        with pytest.raises(InsufficientHistoryError) as exc:
            require_history("duration", history(2), 3)
        assert exc.value.required == 3
        assert exc.value.available == 2
        require_history("duration", history(3), 3)

    def test_most_recent_oldest_first(self):
        entries = history(5)
        recent = most_recent(reversed(entries), 3)
        assert [e.id for e in recent] == [e.id for e in entries[-3:]]

    def test_most_recent_orders_clock_values_numerically(self):
        early = make_entry("9:00", "9:30", entry_id="early")
        late = make_entry("10:00", "10:30", entry_id="late")
        assert [e.id for e in most_recent([late, early], 1)] == ["late"]

    def test_require_history_accepts_any_sized_samples(self):
        with pytest.raises(InsufficientHistoryError):
            require_history("time_of_day", [9, 10], 5)


class TestProfiles:
    def test_owner_baseline(self):
        entries = history(4) + [make_entry("13:00", "13:10", project_id="proj-b")]
        baseline = owner_baseline(entries)
        assert baseline.entry_count == 5
        assert baseline.most_common_start_hour == 9
        assert baseline.top_projects[0] == "proj-a"
        assert baseline.micro_entry_share == pytest.approx(0.2)

    def test_empty_owner_baseline(self):
        baseline = owner_baseline([])
        assert baseline.entry_count == 0
        assert baseline.micro_entry_share == 0.0

    def test_project_baseline_filters_project(self):
        entries = history(3, task_id="t1") + [make_entry(project_id="proj-b")]
        baseline = project_baseline(entries, "proj-a")
        assert baseline.entry_count == 3
        assert baseline.avg_duration == 2.0
        assert baseline.top_tasks == ["t1"]

    def test_team_baseline_counts_owner_days(self):
        entries = [make_entry("09:00", "10:00"), make_entry("10:00", "11:00"), make_entry(owner_id="bob")]
        assert team_baseline(entries).avg_entries_per_day == 1.5


class TestAggregates:
    @pytest.fixture
    def entries(self):
        return [
            make_entry("09:00", "11:00"),
            make_entry("11:00", "12:00", billable=False),
            make_entry("09:00", "13:00", owner_id="bob", project_id="proj-b"),
            make_entry("09:00", "10:00", date=MONDAY + dt.timedelta(days=1)),
        ]

    def test_by_owner(self, entries):
        result = aggregate_by_owner(entries)
        assert result["alice"].hours == 4.0
        assert result["alice"].billable_hours == 3.0
        assert result["alice"].entries == 3
        assert result["bob"].hours == 4.0

    def test_by_project_with_filter(self, entries):
        result = aggregate_by_project(entries, AggregateFilter(billable=True))
        assert result["proj-a"].hours == 3.0
        assert result["proj-a"].entries == 2

    def test_by_date_range(self, entries):
        result = aggregate_by_date(entries, AggregateFilter(date_from=MONDAY, date_to=MONDAY))
        assert list(result) == [MONDAY]
        assert result[MONDAY].entries == 3

    def test_cache_hit_for_same_filter_and_entries(self, entries):
        cache = AggregationCache()
        filters = AggregateFilter(owner_ids=("alice",))
        first = aggregate_by_owner(entries, filters, cache)
        second = aggregate_by_owner(entries, filters, cache)
        assert first == second
        assert (cache.hits, cache.misses) == (1, 1)

    def test_changed_entries_miss_cache(self, entries):
        cache = AggregationCache()
        aggregate_by_owner(entries, cache=cache)
        changed = entries[:-1] + [entries[-1].with_changes(end_time="12:00", duration=None)]
        result = aggregate_by_owner(changed, cache=cache)
        assert result["alice"].hours == 6.0
        assert cache.misses == 2

    def test_project_change_misses_cache(self):
        """Collections differing only in project never share cached totals."""
        cache = AggregationCache()
        entry = make_entry("09:00", "11:00", entry_id="x1")
        aggregate_by_project([entry], cache=cache)
        moved = aggregate_by_project([entry.with_changes(project_id="proj-b")], cache=cache)
        assert list(moved) == ["proj-b"]
        assert cache.misses == 2

    def test_owner_change_misses_cache(self):
        cache = AggregationCache()
        entry = make_entry("09:00", "11:00", entry_id="x1")
        aggregate_by_owner([entry], cache=cache)
        assert list(aggregate_by_owner([entry.with_changes(owner_id="bob")], cache=cache)) == ["bob"]

    def test_caller_cannot_alter_cached_result(self, entries):
        cache = AggregationCache()
        first = aggregate_by_owner(entries, cache=cache)
        with pytest.raises(ValidationError):
            first["alice"].hours = 0.0
        first.pop("bob")
        second = aggregate_by_owner(entries, cache=cache)
        assert second["alice"].hours == 4.0
        assert "bob" in second
        assert cache.hits == 1

    def test_snapshot_key_depends_on_content(self, entries):
        assert snapshot_key(entries) == snapshot_key(list(entries))
        assert snapshot_key(entries) != snapshot_key(entries[:-1])
