"""Tests for window partitioning."""

from datetime import timedelta

import pytest

from sustain_miner.history.windows import (
    calendar_bounds,
    fixed_bounds,
    observed_span,
    partition,
    partition_by_month,
)
from sustain_miner.models import DateRange

THIRTY_DAYS = timedelta(days=30)


class TestPartition:
    """Test fixed-size windows."""

    def test_scenario_split(self, scenario_commits, day):
        span = DateRange(day(1), day(61))
        windows = partition(scenario_commits, THIRTY_DAYS, span)

        assert [len(w) for w in windows] == [2, 1]
        assert windows[0].commits == tuple(scenario_commits[:2])
        assert windows[1].commits == (scenario_commits[2],)

    def test_windows_are_contiguous_and_indexed(self, scenario_commits, day):
        windows = partition(scenario_commits, THIRTY_DAYS, DateRange(day(1), day(75)))
        assert [w.index for w in windows] == [1, 2, 3]
        for prev, cur in zip(windows, windows[1:]):
            assert prev.end == cur.start
        # Last window is cut at the span end
        assert windows[-1].end == day(75)
        assert windows[-1].end - windows[-1].start == timedelta(days=14)

    def test_empty_windows_are_kept(self, make_fact, day):
        commits = [make_fact("A", day(1)), make_fact("A", day(70))]
        windows = partition(commits, THIRTY_DAYS, DateRange(day(1), day(91)))
        assert [len(w) for w in windows] == [1, 0, 1]

    def test_concatenation_reproduces_input(self, make_fact, day):
        commits = [make_fact(f"dev{i % 3}", day(1 + i * 4)) for i in range(25)]
        windows = partition(commits, timedelta(days=7), DateRange(day(1), day(101)))
        flattened = [c for w in windows for c in w.commits]
        assert flattened == commits

    def test_every_commit_exactly_once(self, make_fact, day):
        commits = [make_fact("dev", day(1 + i)) for i in range(60)]
        windows = partition(commits, timedelta(days=9), DateRange(day(1), day(61)))
        hashes = [c.hash for w in windows for c in w.commits]
        assert sorted(hashes) == sorted(c.hash for c in commits)
        assert len(set(hashes)) == len(hashes)

    def test_boundary_commit_goes_to_later_window(self, make_fact, day):
        commits = [make_fact("A", day(31))]
        windows = partition(commits, THIRTY_DAYS, DateRange(day(1), day(61)))
        assert [len(w) for w in windows] == [0, 1]

    def test_same_timestamp_keeps_source_order(self, make_fact, day):
        commits = [make_fact(name, day(5)) for name in ("zed", "amy", "bob")]
        (window,) = partition(commits, THIRTY_DAYS, DateRange(day(1), day(31)))
        assert [c.author_name for c in window.commits] == ["zed", "amy", "bob"]

    def test_commits_outside_span_are_excluded(self, make_fact, day):
        commits = [make_fact("A", day(1)), make_fact("B", day(20)), make_fact("C", day(50))]
        windows = partition(commits, THIRTY_DAYS, DateRange(day(10), day(40)))
        assert [c.author_name for w in windows for c in w.commits] == ["B"]

    def test_no_span_gives_one_window_over_history(self, make_fact, day):
        commits = [make_fact("A", day(3)), make_fact("B", day(300))]
        (window,) = partition(commits, THIRTY_DAYS, None)
        assert window.start == day(3)
        assert window.contains(day(300))
        assert len(window) == 2

    def test_no_span_no_commits(self):
        assert partition([], THIRTY_DAYS, None) == []

    def test_unordered_input_is_rejected(self, make_fact, day):
        commits = [make_fact("A", day(5)), make_fact("B", day(2))]
        with pytest.raises(ValueError):
            partition(commits, THIRTY_DAYS, DateRange(day(1), day(31)))


class TestBounds:
    def test_fixed_bounds_require_positive_size(self, day):
        with pytest.raises(ValueError):
            fixed_bounds(DateRange(day(1), day(2)), timedelta(0))

    def test_calendar_bounds_follow_months(self):
        span = DateRange.from_dates("2021-11-15", "2022-02-10")
        bounds = calendar_bounds(span)
        assert [(lo.date().isoformat(), hi.date().isoformat()) for lo, hi in bounds] == [
            ("2021-11-15", "2021-12-01"),
            ("2021-12-01", "2022-01-01"),
            ("2022-01-01", "2022-02-01"),
            ("2022-02-01", "2022-02-11"),
        ]

    def test_partition_by_month(self, make_fact, day):
        # day(1) is 2022-01-01
        commits = [make_fact("A", day(1)), make_fact("B", day(32)), make_fact("C", day(33))]
        windows = partition_by_month(commits, DateRange.from_dates("2022-01-01", "2022-02-28"))
        assert [len(w) for w in windows] == [1, 2]
        assert [w.index for w in windows] == [1, 2]

    def test_observed_span(self, make_fact, day):
        assert observed_span([]) is None
        span = observed_span([make_fact("A", day(2)), make_fact("A", day(9))])
        assert span.start == day(2)
        assert span.contains(day(9))
