"""Tests for concurrent window aggregation."""

import time
from datetime import timedelta

import pytest

from sustain_miner.aggregation.coordinator import ConcurrentAggregator
from sustain_miner.aggregation.identity import ExactMatchResolver
from sustain_miner.aggregation.worker import analyze_window
from sustain_miner.exceptions import WindowAnalysisFailed
from sustain_miner.exceptions.taxonomy import ErrorCode
from sustain_miner.history.analyzer import ChangeAnalyzer
from sustain_miner.history.windows import partition
from sustain_miner.models import DateRange
from sustain_miner.network.builder import NetworkBuilder

THIRTY_DAYS = timedelta(days=30)


class SlowEarlyAnalyzer(ChangeAnalyzer):
    """Makes early windows finish last, so results arrive out of order."""

    def __init__(self, reference):
        super().__init__()
        self.reference = reference

    def restrict(self, fact):
        lag = max(0.0, 0.02 - (fact.timestamp - self.reference).days * 0.0005)
        time.sleep(lag)
        return super().restrict(fact)


class CancelAfterFirst:
    def __init__(self, aggregator_ref):
        self.aggregator_ref = aggregator_ref
        self.seen = []

    def add_window(self, result):
        self.seen.append(result.window.index)
        self.aggregator_ref[0].cancel()


def _aggregate(windows, workers=1, analyzer=None):
    aggregator = ConcurrentAggregator(analyzer or ChangeAnalyzer(), ExactMatchResolver(), workers=workers)
    return aggregator.run(windows)


class TestScenario:
    """Three commits over two 30-day windows."""

    @pytest.fixture
    def result(self, scenario_commits, day):
        windows = partition(scenario_commits, THIRTY_DAYS, DateRange(day(1), day(61)))
        return _aggregate(windows)

    def test_developer_table(self, result):
        alice, bob = result.developers
        assert alice.identity == "alice@example.com"
        assert alice.commit_count == 2
        assert alice.lines_added_total == 13
        assert alice.files_touched == frozenset({"fileA", "fileB"})
        assert alice.active_window_count == 2

        assert bob.identity == "bob@example.com"
        assert bob.commit_count == 1
        assert bob.lines_removed_total == 5
        assert bob.active_window_count == 1

    def test_window_summaries(self, result):
        first, second = result.summaries
        assert (first.commits, first.developers) == (2, 2)
        assert (first.lines_added, first.lines_removed) == (10, 5)
        assert first.files_modified == 2
        assert first.commit_gini == 0.0
        assert (first.major_contributors, first.minor_contributors) == (2, 0)
        assert (second.commits, second.developers) == (1, 1)

    def test_commits_are_attributed(self, result):
        assert [(c.identity, c.window_index) for c in result.commits] == [
            ("alice@example.com", 1),
            ("bob@example.com", 1),
            ("alice@example.com", 2),
        ]
        assert result.gaps == ()
        assert result.partial is False


class TestDeterminism:
    """The merged output does not depend on the worker count."""

    @pytest.fixture
    def windows(self, make_fact, day):
        authors = ["ana", "ben", "cho", "dee", "eli"]
        commits = [
            make_fact(
                authors[(i * 7) % len(authors)],
                day(1 + i, hours=i % 24),
                [(f"src/mod{i % 6}.py", i % 5 + 1, i % 3)],
            )
            for i in range(90)
        ]
        return partition(commits, timedelta(days=7), DateRange(day(1), day(91)))

    def test_same_result_for_any_worker_count(self, windows, day):
        results = [_aggregate(windows, workers=n, analyzer=SlowEarlyAnalyzer(day(1))) for n in (1, 2, 8)]
        assert results[0] == results[1] == results[2]

    def test_same_edges_for_any_worker_count(self, windows, day):
        snapshots = []
        for n in (1, 2, 8):
            network = NetworkBuilder(ExactMatchResolver())
            aggregator = ConcurrentAggregator(
                SlowEarlyAnalyzer(day(1)), ExactMatchResolver(), workers=n, consumer=network
            )
            aggregator.run(windows)
            snapshots.append(network.snapshot())

        assert snapshots[0]
        assert snapshots[0] == snapshots[1] == snapshots[2]

    def test_summaries_in_window_order(self, windows, day):
        result = _aggregate(windows, workers=8, analyzer=SlowEarlyAnalyzer(day(1)))
        assert [s.index for s in result.summaries] == [w.index for w in windows]

    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            ConcurrentAggregator(ChangeAnalyzer(), ExactMatchResolver(), workers=0)


class TestFailures:
    def test_malformed_window_becomes_gap(self, make_fact, make_raw, day):
        commits = [
            make_fact("Alice", day(1), [("a.py", 1, 0)]),
            make_raw("Bob", day(35), patch="+orphan line\n"),
            make_fact("Alice", day(70), [("a.py", 2, 0)]),
        ]
        windows = partition(commits, THIRTY_DAYS, DateRange(day(1), day(91)))

        result = _aggregate(windows, workers=2)

        (gap,) = result.gaps
        assert gap.code is ErrorCode.SM301
        assert gap.scope == "window"
        assert gap.unit_id == "2"
        assert (gap.start, gap.end) == (windows[1].start, windows[1].end)
        assert [s.failed for s in result.summaries] == [False, True, False]
        assert [d.identity for d in result.developers] == ["alice@example.com"]
        assert result.developers[0].commit_count == 2
        assert result.partial is False

    def test_worker_wraps_errors(self, make_raw, day):
        (window,) = partition([make_raw("Bob", day(2), patch="garbage\n")], THIRTY_DAYS, DateRange(day(1), day(31)))
        with pytest.raises(WindowAnalysisFailed) as exc:
            analyze_window(window, ChangeAnalyzer(), ExactMatchResolver())
        assert exc.value.index == 1


class TestCancellation:
    def test_cancel_before_run(self, scenario_commits, day):
        windows = partition(scenario_commits, THIRTY_DAYS, DateRange(day(1), day(61)))
        aggregator = ConcurrentAggregator(ChangeAnalyzer(), ExactMatchResolver())
        aggregator.cancel()

        result = aggregator.run(windows)

        assert result.partial is True
        assert result.developers == ()
        assert [g.code for g in result.gaps] == [ErrorCode.SM302, ErrorCode.SM302]

    def test_cancel_mid_run_keeps_merged_windows(self, make_fact, day):
        commits = [make_fact("Alice", day(1 + 10 * i)) for i in range(9)]
        windows = partition(commits, THIRTY_DAYS, DateRange(day(1), day(91)))
        ref = [None]
        consumer = CancelAfterFirst(ref)
        aggregator = ConcurrentAggregator(ChangeAnalyzer(), ExactMatchResolver(), workers=1, consumer=consumer)
        ref[0] = aggregator

        result = aggregator.run(windows)

        assert consumer.seen == [1]
        assert result.partial is True
        assert [s.index for s in result.summaries] == [1]
        assert [g.unit_id for g in result.gaps] == ["2", "3"]
        assert all(g.code is ErrorCode.SM302 for g in result.gaps)
        assert result.developers[0].commit_count == 3
