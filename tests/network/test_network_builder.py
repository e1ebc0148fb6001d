"""Tests for technical and social network accumulation."""

from datetime import timedelta

from sustain_miner.aggregation.coordinator import ConcurrentAggregator
from sustain_miner.aggregation.identity import AliasTable, ExactMatchResolver
from sustain_miner.history.analyzer import ChangeAnalyzer
from sustain_miner.history.windows import partition
from sustain_miner.models import DateRange
from sustain_miner.network.builder import EdgeTable, NetworkBuilder, canonical_pair
from sustain_miner.network.models import EdgeKind, Interaction, InteractionSource


def _interaction(a, b, when, thread="t1"):
    return Interaction(a=a, b=b, source=InteractionSource.ISSUE, thread_id=thread, timestamp=when)


class TestEdgeTable:
    """Edges are undirected and keyed by the ordered pair."""

    def test_both_orders_land_on_one_edge(self, day):
        table = EdgeTable(EdgeKind.SOCIAL)
        table.add("bob", "alice", day(2))
        table.add("alice", "bob", day(1))

        (edge,) = table.snapshot()
        assert (edge.a, edge.b) == ("alice", "bob")
        assert edge.weight == 2
        assert (edge.first_seen, edge.last_seen) == (day(1), day(2))
        assert table.weight("bob", "alice") == 2

    def test_self_pair_adds_nothing(self, day):
        table = EdgeTable(EdgeKind.TECHNICAL)
        assert table.add("alice", "alice", day(1)) is False
        assert len(table) == 0

    def test_canonical_pair(self):
        assert canonical_pair("b", "a") == ("a", "b")
        assert canonical_pair("a", "b") == ("a", "b")


class TestTechnicalNetwork:
    def _build(self, commits, span):
        builder = NetworkBuilder()
        windows = partition(commits, timedelta(days=30), span)
        ConcurrentAggregator(ChangeAnalyzer(), ExactMatchResolver(), consumer=builder).run(windows)
        return builder

    def test_shared_file_in_window(self, scenario_commits, day):
        builder = self._build(scenario_commits, DateRange(day(1), day(61)))

        (edge,) = builder.snapshot()
        assert edge.kind is EdgeKind.TECHNICAL
        assert (edge.a, edge.b) == ("alice@example.com", "bob@example.com")
        assert edge.weight == 1
        assert edge.last_seen == day(1, 10)

    def test_shared_file_across_windows_is_not_linked(self, make_fact, day):
        commits = [
            make_fact("Alice", day(1), [("shared.py", 1, 0)]),
            make_fact("Bob", day(45), [("shared.py", 1, 0)]),
        ]
        builder = self._build(commits, DateRange(day(1), day(61)))
        assert builder.snapshot() == ()

    def test_weight_counts_files_per_window(self, make_fact, day):
        commits = [
            make_fact("Alice", day(1), [("a.py", 1, 0), ("b.py", 1, 0)]),
            make_fact("Bob", day(2), [("a.py", 1, 0), ("b.py", 1, 0)]),
            make_fact("Alice", day(3), [("a.py", 1, 0)]),
            make_fact("Bob", day(40), [("a.py", 1, 0)]),
            make_fact("Alice", day(41), [("a.py", 1, 0)]),
        ]
        builder = self._build(commits, DateRange(day(1), day(61)))
        assert builder.technical.weight("alice@example.com", "bob@example.com") == 3

    def test_three_developers_on_one_file(self, make_fact, day):
        commits = [make_fact(name, day(i + 1), [("core.c", 1, 0)]) for i, name in enumerate(["Cy", "Al", "Bo"])]
        builder = self._build(commits, DateRange(day(1), day(31)))
        pairs = [(e.a, e.b) for e in builder.snapshot()]
        assert pairs == [
            ("al@example.com", "bo@example.com"),
            ("al@example.com", "cy@example.com"),
            ("bo@example.com", "cy@example.com"),
        ]


class TestSocialNetwork:
    def test_interactions_accumulate(self, day):
        builder = NetworkBuilder()
        alice = ("Alice", "alice@example.com")
        bob = ("Bob", "bob@example.com")

        added = builder.add_interactions(
            [
                _interaction(alice, bob, day(1)),
                _interaction(bob, alice, day(5), thread="t2"),
                _interaction(alice, alice, day(6)),
            ]
        )

        assert added == 2
        (edge,) = builder.snapshot()
        assert edge.kind is EdgeKind.SOCIAL
        assert edge.weight == 2
        assert (edge.first_seen, edge.last_seen) == (day(1), day(5))

    def test_aliases_collapse_participants(self, make_fact, day):
        commits = [
            make_fact("Alice", day(1), email="alice@work.example"),
            make_fact("Alice", day(2), email="alice@home.example"),
        ]
        resolver = AliasTable.from_commits(commits, aliases=[("alice@work.example", "alice@home.example")])
        builder = NetworkBuilder(resolver)

        added = builder.add_interactions(
            [_interaction(("Alice", "alice@work.example"), ("Alice", "alice@home.example"), day(3))]
        )
        assert added == 0
        assert builder.snapshot() == ()

    def test_technical_edges_come_first(self, day):
        builder = NetworkBuilder()
        builder.add_interactions([_interaction(("A", "a@x.org"), ("B", "b@x.org"), day(1))])
        builder.technical.add("z@x.org", "y@x.org", day(1))
        kinds = [e.kind for e in builder.snapshot()]
        assert kinds == [EdgeKind.TECHNICAL, EdgeKind.SOCIAL]
