"""Technical and social collaboration networks.

Both networks share one accumulator discipline: edges are keyed by their
canonical endpoint pair, so (A, B) and (B, A) always land on the same edge.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..aggregation.identity import ExactMatchResolver, IdentityResolver
from ..aggregation.models import WindowResult
from ..logging_config import get_logger
from .models import EdgeKind, Interaction, NetworkEdge

logger = get_logger(__name__)


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order two endpoints lexicographically."""
    return (a, b) if a <= b else (b, a)


class EdgeTable:
    """Weighted undirected edges of one kind."""

    def __init__(self, kind: EdgeKind):
        self.kind = kind
        # (a, b) -> [weight, first_seen, last_seen]
        self._edges: dict[tuple[str, str], list] = {}

    def add(self, a: str, b: str, when: datetime, weight: int = 1) -> bool:
        """Add ``weight`` to the edge between ``a`` and ``b``.

        Returns False (and adds nothing) for a self-pair.
        """
        if a == b:
            return False
        key = canonical_pair(a, b)
        edge = self._edges.get(key)
        if edge is None:
            self._edges[key] = [weight, when, when]
        else:
            edge[0] += weight
            edge[1] = min(edge[1], when)
            edge[2] = max(edge[2], when)
        return True

    def weight(self, a: str, b: str) -> int:
        edge = self._edges.get(canonical_pair(a, b))
        return edge[0] if edge else 0

    def __len__(self) -> int:
        return len(self._edges)

    def snapshot(self) -> list[NetworkEdge]:
        return [
            NetworkEdge(a=a, b=b, kind=self.kind, weight=w, first_seen=first, last_seen=last)
            for (a, b), (w, first, last) in sorted(self._edges.items())
        ]


class NetworkBuilder:
    """Accumulate technical edges from window results and social edges
    from interactions.

    Args:
        resolver: Maps interaction participants to canonical identities;
            use the same resolver as the aggregator so both networks share
            one identity space.
    """

    def __init__(self, resolver: Optional[IdentityResolver] = None):
        self.resolver = resolver or ExactMatchResolver()
        self.technical = EdgeTable(EdgeKind.TECHNICAL)
        self.social = EdgeTable(EdgeKind.SOCIAL)

    def add_window(self, result: WindowResult) -> None:
        """Link every pair of developers who touched the same file in a window.

        Each (file, pair) adds 1 to the pair's weight, dated at the later of
        the two developers' last touch of that file.
        """
        for path in sorted(result.file_rollup):
            authors = result.file_rollup[path]
            if len(authors) < 2:
                continue
            identities = sorted(authors)
            for i, a in enumerate(identities):
                for b in identities[i + 1 :]:
                    when = max(authors[a][1], authors[b][1])
                    self.technical.add(a, b, when)

    def add_interactions(self, interactions: Iterable[Interaction]) -> int:
        """Add one social edge weight per interaction between two distinct people.

        Returns:
            Number of interactions that produced an edge.
        """
        added = 0
        for interaction in interactions:
            a = self.resolver.resolve(*interaction.a)
            b = self.resolver.resolve(*interaction.b)
            if self.social.add(a, b, interaction.timestamp):
                added += 1
        logger.debug("Added %d social interactions (%d edges)", added, len(self.social))
        return added

    def snapshot(self) -> tuple[NetworkEdge, ...]:
        """All edges, technical first, each kind sorted by endpoints."""
        return tuple(self.technical.snapshot() + self.social.snapshot())
