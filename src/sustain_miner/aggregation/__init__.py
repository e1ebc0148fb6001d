"""Concurrent aggregation of developer statistics over time windows."""

from .concentration import contributor_split, gini_coefficient
from .coordinator import AggregationResult, ConcurrentAggregator
from .identity import AliasTable, ExactMatchResolver, IdentityResolver, identity_key
from .models import AttributedCommit, DeveloperDelta, DeveloperStat, DeveloperTable, WindowResult, WindowSummary
from .worker import analyze_window

__all__ = [
    "ConcurrentAggregator",
    "AggregationResult",
    "analyze_window",
    "AliasTable",
    "ExactMatchResolver",
    "IdentityResolver",
    "identity_key",
    "AttributedCommit",
    "DeveloperDelta",
    "DeveloperStat",
    "DeveloperTable",
    "WindowResult",
    "WindowSummary",
    "contributor_split",
    "gini_coefficient",
]
