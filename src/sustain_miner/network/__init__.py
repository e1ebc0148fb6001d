"""Technical and social collaboration networks."""

from .builder import EdgeTable, NetworkBuilder, canonical_pair
from .interactions import (
    GitHubIssueSource,
    InteractionProvider,
    MboxInteractionSource,
    interactions_from_thread,
)
from .models import EdgeKind, Interaction, InteractionSource, NetworkEdge

__all__ = [
    "NetworkBuilder",
    "EdgeTable",
    "canonical_pair",
    "GitHubIssueSource",
    "MboxInteractionSource",
    "InteractionProvider",
    "interactions_from_thread",
    "EdgeKind",
    "Interaction",
    "InteractionSource",
    "NetworkEdge",
]
