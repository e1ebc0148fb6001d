"""Data models for collaboration networks."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class EdgeKind(Enum):
    TECHNICAL = "technical"  # shared file edits within a window
    SOCIAL = "social"  # shared issue or mail thread


class InteractionSource(Enum):
    ISSUE = "issue"
    MAIL_THREAD = "mail_thread"


@dataclass(frozen=True)
class Interaction:
    """Two participants meeting on one issue or mail thread.

    Participants are raw ``(name, email)`` pairs; they are resolved to
    canonical identities when the edge is built.
    """

    a: tuple[str, str]
    b: tuple[str, str]
    source: InteractionSource
    thread_id: str
    timestamp: datetime


@dataclass(frozen=True)
class NetworkEdge:
    """Undirected weighted edge; endpoints are canonical (``a < b``)."""

    a: str
    b: str
    kind: EdgeKind
    weight: int
    first_seen: datetime
    last_seen: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "source": self.a,
            "target": self.b,
            "kind": self.kind.value,
            "weight": self.weight,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
        }
