"""Data models for aggregation: per-window deltas and the developer table."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..history.models import CommitFact, Window


@dataclass(frozen=True)
class AttributedCommit:
    """A commit fact together with its resolved developer and window."""

    identity: str
    window_index: int
    fact: CommitFact


@dataclass(frozen=True)
class DeveloperDelta:
    """One developer's contribution within one window."""

    identity: str
    name: str
    commit_count: int
    lines_added: int
    lines_removed: int
    files_touched: frozenset[str]
    first_seen: datetime
    last_seen: datetime


@dataclass(frozen=True)
class DeveloperStat:
    """Aggregate contribution of one canonical developer."""

    identity: str
    name: str
    commit_count: int
    lines_added_total: int
    lines_removed_total: int
    files_touched: frozenset[str]
    active_window_count: int
    first_seen: datetime
    last_seen: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "name": self.name,
            "commits": self.commit_count,
            "lines_added": self.lines_added_total,
            "lines_removed": self.lines_removed_total,
            "files_touched": len(self.files_touched),
            "active_windows": self.active_window_count,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
        }


@dataclass(frozen=True)
class WindowSummary:
    """Technical activity of one window."""

    index: int
    start: datetime
    end: datetime
    commits: int = 0
    developers: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    files_added: int = 0
    files_deleted: int = 0
    files_modified: int = 0
    files_renamed: int = 0
    major_contributors: int = 0
    minor_contributors: int = 0
    commit_gini: float = 0.0
    failed: bool = False

    def to_row(self) -> dict[str, Any]:
        return {
            "window": self.index,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "commits": self.commits,
            "developers": self.developers,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "files_added": self.files_added,
            "files_deleted": self.files_deleted,
            "files_modified": self.files_modified,
            "files_renamed": self.files_renamed,
            "major_contributors": self.major_contributors,
            "minor_contributors": self.minor_contributors,
            "commit_gini": round(self.commit_gini, 6),
            "failed": self.failed,
        }


# path -> identity -> (first touch, last touch) within one window
FileRollup = dict[str, dict[str, tuple[datetime, datetime]]]


@dataclass(frozen=True)
class WindowResult:
    """Everything a worker computes for one window. Never mutated after return."""

    window: Window
    commits: tuple[AttributedCommit, ...]
    deltas: tuple[DeveloperDelta, ...]  # sorted by identity
    file_rollup: FileRollup
    summary: WindowSummary


@dataclass
class _DeveloperAccumulator:
    identity: str
    name: str
    commit_count: int = 0
    lines_added_total: int = 0
    lines_removed_total: int = 0
    files_touched: set[str] = field(default_factory=set)
    active_window_count: int = 0
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class DeveloperTable:
    """Global developer statistics, folded from window deltas.

    Only the merging thread writes to the table. Deltas must be merged in
    window order: the display name and first/last-seen instants depend on it.
    """

    def __init__(self) -> None:
        self._rows: dict[str, _DeveloperAccumulator] = {}

    def merge(self, delta: DeveloperDelta) -> None:
        row = self._rows.get(delta.identity)
        if row is None:
            row = _DeveloperAccumulator(identity=delta.identity, name=delta.name)
            self._rows[delta.identity] = row
        row.commit_count += delta.commit_count
        row.lines_added_total += delta.lines_added
        row.lines_removed_total += delta.lines_removed
        row.files_touched.update(delta.files_touched)
        if delta.commit_count:
            row.active_window_count += 1
        if row.first_seen is None or delta.first_seen < row.first_seen:
            row.first_seen = delta.first_seen
        if row.last_seen is None or delta.last_seen > row.last_seen:
            row.last_seen = delta.last_seen

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, identity: str) -> bool:
        return identity in self._rows

    def snapshot(self) -> tuple[DeveloperStat, ...]:
        """Immutable copy of the table, sorted by identity."""
        return tuple(
            DeveloperStat(
                identity=row.identity,
                name=row.name,
                commit_count=row.commit_count,
                lines_added_total=row.lines_added_total,
                lines_removed_total=row.lines_removed_total,
                files_touched=frozenset(row.files_touched),
                active_window_count=row.active_window_count,
                first_seen=row.first_seen,
                last_seen=row.last_seen,
            )
            for row in sorted(self._rows.values(), key=lambda r: r.identity)
        )
