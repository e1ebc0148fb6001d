"""The finalized mining report and its flat record sets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterator

from ..aggregation.models import AttributedCommit, DeveloperStat, WindowSummary
from ..models import GapRecord, ProjectSpec
from ..network.models import EdgeKind, NetworkEdge

# Ranges are half-open; the log shows the last included day
_TICK = timedelta(microseconds=1)

COMMIT_COLUMNS = [
    "project",
    "start_date",
    "end_date",
    "status",
    "window",
    "commit_sha",
    "commit_url",
    "identity",
    "email",
    "name",
    "date",
    "timestamp",
    "filename",
    "old_filename",
    "change_type",
    "language",
    "lines_added",
    "lines_deleted",
    "commit_message",
]


RUN_COLUMNS = [
    "project",
    "start_date",
    "end_date",
    "status",
    "commits",
    "developers",
    "windows",
    "failed_windows",
    "edges",
    "gaps",
    "partial",
    "truncated",
]

@dataclass(frozen=True)
class MiningReport:
    """Immutable result of mining one project.

    Attributes:
        project: The mined project
        developers: Developer statistics sorted by identity
        commits: Analyzed commits in chronological (window) order
        window_summaries: One summary per window, in window order
        edges: Technical then social edges, each sorted by endpoints
        gaps: Units of work whose data is missing
        partial: The run was cancelled before every window was analyzed
        truncated: The commit source could only see part of the history
    """

    project: ProjectSpec
    developers: tuple[DeveloperStat, ...] = ()
    commits: tuple[AttributedCommit, ...] = ()
    window_summaries: tuple[WindowSummary, ...] = ()
    edges: tuple[NetworkEdge, ...] = ()
    gaps: tuple[GapRecord, ...] = ()
    partial: bool = False
    truncated: bool = False

    def edges_of(self, kind: EdgeKind) -> tuple[NetworkEdge, ...]:
        return tuple(e for e in self.edges if e.kind is kind)

    def developer_rows(self) -> list[dict[str, Any]]:
        return [d.to_row() for d in self.developers]

    def summary_rows(self) -> list[dict[str, Any]]:
        return [s.to_row() for s in self.window_summaries]

    def edge_rows(self) -> list[dict[str, Any]]:
        return [e.to_row() for e in self.edges]

    def gap_rows(self) -> list[dict[str, Any]]:
        return [g.to_row() for g in self.gaps]

    def run_row(self) -> dict[str, Any]:
        """Totals of the run plus whether it was cut short."""
        date_range = self.project.date_range
        return {
            "project": self.project.name,
            "start_date": date_range.start.date().isoformat() if date_range else "",
            "end_date": (date_range.end - _TICK).date().isoformat() if date_range else "",
            "status": self.project.status,
            "commits": len(self.commits),
            "developers": len(self.developers),
            "windows": len(self.window_summaries),
            "failed_windows": sum(1 for s in self.window_summaries if s.failed),
            "edges": len(self.edges),
            "gaps": len(self.gaps),
            "partial": self.partial,
            "truncated": self.truncated,
        }

    def commit_rows(self, include_messages: bool = True) -> list[dict[str, Any]]:
        """One row per (commit, file change), in commit order.

        A commit without file changes still gets one row, with an empty
        filename, so it is counted by consumers of the log.
        """
        return [row for commit in self.commits for row in self._rows_for(commit, include_messages)]

    def commit_rows_by_developer(self, include_messages: bool = True) -> dict[str, list[dict[str, Any]]]:
        """Commit rows grouped by developer identity, identities sorted."""
        grouped: dict[str, list[dict[str, Any]]] = {}
        for commit in self.commits:
            grouped.setdefault(commit.identity, []).extend(self._rows_for(commit, include_messages))
        return {identity: grouped[identity] for identity in sorted(grouped)}

    def _rows_for(self, commit: AttributedCommit, include_messages: bool) -> Iterator[dict[str, Any]]:
        fact = commit.fact
        date_range = self.project.date_range
        base = {
            "project": self.project.name,
            "start_date": date_range.start.date().isoformat() if date_range else "",
            "end_date": (date_range.end - _TICK).date().isoformat() if date_range else "",
            "status": self.project.status,
            "window": commit.window_index,
            "commit_sha": fact.hash,
            "commit_url": fact.url,
            "identity": commit.identity,
            "email": fact.author_email,
            "name": fact.author_name,
            "date": fact.timestamp.isoformat(),
            "timestamp": int(fact.timestamp.timestamp()),
            "commit_message": fact.message if include_messages else "",
        }
        if not fact.files:
            yield {
                **base,
                "filename": "",
                "old_filename": "",
                "change_type": "",
                "language": "",
                "lines_added": 0,
                "lines_deleted": 0,
            }
            return
        for change in fact.files:
            yield {
                **base,
                "filename": change.path,
                "old_filename": change.old_path or "",
                "change_type": change.kind.value,
                "language": change.language or "",
                "lines_added": change.lines_added,
                "lines_deleted": change.lines_removed,
            }
