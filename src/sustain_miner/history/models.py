"""Data models for commit history: raw commits, analyzed facts and windows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ChangeKind(Enum):
    """How a commit touched a file. Values match git's status letters."""

    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"


@dataclass(frozen=True)
class RawFileDelta:
    """Per-file change as reported by a remote API (already tallied)."""

    path: str
    status: str  # "added"|"modified"|"removed"|"renamed"|"copied"|"changed"
    additions: int = 0
    deletions: int = 0
    previous_path: Optional[str] = None
    has_patch: bool = True  # False for binary files on GitHub


@dataclass(frozen=True)
class RawCommit:
    """A commit as produced by a source, before change analysis.

    Exactly one of ``patch`` (unified diff text, local git) and
    ``file_deltas`` (pre-tallied per-file counts, remote API) is expected.
    """

    hash: str
    author_name: str
    author_email: str
    timestamp: datetime  # committer time, UTC
    parents: tuple[str, ...] = ()
    message: str = ""
    patch: Optional[str] = None
    file_deltas: Optional[tuple[RawFileDelta, ...]] = None
    url: str = ""


@dataclass(frozen=True)
class FileChange:
    path: str
    kind: ChangeKind
    lines_added: int = 0
    lines_removed: int = 0
    language: Optional[str] = None
    old_path: Optional[str] = None  # set for renames
    binary: bool = False

    def __post_init__(self) -> None:
        if self.lines_added < 0 or self.lines_removed < 0:
            raise ValueError(f"negative line counts for {self.path}")


@dataclass(frozen=True)
class CommitFact:
    """Immutable record of one commit's metadata and file changes."""

    hash: str
    author_name: str
    author_email: str  # normalized (stripped, case-folded)
    timestamp: datetime
    parents: tuple[str, ...] = ()
    files: tuple[FileChange, ...] = ()
    message: str = ""
    url: str = ""

    @property
    def lines_added(self) -> int:
        return sum(f.lines_added for f in self.files)

    @property
    def lines_removed(self) -> int:
        return sum(f.lines_removed for f in self.files)

    def count_kind(self, kind: ChangeKind) -> int:
        return sum(1 for f in self.files if f.kind is kind)


@dataclass(frozen=True)
class CommitPage:
    """One page of commits plus the cursor for the next page.

    ``next_cursor`` is None on the last page.
    """

    commits: tuple[RawCommit, ...]
    next_cursor: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.next_cursor is None


@dataclass(frozen=True)
class Window:
    """A fixed time interval ``[start, end)`` and the commits inside it.

    ``commits`` keeps source order. ``index`` is 1-based.
    """

    index: int
    start: datetime
    end: datetime
    commits: tuple = field(default_factory=tuple)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def __len__(self) -> int:
        return len(self.commits)
