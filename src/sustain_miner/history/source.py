"""Commit source abstraction shared by the local and remote variants.

Every source implements one capability, :meth:`CommitSource.fetch_page`:
given a date range and an opaque cursor it returns one page of raw commits
and the cursor of the next page (None when history is exhausted). Paging,
deduplication and chronological ordering are built on top of it here, so
callers never branch on which variant they hold.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from ..logging_config import get_logger
from ..models import DateRange, GapRecord
from .models import CommitPage, RawCommit

logger = get_logger(__name__)


class CommitSource(ABC):
    """Where commit facts come from.

    Attributes:
        gaps: Recoverable losses met while fetching (missing details...)
        truncated: True when the source could only see part of the history
    """

    name: str = "source"

    def __init__(self) -> None:
        self.gaps: list[GapRecord] = []
        self.truncated = False

    @abstractmethod
    def fetch_page(
        self, date_range: Optional[DateRange] = None, cursor: Optional[str] = None
    ) -> CommitPage:
        """Return one page of commits starting at ``cursor``."""

    def iter_pages(self, date_range: Optional[DateRange] = None) -> Iterator[CommitPage]:
        """Lazily walk every page until the source reports the last one."""
        cursor: Optional[str] = None
        while True:
            page = self.fetch_page(date_range, cursor)
            yield page
            if page.is_last:
                return
            cursor = page.next_cursor

    def iter_commits(self, date_range: Optional[DateRange] = None) -> Iterator[RawCommit]:
        """Pull commits one at a time in source order."""
        for page in self.iter_pages(date_range):
            yield from page.commits

    def fetch(self, date_range: Optional[DateRange] = None) -> list[RawCommit]:
        """Fetch the whole history in ``date_range``, oldest first.

        Commits seen twice (e.g. a page re-served after a retry) are kept
        once. The sort is stable, so commits sharing a timestamp keep
        source order.
        """
        seen: set[str] = set()
        commits: list[RawCommit] = []
        duplicates = 0
        for commit in self.iter_commits(date_range):
            if commit.hash in seen:
                duplicates += 1
                continue
            seen.add(commit.hash)
            if date_range is not None and not date_range.contains(commit.timestamp):
                continue
            commits.append(commit)

        if duplicates:
            logger.debug("%s: dropped %d duplicate commits", self.name, duplicates)

        commits.sort(key=lambda c: c.timestamp)
        logger.info("%s: fetched %d commits", self.name, len(commits))
        return commits

    def record_gap(self, gap: GapRecord) -> None:
        logger.warning("%s: gap recorded (%s) %s", self.name, gap.code.value, gap.reason)
        self.gaps.append(gap)
