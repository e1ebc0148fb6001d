"""Concurrent window aggregation with an ordered, single-writer merge.

Workers analyze windows in parallel and return immutable results. The
coordinator thread alone folds those results into the global tables, and
always in window order: a result that completes early waits in a reorder
buffer until every earlier window has been merged. The output is therefore
identical for any worker count.
"""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

from ..exceptions import WindowAnalysisFailed
from ..exceptions.taxonomy import ErrorCode
from ..history.analyzer import ChangeAnalyzer
from ..history.models import Window
from ..logging_config import get_logger
from ..models import GapRecord
from .identity import IdentityResolver
from .models import AttributedCommit, DeveloperStat, DeveloperTable, WindowResult, WindowSummary
from .worker import analyze_window

logger = get_logger(__name__)


class WindowConsumer(Protocol):
    """Receives each successful window result, in window order."""

    def add_window(self, result: WindowResult) -> None: ...


@dataclass(frozen=True)
class AggregationResult:
    commits: tuple[AttributedCommit, ...]
    developers: tuple[DeveloperStat, ...]
    summaries: tuple[WindowSummary, ...]
    gaps: tuple[GapRecord, ...]
    partial: bool = False


class ConcurrentAggregator:
    """Run :func:`analyze_window` over a bounded thread pool.

    Args:
        analyzer: Shared, read-only change analyzer
        resolver: Shared, read-only identity resolver
        workers: Maximum number of windows analyzed at once
        cancel_event: Once set, no further windows are dispatched
        consumer: Optional extra accumulator fed during the merge
            (the network builder)
    """

    def __init__(
        self,
        analyzer: ChangeAnalyzer,
        resolver: IdentityResolver,
        workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
        consumer: Optional[WindowConsumer] = None,
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.analyzer = analyzer
        self.resolver = resolver
        self.workers = workers
        self.cancel_event = cancel_event or threading.Event()
        self.consumer = consumer

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def run(self, windows: Sequence[Window]) -> AggregationResult:
        """Analyze ``windows`` and merge the results in window order."""
        windows = sorted(windows, key=lambda w: w.start)
        table = DeveloperTable()
        commits: list[AttributedCommit] = []
        summaries: list[WindowSummary] = []
        gaps: list[GapRecord] = []

        # position -> finished result waiting for its turn to merge
        ready: dict[int, Union[WindowResult, WindowAnalysisFailed]] = {}
        next_submit = 0
        next_merge = 0

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="window") as pool:
            in_flight: dict[Future, int] = {}
            while next_submit < len(windows) or in_flight:
                while not self.cancelled and next_submit < len(windows) and len(in_flight) < self.workers:
                    future = pool.submit(analyze_window, windows[next_submit], self.analyzer, self.resolver)
                    in_flight[future] = next_submit
                    next_submit += 1
                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    position = in_flight.pop(future)
                    try:
                        ready[position] = future.result()
                    except WindowAnalysisFailed as e:
                        ready[position] = e

                while next_merge in ready:
                    outcome = ready.pop(next_merge)
                    if isinstance(outcome, WindowAnalysisFailed):
                        self._record_failure(outcome, windows[next_merge], summaries, gaps)
                    else:
                        self._merge(outcome, table, commits, summaries)
                    next_merge += 1

        partial = next_submit < len(windows)
        if partial:
            skipped = windows[next_submit:]
            logger.warning("Cancelled: %d windows were not analyzed", len(skipped))
            for window in skipped:
                gaps.append(
                    GapRecord(
                        scope="window",
                        code=ErrorCode.SM302,
                        reason="window not dispatched: run cancelled",
                        unit_id=str(window.index),
                        start=window.start,
                        end=window.end,
                    )
                )

        logger.info(
            "Aggregated %d windows (%d failed) into %d developers",
            next_merge,
            sum(1 for g in gaps if g.code is ErrorCode.SM301),
            len(table),
        )
        return AggregationResult(
            commits=tuple(commits),
            developers=table.snapshot(),
            summaries=tuple(summaries),
            gaps=tuple(gaps),
            partial=partial,
        )

    def _merge(
        self,
        result: WindowResult,
        table: DeveloperTable,
        commits: list[AttributedCommit],
        summaries: list[WindowSummary],
    ) -> None:
        commits.extend(result.commits)
        for delta in result.deltas:
            table.merge(delta)
        summaries.append(result.summary)
        if self.consumer is not None:
            self.consumer.add_window(result)

    @staticmethod
    def _record_failure(
        error: WindowAnalysisFailed,
        window: Window,
        summaries: list[WindowSummary],
        gaps: list[GapRecord],
    ) -> None:
        logger.warning("Window %d skipped: %s", window.index, error.cause)
        gaps.append(GapRecord.from_error(error, "window", str(window.index), window.start, window.end))
        summaries.append(WindowSummary(index=window.index, start=window.start, end=window.end, failed=True))
