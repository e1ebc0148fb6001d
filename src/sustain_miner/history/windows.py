"""Partition a chronological commit sequence into contiguous time windows.

Windows are half-open ``[start, end)``, contiguous and non-overlapping.
Commits are assigned in a single pass, so concatenating the windows'
commits in window order reproduces the input order exactly.

Two layouts are supported:
    fixed:    ``window_size`` increments from the span start; the last
              window is cut at the span end and may be shorter.
    calendar: one window per calendar month; the first and last windows
              are cut at the span boundaries.

Without a span (dates ignored) the whole observed history is one window.
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence

from ..logging_config import get_logger
from ..models import DateRange
from .models import Window

logger = get_logger(__name__)

# Exclusive end for a span derived from observed commits
_EPSILON = timedelta(microseconds=1)


def observed_span(commits: Sequence) -> Optional[DateRange]:
    """Smallest range holding every commit, or None for an empty history."""
    if not commits:
        return None
    return DateRange(start=commits[0].timestamp, end=commits[-1].timestamp + _EPSILON)


def fixed_bounds(span: DateRange, window_size: timedelta) -> list[tuple[datetime, datetime]]:
    """Window boundaries in ``window_size`` steps from ``span.start``."""
    if window_size <= timedelta(0):
        raise ValueError("window_size must be positive")
    bounds = []
    start = span.start
    while start < span.end:
        end = min(start + window_size, span.end)
        bounds.append((start, end))
        start = end
    return bounds


def calendar_bounds(span: DateRange) -> list[tuple[datetime, datetime]]:
    """One window per calendar month touched by ``span``."""
    bounds = []
    start = span.start
    while start < span.end:
        month_start = start.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if month_start.month == 12:
            next_month = month_start.replace(year=month_start.year + 1, month=1)
        else:
            next_month = month_start.replace(month=month_start.month + 1)
        end = min(next_month, span.end)
        bounds.append((start, end))
        start = end
    return bounds


def partition(
    commits: Sequence,
    window_size: timedelta,
    span: Optional[DateRange] = None,
) -> list[Window]:
    """Bucket chronologically ordered commits into fixed-size windows.

    Args:
        commits: Items with a ``timestamp`` attribute, oldest first
        window_size: Length of each window
        span: Analyzed range; None treats the whole history as one window

    Returns:
        Windows in time order, including empty ones inside the span.
        Commits outside ``span`` are left out.

    Raises:
        ValueError: If ``commits`` is not in chronological order
    """
    _check_chronological(commits)
    if span is None:
        observed = observed_span(commits)
        if observed is None:
            return []
        return _assign(commits, [(observed.start, observed.end)])
    return _assign(commits, fixed_bounds(span, window_size))


def partition_by_month(commits: Sequence, span: Optional[DateRange] = None) -> list[Window]:
    """Like :func:`partition`, with calendar-month windows."""
    _check_chronological(commits)
    if span is None:
        span = observed_span(commits)
        if span is None:
            return []
    return _assign(commits, calendar_bounds(span))


def _check_chronological(commits: Sequence) -> None:
    for prev, cur in zip(commits, commits[1:]):
        if cur.timestamp < prev.timestamp:
            raise ValueError(
                f"commits must be in chronological order: {getattr(cur, 'hash', cur)} "
                f"({cur.timestamp.isoformat()}) follows {prev.timestamp.isoformat()}"
            )


def _assign(commits: Sequence, bounds: list[tuple[datetime, datetime]]) -> list[Window]:
    buckets: list[list] = [[] for _ in bounds]
    excluded = 0
    slot = 0
    for commit in commits:
        ts = commit.timestamp
        while slot < len(bounds) and ts >= bounds[slot][1]:
            slot += 1
        if slot >= len(bounds) or ts < bounds[slot][0]:
            excluded += 1
            continue
        buckets[slot].append(commit)

    if excluded:
        logger.debug("Left %d commits outside the analyzed span", excluded)

    return [
        Window(index=i, start=start, end=end, commits=tuple(bucket))
        for i, ((start, end), bucket) in enumerate(zip(bounds, buckets), 1)
    ]
