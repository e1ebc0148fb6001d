"""Per-window analysis run on worker threads.

:func:`analyze_window` is a pure function of its window: it reads the
shared (read-only) analyzer and resolver, builds local tables and returns
an immutable :class:`WindowResult`. It never touches global state.
"""

from datetime import datetime

from ..exceptions import WindowAnalysisFailed
from ..history.analyzer import ChangeAnalyzer
from ..history.models import ChangeKind, CommitFact, Window
from ..logging_config import get_logger
from .concentration import contributor_split, gini_coefficient
from .identity import IdentityResolver
from .models import AttributedCommit, DeveloperDelta, FileRollup, WindowResult, WindowSummary

logger = get_logger(__name__)


def analyze_window(window: Window, analyzer: ChangeAnalyzer, resolver: IdentityResolver) -> WindowResult:
    """Analyze every commit of ``window``.

    Raw commits are run through the change analyzer; already analyzed facts
    only get the language policy applied.

    Raises:
        WindowAnalysisFailed: If any commit of the window cannot be analyzed
    """
    try:
        return _analyze(window, analyzer, resolver)
    except Exception as e:
        raise WindowAnalysisFailed(window.index, window.start, window.end, e) from e


def _analyze(window: Window, analyzer: ChangeAnalyzer, resolver: IdentityResolver) -> WindowResult:
    commits: list[AttributedCommit] = []
    stats: dict[str, dict] = {}
    rollup: FileRollup = {}

    for item in window.commits:
        fact = analyzer.restrict(item) if isinstance(item, CommitFact) else analyzer.analyze(item)
        identity = resolver.resolve(fact.author_name, fact.author_email)
        commits.append(AttributedCommit(identity=identity, window_index=window.index, fact=fact))

        row = stats.get(identity)
        if row is None:
            row = stats[identity] = {
                "name": fact.author_name,
                "commits": 0,
                "added": 0,
                "removed": 0,
                "files": set(),
                "first": fact.timestamp,
                "last": fact.timestamp,
            }
        row["commits"] += 1
        row["added"] += fact.lines_added
        row["removed"] += fact.lines_removed
        row["first"] = min(row["first"], fact.timestamp)
        row["last"] = max(row["last"], fact.timestamp)

        for change in fact.files:
            row["files"].add(change.path)
            _touch(rollup, change.path, identity, fact.timestamp)

    deltas = tuple(
        DeveloperDelta(
            identity=identity,
            name=row["name"],
            commit_count=row["commits"],
            lines_added=row["added"],
            lines_removed=row["removed"],
            files_touched=frozenset(row["files"]),
            first_seen=row["first"],
            last_seen=row["last"],
        )
        for identity, row in sorted(stats.items())
    )

    logger.debug(
        "Window %d: %d commits, %d developers, %d files",
        window.index,
        len(commits),
        len(deltas),
        len(rollup),
    )
    return WindowResult(
        window=window,
        commits=tuple(commits),
        deltas=deltas,
        file_rollup=rollup,
        summary=summarize(window, commits, deltas),
    )


def _touch(rollup: FileRollup, path: str, identity: str, when: datetime) -> None:
    authors = rollup.setdefault(path, {})
    seen = authors.get(identity)
    if seen is None:
        authors[identity] = (when, when)
    else:
        authors[identity] = (min(seen[0], when), max(seen[1], when))


def summarize(window: Window, commits, deltas) -> WindowSummary:
    """Technical summary of one window's analyzed commits."""
    facts = [c.fact for c in commits]
    counts = [d.commit_count for d in deltas]
    major, minor = contributor_split(counts)
    return WindowSummary(
        index=window.index,
        start=window.start,
        end=window.end,
        commits=len(facts),
        developers=len(deltas),
        lines_added=sum(f.lines_added for f in facts),
        lines_removed=sum(f.lines_removed for f in facts),
        files_added=sum(f.count_kind(ChangeKind.ADDED) for f in facts),
        files_deleted=sum(f.count_kind(ChangeKind.DELETED) for f in facts),
        files_modified=sum(f.count_kind(ChangeKind.MODIFIED) for f in facts),
        files_renamed=sum(f.count_kind(ChangeKind.RENAMED) for f in facts),
        major_contributors=major,
        minor_contributors=minor,
        commit_gini=gini_coefficient(counts),
    )
