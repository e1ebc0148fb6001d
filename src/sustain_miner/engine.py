"""Mining engine: wire source, analyzer, partitioner, aggregator, networks and sink.

Data flow for one project:

    CommitSource.fetch  ->  partition  ->  ConcurrentAggregator.run
        (raw commits)       (windows)      (workers analyze, coordinator merges)
                                                  |
                     InteractionProvider.fetch -> NetworkBuilder
                                                  |
                                           MiningReport -> ReportSink

Example:
    >>> from sustain_miner import MiningEngine, ProjectSpec, load_config
    >>> from sustain_miner.report import MemoryReportSink
    >>> engine = MiningEngine(load_config(workers=4), MemoryReportSink())
    >>> report = engine.mine(ProjectSpec(name="demo", local_path="."))
"""

from __future__ import annotations

import csv
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from .aggregation.coordinator import ConcurrentAggregator
from .aggregation.identity import AliasTable, IdentityResolver
from .config import MiningConfig
from .exceptions import (
    ConfigurationError,
    InvalidProjectError,
    MailboxUnavailable,
    RepositoryUnreadable,
    SustainMinerError,
)
from .exceptions.taxonomy import ErrorCode
from .history.analyzer import ChangeAnalyzer
from .history.git_source import GitCommitSource
from .history.github_source import GitHubCommitSource
from .history.source import CommitSource
from .history.windows import partition, partition_by_month
from .logging_config import get_logger
from .models import DateRange, GapRecord, ProjectSpec
from .network.builder import NetworkBuilder
from .network.interactions import InteractionProvider
from .remote.client import GitHubClient
from .report.models import MiningReport
from .report.sink import MemoryReportSink, ReportSink

logger = get_logger(__name__)


class MiningEngine:
    """Mine one project at a time.

    Args:
        config: Validated configuration
        sink: Receives every finished report (in-memory sink by default)
        resolver: Identity resolver; built from the fetched commits when None
        interaction_sources: Providers of issue / mail interactions
        cancel_event: Shared cancellation flag; see :meth:`cancel`
        client_factory: Builds the GitHub client for remote projects
    """

    def __init__(
        self,
        config: MiningConfig,
        sink: Optional[ReportSink] = None,
        resolver: Optional[IdentityResolver] = None,
        interaction_sources: Sequence[InteractionProvider] = (),
        cancel_event: Optional[threading.Event] = None,
        client_factory: Optional[Callable[[], GitHubClient]] = None,
    ):
        self.config = config
        self.sink = sink if sink is not None else MemoryReportSink()
        self.resolver = resolver
        self.interaction_sources = list(interaction_sources)
        self.cancel_event = cancel_event or threading.Event()
        self.client_factory = client_factory or (lambda: GitHubClient.from_config(config))
        self.analyzer = ChangeAnalyzer.from_config(config)

    def cancel(self) -> None:
        """Stop dispatching windows. In-flight windows still finish and the
        report is written, labeled partial."""
        logger.warning("Cancellation requested")
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def mine(self, project: ProjectSpec) -> MiningReport:
        """Mine ``project`` and write the report to the sink.

        Raises:
            InvalidProjectError: If the project names no source
            RepositoryUnreadable: If the local clone is unreadable and no
                remote fallback is configured
            RemoteSourceUnavailable: If the remote stays unavailable after retries
            RemoteRequestRejected: If the remote refuses the request
        """
        project.validate()
        logger.info("Mining %s", project.name)

        with ExitStack() as stack:
            source = self.open_source(project, stack)
            date_range = None if self.config.ignore_dates else project.date_range
            raw_commits = source.fetch(date_range)

            resolver = self.resolver or self._build_resolver(raw_commits)
            windows = self._partition(raw_commits, date_range)
            logger.info("%s: %d commits in %d windows", project.name, len(raw_commits), len(windows))

            network = NetworkBuilder(resolver)
            aggregator = ConcurrentAggregator(
                self.analyzer,
                resolver,
                workers=self.config.workers,
                cancel_event=self.cancel_event,
                consumer=network,
            )
            result = aggregator.run(windows)

            gaps = list(source.gaps) + list(result.gaps)
            # Interaction sources see the same range as the commit source
            scoped = replace(project, date_range=date_range)
            gaps.extend(self._add_social_edges(scoped, network))

        report = MiningReport(
            project=project,
            developers=result.developers,
            commits=result.commits,
            window_summaries=result.summaries,
            edges=network.snapshot(),
            gaps=tuple(gaps),
            partial=result.partial,
            truncated=source.truncated,
        )
        self.sink.write(report)
        logger.info(
            "Finished %s: %d developers, %d edges, %d gaps%s",
            project.name,
            len(report.developers),
            len(report.edges),
            len(report.gaps),
            " (partial)" if report.partial else "",
        )
        return report

    def open_source(self, project: ProjectSpec, stack: Optional[ExitStack] = None) -> CommitSource:
        """Pick the commit source: the local clone first, the remote as fallback."""
        if project.local_path:
            local = GitCommitSource(project.local_path, timeout=self.config.git_timeout_seconds)
            try:
                local.check()
                return local
            except RepositoryUnreadable as e:
                if not project.remote_url:
                    raise
                logger.warning("%s; falling back to %s", e, project.remote_url)

        owner, repo = project.github_slug()
        client = self.client_factory()
        if stack is not None:
            stack.callback(client.close)
        return GitHubCommitSource(client, owner, repo, page_size=self.config.page_size)

    def _build_resolver(self, raw_commits) -> IdentityResolver:
        aliases: list[tuple[str, str]] = []
        if self.config.mailmap_path:
            aliases = AliasTable.read_mailmap(self.config.mailmap_path)
        return AliasTable.from_commits(
            raw_commits, aliases=aliases, merge_by_name=self.config.merge_aliases_by_name
        )

    def _partition(self, raw_commits, date_range: Optional[DateRange]):
        if self.config.window_mode == "calendar":
            return partition_by_month(raw_commits, date_range)
        return partition(raw_commits, self.config.window_size, date_range)

    def _add_social_edges(self, project: ProjectSpec, network: NetworkBuilder) -> list[GapRecord]:
        gaps = []
        for provider in self.interaction_sources:
            try:
                network.add_interactions(provider.fetch(project))
            except MailboxUnavailable as e:
                logger.warning("%s: social network incomplete: %s", project.name, e)
                gaps.append(GapRecord.from_error(e, "interactions", e.source))
        return gaps


@dataclass(frozen=True)
class ProjectFailure:
    """A project of a batch that could not be mined."""

    project: str
    code: ErrorCode
    reason: str


@dataclass
class BatchResult:
    reports: list[MiningReport] = field(default_factory=list)
    failures: list[ProjectFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.reports)


class BatchRunner:
    """Mine several projects; one project's failure never stops the others."""

    def __init__(self, engine: MiningEngine):
        self.engine = engine

    def run(self, projects: Iterable[ProjectSpec]) -> BatchResult:
        result = BatchResult()
        for project in projects:
            if self.engine.cancelled:
                logger.warning("Batch cancelled before %s", project.name)
                break
            try:
                result.reports.append(self.engine.mine(project))
            except SustainMinerError as e:
                logger.error("Project %s failed: %s", project.name, e)
                result.failures.append(ProjectFailure(project=project.name, code=e.code, reason=str(e)))
        return result

    @staticmethod
    def read_projects(path: Path) -> list[ProjectSpec]:
        """Read a project list CSV with columns ``name,path,url,start,end,status``.

        ``path`` or ``url`` may be empty (not both); ``start``/``end`` are
        ISO dates, the end day included.

        Raises:
            ConfigurationError: If the file cannot be read
            InvalidProjectError: If a row is incomplete or has bad dates
        """
        try:
            with open(path, newline="", encoding="utf-8") as fh:
                rows = list(csv.DictReader(fh))
        except OSError as e:
            raise ConfigurationError(f"Cannot read project list '{path}': {e}")

        projects = []
        for line, row in enumerate(rows, 2):
            row = {k.strip().lower(): (v or "").strip() for k, v in row.items() if k}
            name = row.get("name", "")
            start, end = row.get("start", ""), row.get("end", "")
            date_range = None
            if start or end:
                if not (start and end):
                    raise InvalidProjectError(name or f"line {line}", "start and end must both be set")
                try:
                    date_range = DateRange.from_dates(start, end)
                except ValueError as e:
                    raise InvalidProjectError(name or f"line {line}", f"bad dates: {e}")
            project = ProjectSpec(
                name=name,
                local_path=row.get("path") or None,
                remote_url=row.get("url") or None,
                date_range=date_range,
                status=row.get("status", ""),
            )
            project.validate()
            projects.append(project)
        return projects
