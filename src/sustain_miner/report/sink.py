"""Report sinks: where finalized mining reports are persisted."""

from __future__ import annotations

import csv
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable

from ..logging_config import get_logger
from .models import COMMIT_COLUMNS, RUN_COLUMNS, MiningReport

logger = get_logger(__name__)

DEVELOPER_COLUMNS = [
    "identity",
    "name",
    "commits",
    "lines_added",
    "lines_removed",
    "files_touched",
    "active_windows",
    "first_seen",
    "last_seen",
]

SUMMARY_COLUMNS = [
    "window",
    "start",
    "end",
    "commits",
    "developers",
    "lines_added",
    "lines_removed",
    "files_added",
    "files_deleted",
    "files_modified",
    "files_renamed",
    "major_contributors",
    "minor_contributors",
    "commit_gini",
    "failed",
]

EDGE_COLUMNS = ["source", "target", "kind", "weight", "first_seen", "last_seen"]

GAP_COLUMNS = ["scope", "code", "unit_id", "start", "end", "reason"]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._@+-]+")


class ReportSink(ABC):
    """Accepts finalized reports."""

    @abstractmethod
    def write(self, report: MiningReport) -> None:
        """Persist one project's report."""


class MemoryReportSink(ReportSink):
    """Keep reports in memory, keyed by project name."""

    def __init__(self) -> None:
        self.reports: dict[str, MiningReport] = {}

    def write(self, report: MiningReport) -> None:
        self.reports[report.project.name] = report


class CsvReportSink(ReportSink):
    """Write each record set of a report to its own CSV file.

    Files written to ``output_dir``:
        <project>-dev-stats.csv         developer statistics
        <project>-commit-file-dev.csv   one row per (commit, file)
        <project>-window-summary.csv    per-window technical summary
        <project>-network-edges.csv     technical and social edges
        <project>-gaps.csv              missing data
        <project>-run.csv               totals and the partial/truncated flags
        <project>-developers/<id>.csv   commit log per developer (grouped mode)
    """

    def __init__(
        self,
        output_dir: str = "data",
        group_by_developer: bool = False,
        include_commit_messages: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.group_by_developer = group_by_developer
        self.include_commit_messages = include_commit_messages

    @classmethod
    def from_config(cls, config) -> "CsvReportSink":
        return cls(
            output_dir=config.output_dir,
            group_by_developer=config.group_by_developer,
            include_commit_messages=config.include_commit_messages,
        )

    def paths_for(self, project: str) -> dict[str, Path]:
        stem = safe_name(project)
        return {
            "developers": self.output_dir / f"{stem}-dev-stats.csv",
            "commits": self.output_dir / f"{stem}-commit-file-dev.csv",
            "windows": self.output_dir / f"{stem}-window-summary.csv",
            "edges": self.output_dir / f"{stem}-network-edges.csv",
            "gaps": self.output_dir / f"{stem}-gaps.csv",
            "run": self.output_dir / f"{stem}-run.csv",
        }

    def write(self, report: MiningReport) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        paths = self.paths_for(report.project.name)

        _write_csv(paths["developers"], DEVELOPER_COLUMNS, report.developer_rows())
        _write_csv(paths["commits"], COMMIT_COLUMNS, report.commit_rows(self.include_commit_messages))
        _write_csv(paths["windows"], SUMMARY_COLUMNS, report.summary_rows())
        _write_csv(paths["edges"], EDGE_COLUMNS, report.edge_rows())
        _write_csv(paths["gaps"], GAP_COLUMNS, report.gap_rows())
        _write_csv(paths["run"], RUN_COLUMNS, [report.run_row()])

        if self.group_by_developer:
            folder = self.output_dir / f"{safe_name(report.project.name)}-developers"
            folder.mkdir(parents=True, exist_ok=True)
            grouped = report.commit_rows_by_developer(self.include_commit_messages)
            for identity, rows in grouped.items():
                _write_csv(folder / f"{safe_name(identity)}.csv", COMMIT_COLUMNS, rows)

        label = " (partial)" if report.partial else ""
        logger.info("Wrote report for %s%s to %s", report.project.name, label, self.output_dir)


def safe_name(value: str) -> str:
    """File-system safe version of a project or developer name."""
    cleaned = _UNSAFE_CHARS.sub("_", value).strip("._")
    return cleaned or "unnamed"


def _write_csv(path: Path, columns: list[str], rows: Iterable[dict[str, Any]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
