"""Mining commands: one project (``mine``) or a project list (``batch``)."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..engine import BatchRunner, MiningEngine
from ..exceptions import SustainMinerError
from ..logging_config import setup_logging
from ..models import DateRange, ProjectSpec
from ..network.interactions import GitHubIssueSource, MboxInteractionSource
from ..remote.client import GitHubClient
from ..report.models import MiningReport
from ..report.sink import CsvReportSink
from . import app
from ._common import cancel_on_interrupt, console, is_remote, project_name, resolve_config

_CONFIG_HELP = "Path to a TOML config file"


@app.command()
def mine(
    target: str = typer.Argument(..., help="Local clone path or GitHub URL"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Project name (default: from target)"),
    remote: Optional[str] = typer.Option(
        None, "--remote", help="GitHub URL used when the local clone is unreadable"
    ),
    start: Optional[str] = typer.Option(None, "--start", help="First day analyzed (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Last day analyzed, inclusive (YYYY-MM-DD)"),
    ignore_dates: Optional[bool] = typer.Option(
        None, "--ignore-dates/--use-dates", help="Analyze the whole history as one window"
    ),
    window_days: Optional[int] = typer.Option(None, "--window-days", "-w", min=1, help="Window length in days"),
    calendar: Optional[bool] = typer.Option(
        None, "--calendar/--fixed", help="Calendar-month windows instead of fixed-length ones"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", min=1, help="Parallel window workers"),
    restrict_languages: Optional[bool] = typer.Option(
        None, "--restrict-languages/--all-files", help="Keep only recognized source files"
    ),
    language: Optional[List[str]] = typer.Option(
        None, "--language", "-l", help="Allowed language (repeatable, implies --restrict-languages)"
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output folder for CSV files"),
    group_by_developer: Optional[bool] = typer.Option(
        None, "--group-by-developer/--flat", help="Also write one commit log per developer"
    ),
    messages: Optional[bool] = typer.Option(
        None, "--messages/--no-messages", help="Include commit messages in the commit log"
    ),
    mailmap: Optional[str] = typer.Option(None, "--mailmap", help=".mailmap file with developer aliases"),
    merge_by_name: Optional[bool] = typer.Option(
        None, "--merge-by-name/--no-merge-by-name", help="Merge identities that share a name"
    ),
    mbox: Optional[List[Path]] = typer.Option(None, "--mbox", help="mbox file or folder (repeatable)"),
    issues: bool = typer.Option(False, "--issues", help="Build the social network from GitHub issues"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP, exists=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """
    Mine one project and write its CSV report.

    [bold cyan]Examples:[/bold cyan]

      sustain-miner mine ./repo --start 2020-01-01 --end 2020-12-31

      sustain-miner mine https://github.com/apache/incubator-foo -j 8 --issues

      sustain-miner mine ./repo --ignore-dates --restrict-languages -l java
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    date_range = _date_range(start, end)

    remote_target = is_remote(target)
    project = ProjectSpec(
        name=name or project_name(target),
        local_path=None if remote_target else target,
        remote_url=target if remote_target else remote,
        date_range=date_range,
    )

    clients: list[GitHubClient] = []
    try:
        cfg = resolve_config(
            config,
            window_days=window_days,
            window_mode=None if calendar is None else ("calendar" if calendar else "fixed"),
            ignore_dates=ignore_dates,
            workers=workers,
            restrict_languages=True if language else restrict_languages,
            allowed_languages=language or None,
            output_dir=output,
            group_by_developer=group_by_developer,
            include_commit_messages=messages,
            mailmap_path=mailmap,
            merge_aliases_by_name=merge_by_name,
        )
        sources = _interaction_sources(cfg, mbox, issues, clients)
        engine = MiningEngine(cfg, CsvReportSink.from_config(cfg), interaction_sources=sources)
        with cancel_on_interrupt(engine):
            report = engine.mine(project)
    except SustainMinerError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    finally:
        for client in clients:
            client.close()

    _print_report(report, cfg.output_dir)


@app.command()
def batch(
    projects: Path = typer.Argument(
        ..., help="CSV with columns name,path,url,start,end,status", exists=True, dir_okay=False
    ),
    ignore_dates: Optional[bool] = typer.Option(
        None, "--ignore-dates/--use-dates", help="Analyze each whole history as one window"
    ),
    window_days: Optional[int] = typer.Option(None, "--window-days", "-w", min=1, help="Window length in days"),
    calendar: Optional[bool] = typer.Option(
        None, "--calendar/--fixed", help="Calendar-month windows instead of fixed-length ones"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", min=1, help="Parallel window workers"),
    restrict_languages: Optional[bool] = typer.Option(
        None, "--restrict-languages/--all-files", help="Keep only recognized source files"
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output folder for CSV files"),
    issues: bool = typer.Option(False, "--issues", help="Build social networks from GitHub issues"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP, exists=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """
    Mine every project listed in a CSV file.

    A project that fails is reported and skipped; the others still run.

    [bold cyan]Examples:[/bold cyan]

      sustain-miner batch projects.csv -j 4 --output data
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    clients: list[GitHubClient] = []
    try:
        cfg = resolve_config(
            config,
            window_days=window_days,
            window_mode=None if calendar is None else ("calendar" if calendar else "fixed"),
            ignore_dates=ignore_dates,
            workers=workers,
            restrict_languages=restrict_languages,
            output_dir=output,
        )
        project_list = BatchRunner.read_projects(projects)
        sources = _interaction_sources(cfg, None, issues, clients)
        engine = MiningEngine(cfg, CsvReportSink.from_config(cfg), interaction_sources=sources)
        with cancel_on_interrupt(engine):
            result = BatchRunner(engine).run(project_list)
    except SustainMinerError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    finally:
        for client in clients:
            client.close()

    table = Table(title="Batch results", show_lines=False, pad_edge=True)
    table.add_column("Project", style="bold")
    table.add_column("Status")
    table.add_column("Commits", justify="right")
    table.add_column("Developers", justify="right")
    table.add_column("Edges", justify="right")
    table.add_column("Gaps", justify="right", style="yellow")

    for report in result.reports:
        status = "[yellow]partial[/yellow]" if report.partial else "[green]ok[/green]"
        table.add_row(
            report.project.name,
            status,
            str(len(report.commits)),
            str(len(report.developers)),
            str(len(report.edges)),
            str(len(report.gaps)),
        )
    for failure in result.failures:
        table.add_row(failure.project, f"[red]failed ({failure.code.value})[/red]", "-", "-", "-", "-")

    skipped = len(project_list) - result.succeeded - len(result.failures)
    console.print()
    console.print(table)
    if skipped:
        console.print(f"[yellow]{skipped} project(s) not started (cancelled)[/yellow]")
    console.print()

    if result.failures:
        raise typer.Exit(1)


def _date_range(start: Optional[str], end: Optional[str]) -> Optional[DateRange]:
    if not start and not end:
        return None
    if not (start and end):
        raise typer.BadParameter("--start and --end must be given together")
    try:
        return DateRange.from_dates(start, end)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _interaction_sources(cfg, mbox: Optional[List[Path]], issues: bool, clients: list) -> list:
    sources = []
    if mbox:
        sources.append(MboxInteractionSource([str(p) for p in mbox]))
    if issues:
        client = GitHubClient.from_config(cfg)
        clients.append(client)
        sources.append(GitHubIssueSource(client, page_size=cfg.page_size))
    return sources


def _print_report(report: MiningReport, output_dir: str) -> None:
    table = Table(title=f"{report.project.name}", show_lines=False, pad_edge=True)
    table.add_column("Developer", style="bold")
    table.add_column("Commits", justify="right")
    table.add_column("Added", justify="right", style="green")
    table.add_column("Removed", justify="right", style="red")
    table.add_column("Windows", justify="right")

    top = sorted(report.developers, key=lambda d: (-d.commit_count, d.identity))[:15]
    for dev in top:
        table.add_row(
            dev.name or dev.identity,
            str(dev.commit_count),
            str(dev.lines_added_total),
            str(dev.lines_removed_total),
            str(dev.active_window_count),
        )

    console.print()
    console.print(table)
    console.print(
        f"{len(report.commits)} commits, {len(report.developers)} developers, "
        f"{len(report.window_summaries)} windows, {len(report.edges)} edges"
    )
    if report.truncated:
        console.print("[yellow]History is truncated (shallow clone)[/yellow]")
    if report.partial:
        console.print("[yellow]Run was cancelled: report is partial[/yellow]")
    if report.gaps:
        console.print(f"[yellow]{len(report.gaps)} gap(s) recorded[/yellow]")
    console.print(f"Report written to [bold]{output_dir}[/bold]")
    console.print()
