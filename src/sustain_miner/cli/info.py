"""Informational commands: supported languages and window layouts."""

from datetime import timedelta
from typing import Optional

import typer
from rich.table import Table

from ..history.languages import LANGUAGES
from ..history.windows import calendar_bounds, fixed_bounds
from ..models import DateRange
from . import app
from ._common import console


@app.command()
def languages():
    """
    List the languages (and extensions) kept by --restrict-languages.
    """
    table = Table(title="Recognized languages", show_lines=False, pad_edge=True)
    table.add_column("Language", style="bold cyan")
    table.add_column("Extensions")

    for name in sorted(LANGUAGES):
        table.add_row(name, " ".join(LANGUAGES[name].extensions))

    console.print()
    console.print(table)
    console.print()


@app.command()
def windows(
    start: str = typer.Option(..., "--start", help="First day (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Last day, inclusive (YYYY-MM-DD)"),
    window_days: Optional[int] = typer.Option(30, "--window-days", "-w", min=1, help="Window length in days"),
    calendar: bool = typer.Option(False, "--calendar", help="Calendar-month windows"),
):
    """
    Print the windows a date range is split into.

    [bold cyan]Examples:[/bold cyan]

      sustain-miner windows --start 2020-01-01 --end 2020-12-31 -w 30

      sustain-miner windows --start 2020-01-15 --end 2020-06-30 --calendar
    """
    try:
        span = DateRange.from_dates(start, end)
    except ValueError as e:
        raise typer.BadParameter(str(e))

    bounds = calendar_bounds(span) if calendar else fixed_bounds(span, timedelta(days=window_days))

    table = Table(show_lines=False, pad_edge=True)
    table.add_column("Window", style="bold", justify="right")
    table.add_column("Start", style="green")
    table.add_column("End (exclusive)", style="green")
    table.add_column("Days", justify="right")

    for index, (lo, hi) in enumerate(bounds, 1):
        days = (hi - lo).total_seconds() / 86400
        table.add_row(str(index), lo.date().isoformat(), hi.date().isoformat(), f"{days:g}")

    console.print()
    console.print(table)
    console.print()
