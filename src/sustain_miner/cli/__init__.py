"""CLI entry point: registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="sustain-miner",
    help="Sustain Miner - commit history mining and collaboration networks",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sustain-miner {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Mine project histories into developer statistics and networks."""


# Import subcommands to register them
from .mine import mine as _mine, batch as _batch  # noqa: F401, E402
from .info import languages as _languages, windows as _windows  # noqa: F401, E402
