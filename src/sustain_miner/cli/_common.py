"""Shared CLI helpers."""

import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import MiningConfig, load_config

console = Console()


def resolve_config(config: Optional[Path] = None, **options) -> MiningConfig:
    """Build the configuration from a config file and CLI options.

    Options left at None keep the value from files and environment.
    """
    overrides = {k: v for k, v in options.items() if v is not None}
    return load_config(config_file=config, **overrides)


def is_remote(target: str) -> bool:
    return target.startswith(("http://", "https://", "git@"))


def project_name(target: str) -> str:
    """Default project name: last component of a path or URL."""
    name = target.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name or name == ".":
        name = Path(target).resolve().name
    return name


@contextmanager
def cancel_on_interrupt(engine):
    """Turn Ctrl-C into cooperative cancellation for the duration of a run."""

    def _handler(signum, frame):
        console.print("\n[yellow]Interrupted: finishing in-flight windows...[/yellow]")
        engine.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
