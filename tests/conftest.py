"""Shared test fixtures for Sustain Miner tests."""

import os
import shutil
import subprocess
from datetime import datetime, timedelta, timezone

import pytest

from sustain_miner.history.models import ChangeKind, CommitFact, FileChange, RawCommit

EPOCH = datetime(2022, 1, 1, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def day():
    """day(n) -> midnight UTC of the n-th day (1-based) from 2022-01-01."""

    def _day(n: int, hours: int = 0) -> datetime:
        return EPOCH + timedelta(days=n - 1, hours=hours)

    return _day


@pytest.fixture
def make_fact():
    """Factory for analyzed commits: files given as (path, added, removed)."""
    counter = iter(range(1, 10_000))

    def _make(author, when, files=(), email=None, kind=ChangeKind.MODIFIED, sha=None):
        changes = tuple(
            FileChange(path=path, kind=kind, lines_added=added, lines_removed=removed)
            for path, added, removed in files
        )
        return CommitFact(
            hash=sha or f"{next(counter):040x}",
            author_name=author,
            author_email=email if email is not None else f"{author.lower()}@example.com",
            timestamp=when,
            parents=(),
            files=changes,
        )

    return _make


@pytest.fixture
def make_raw():
    """Factory for raw commits carrying a unified diff."""
    counter = iter(range(1, 10_000))

    def _make(author, when, patch="", email=None, sha=None):
        return RawCommit(
            hash=sha or f"{next(counter):040x}",
            author_name=author,
            author_email=email if email is not None else f"{author.lower()}@example.com",
            timestamp=when,
            patch=patch,
        )

    return _make


@pytest.fixture
def scenario_commits(day, make_fact):
    """C1(day1, Alice, fileA +10/-0), C2(day1, Bob, fileA +0/-5), C3(day40, Alice, fileB +3/-0)."""
    return [
        make_fact("Alice", day(1, 9), [("fileA", 10, 0)]),
        make_fact("Bob", day(1, 10), [("fileA", 0, 5)]),
        make_fact("Alice", day(40, 9), [("fileB", 3, 0)]),
    ]


class GitRepo:
    """Throwaway repository driven through the git executable."""

    def __init__(self, path):
        self.path = path

    def git(self, *args, env=None):
        return subprocess.run(
            ["git", "-C", str(self.path), *args],
            check=True,
            capture_output=True,
            text=True,
            env=env,
        ).stdout

    def write(self, rel: str, text: str) -> None:
        target = self.path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")

    def commit(self, message: str, when: datetime, name: str = "Test", email: str = "test@example.com") -> str:
        stamp = when.strftime("%Y-%m-%dT%H:%M:%S+00:00")
        env = {
            **os.environ,
            "GIT_AUTHOR_NAME": name,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_COMMITTER_NAME": name,
            "GIT_COMMITTER_EMAIL": email,
            "GIT_AUTHOR_DATE": stamp,
            "GIT_COMMITTER_DATE": stamp,
        }
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message, env=env)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(tmp_path):
    """An empty git repository."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    repo = GitRepo(tmp_path / "repo")
    repo.path.mkdir()
    repo.git("init", "-q")
    repo.git("config", "user.name", "Test")
    repo.git("config", "user.email", "test@example.com")
    repo.git("config", "commit.gpgsign", "false")
    return repo
