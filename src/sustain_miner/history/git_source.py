"""Read commit history from a local clone via the git executable."""

import io
import subprocess
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..exceptions import GitCommandError, HistoryTruncated, RepositoryUnreadable
from ..logging_config import get_logger
from ..models import DateRange, GapRecord
from .models import CommitPage, RawCommit
from .source import CommitSource

logger = get_logger(__name__)

# Record layout: RS hash US parents US name US email US committer-time US body GS
_RS = "\x1e"
_US = "\x1f"
_GS = "\x1d"
_LOG_FORMAT = "--format=%x1e%H%x1f%P%x1f%an%x1f%ae%x1f%ct%x1f%B%x1d"


class GitCommitSource(CommitSource):
    """Stream ``git log -p`` of a local repository.

    Commits are walked oldest first unless ``newest_first`` is set; either
    way :meth:`fetch` returns them in chronological order. Merge commits are
    skipped and renames are detected at 50% similarity. The whole history
    is served as a single page.
    """

    name = "git"

    def __init__(
        self,
        repo_path: str,
        timeout: int = 600,
        git_binary: str = "git",
        newest_first: bool = False,
    ):
        super().__init__()
        self.newest_first = newest_first
        self.repo_path = str(Path(repo_path).expanduser().resolve())
        self.timeout = timeout
        self.git_binary = git_binary
        self._checked = False

    def check(self) -> None:
        """Verify the path is a readable repository and detect shallow clones.

        Raises:
            RepositoryUnreadable: If git cannot open the repository
        """
        if self._checked:
            return
        try:
            result = subprocess.run(
                [self.git_binary, "-C", self.repo_path, "rev-parse", "--git-dir"],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except FileNotFoundError:
            raise RepositoryUnreadable(self.repo_path, "git executable not found")
        except subprocess.TimeoutExpired:
            raise RepositoryUnreadable(self.repo_path, "git rev-parse timed out")
        if result.returncode != 0:
            raise RepositoryUnreadable(self.repo_path, result.stderr.strip() or "not a git repository")

        shallow = subprocess.run(
            [self.git_binary, "-C", self.repo_path, "rev-parse", "--is-shallow-repository"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        if shallow.returncode == 0 and shallow.stdout.strip() == "true":
            self.truncated = True
            self.record_gap(GapRecord.from_error(HistoryTruncated(self.repo_path), "history", self.repo_path))
        self._checked = True

    def fetch_page(
        self, date_range: Optional[DateRange] = None, cursor: Optional[str] = None
    ) -> CommitPage:
        return CommitPage(commits=tuple(self.iter_commits(date_range)), next_cursor=None)

    def iter_commits(self, date_range: Optional[DateRange] = None) -> Iterator[RawCommit]:
        """Yield commits as git prints them, without buffering the whole log."""
        self.check()
        cmd = self._log_command(date_range)
        logger.debug("Running %s", " ".join(cmd))

        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except FileNotFoundError as e:
            raise GitCommandError("git log", str(e))

        # Kill a hung git; the read loop then sees EOF
        timed_out = threading.Event()

        def _expire() -> None:
            timed_out.set()
            proc.kill()

        watchdog = threading.Timer(self.timeout, _expire)
        watchdog.daemon = True
        watchdog.start()
        try:
            if proc.stdout is None:
                raise GitCommandError("git log", "no stdout")
            # Split on "\n" only and keep "\r" as file content
            stdout = io.TextIOWrapper(proc.stdout, encoding="utf-8", errors="replace", newline="\n")
            yield from _parse_log(stdout)
            proc.wait()
            if timed_out.is_set():
                raise GitCommandError("git log", f"timed out after {self.timeout}s")
            if proc.returncode != 0:
                stderr = proc.stderr.read().decode("utf-8", "replace") if proc.stderr else ""
                raise GitCommandError("git log", stderr.strip() or f"exit status {proc.returncode}")
        finally:
            watchdog.cancel()
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            if proc.stdout:
                proc.stdout.close()
            if proc.stderr:
                proc.stderr.close()

    def _log_command(self, date_range: Optional[DateRange]) -> list[str]:
        cmd = [
            self.git_binary,
            "-C",
            self.repo_path,
            "-c",
            "core.quotePath=false",
            "log",
            "--no-merges",
            "-M50%",
            "-p",
            "--no-color",
            "--no-ext-diff",
            "--no-textconv",
            "--src-prefix=a/",
            "--dst-prefix=b/",
            _LOG_FORMAT,
        ]
        if not self.newest_first:
            cmd.insert(cmd.index("log") + 1, "--reverse")
        if date_range is not None:
            # git's bounds are inclusive; the exclusive end is enforced after parsing
            cmd.append(f"--since={_git_date(date_range.start)}")
            cmd.append(f"--until={_git_date(date_range.end)}")
        return cmd


def _git_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S +0000")


def _parse_log(lines) -> Iterator[RawCommit]:
    """Split the formatted log stream into RawCommits.

    Each record starts with RS; header fields are separated by US and the
    message ends with GS. Everything after GS up to the next RS is the patch.
    """
    header: list[str] = []
    patch: list[str] = []
    in_header = False

    for line in lines:
        if line.startswith(_RS):
            if header:
                yield _build_commit("".join(header), "".join(patch))
            header = [line[1:]]
            patch = []
            in_header = _GS not in line
            if not in_header:
                header[0], rest = header[0].split(_GS, 1)
                patch.append(rest.lstrip("\n"))
            continue
        if in_header:
            if _GS in line:
                before, rest = line.split(_GS, 1)
                header.append(before)
                patch.append(rest.lstrip("\n"))
                in_header = False
            else:
                header.append(line)
            continue
        if header:
            patch.append(line)

    if header:
        yield _build_commit("".join(header), "".join(patch))


def _build_commit(header: str, patch: str) -> RawCommit:
    fields = header.split(_US, 5)
    if len(fields) != 6:
        raise GitCommandError("git log", f"unexpected record header {header[:60]!r}")
    sha, parents, name, email, committed, message = fields
    return RawCommit(
        hash=sha,
        author_name=name,
        author_email=email,
        timestamp=datetime.fromtimestamp(int(committed), tz=timezone.utc),
        parents=tuple(parents.split()),
        message=message.strip(),
        patch=patch.lstrip("\n"),
    )
