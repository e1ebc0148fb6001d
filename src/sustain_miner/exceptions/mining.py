"""Mining exceptions: commit sources, remote API, analysis, interactions."""

from datetime import datetime
from typing import Optional

from .base import SustainMinerError
from .taxonomy import ErrorCode


class MiningError(SustainMinerError):
    """Base class for errors raised while mining history."""

    code = ErrorCode.SM102


class RepositoryUnreadable(MiningError):
    """Raised when a local path is not a readable git repository."""

    code = ErrorCode.SM100

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Cannot read repository: {path}",
            details={"path": path, "reason": reason},
        )
        self.path = path
        self.reason = reason


class HistoryTruncated(MiningError):
    """Raised (and recorded) when a shallow clone hides part of the history."""

    code = ErrorCode.SM101
    recoverable = True

    def __init__(self, path: str):
        super().__init__(
            f"History is truncated (shallow clone): {path}",
            details={"path": path},
        )
        self.path = path


class GitCommandError(MiningError):
    """Raised when the git executable fails or times out."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            f"git command failed: {command}",
            details={"command": command, "reason": reason},
        )
        self.command = command
        self.reason = reason


class RemoteSourceError(MiningError):
    """Base class for remote API failures."""

    code = ErrorCode.SM200


class RemoteSourceUnavailable(RemoteSourceError):
    """Raised when transient remote failures outlast the retry budget."""

    def __init__(self, url: str, attempts: int, reason: str):
        super().__init__(
            f"Remote source unavailable: {url}",
            details={"url": url, "attempts": str(attempts), "reason": reason},
        )
        self.url = url
        self.attempts = attempts
        self.reason = reason


class RemoteRequestRejected(RemoteSourceError):
    """Raised for non-transient remote failures (auth, not found, bad schema)."""

    code = ErrorCode.SM201

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        details = {"url": url, "reason": reason}
        if status_code is not None:
            details["status"] = str(status_code)
        super().__init__(f"Remote request rejected: {url}", details=details)
        self.url = url
        self.reason = reason
        self.status_code = status_code


class MalformedDiffError(MiningError):
    """Raised when a commit's diff payload cannot be parsed."""

    code = ErrorCode.SM300
    recoverable = True

    def __init__(self, commit: str, reason: str, line_number: Optional[int] = None):
        details = {"commit": commit, "reason": reason}
        if line_number is not None:
            details["line"] = str(line_number)
        super().__init__(f"Malformed diff in commit {commit}", details=details)
        self.commit = commit
        self.reason = reason
        self.line_number = line_number


class WindowAnalysisFailed(MiningError):
    """Raised by a worker when one window cannot be analyzed."""

    code = ErrorCode.SM301
    recoverable = True

    def __init__(self, index: int, start: datetime, end: datetime, cause: BaseException):
        super().__init__(
            f"Analysis failed for window {index}",
            details={
                "start": start.isoformat(),
                "end": end.isoformat(),
                "cause": str(cause),
            },
        )
        self.index = index
        self.start = start
        self.end = end
        self.cause = cause


class MailboxUnavailable(MiningError):
    """Raised when a mailbox archive or issue tracker cannot be read."""

    code = ErrorCode.SM400
    recoverable = True

    def __init__(self, source: str, reason: str):
        super().__init__(
            f"Interaction source unavailable: {source}",
            details={"source": source, "reason": reason},
        )
        self.source = source
        self.reason = reason
