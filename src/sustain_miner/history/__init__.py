"""Commit history: sources, change analysis and time windows."""

from .analyzer import ChangeAnalyzer, normalize_email, parse_patch
from .git_source import GitCommitSource
from .github_source import GitHubCommitSource
from .languages import LANGUAGES, allowed_extensions, language_for_path
from .models import ChangeKind, CommitFact, CommitPage, FileChange, RawCommit, RawFileDelta, Window
from .source import CommitSource
from .windows import partition, partition_by_month

__all__ = [
    "ChangeAnalyzer",
    "normalize_email",
    "parse_patch",
    "CommitSource",
    "GitCommitSource",
    "GitHubCommitSource",
    "LANGUAGES",
    "allowed_extensions",
    "language_for_path",
    "ChangeKind",
    "CommitFact",
    "CommitPage",
    "FileChange",
    "RawCommit",
    "RawFileDelta",
    "Window",
    "partition",
    "partition_by_month",
]
