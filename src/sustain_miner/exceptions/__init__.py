"""Exception hierarchy for Sustain Miner."""

from .base import SustainMinerError
from .config import ConfigurationError, InvalidConfigError, InvalidProjectError
from .mining import (
    GitCommandError,
    HistoryTruncated,
    MailboxUnavailable,
    MalformedDiffError,
    MiningError,
    RemoteRequestRejected,
    RemoteSourceError,
    RemoteSourceUnavailable,
    RepositoryUnreadable,
    WindowAnalysisFailed,
)
from .taxonomy import ErrorCode

__all__ = [
    "SustainMinerError",
    "ErrorCode",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidProjectError",
    "MiningError",
    "RepositoryUnreadable",
    "HistoryTruncated",
    "GitCommandError",
    "RemoteSourceError",
    "RemoteSourceUnavailable",
    "RemoteRequestRejected",
    "MalformedDiffError",
    "WindowAnalysisFailed",
    "MailboxUnavailable",
]
