"""Tests for the error taxonomy."""

from datetime import datetime, timezone

import pytest

from sustain_miner.exceptions import (
    ConfigurationError,
    GitCommandError,
    HistoryTruncated,
    InvalidConfigError,
    InvalidProjectError,
    MailboxUnavailable,
    MalformedDiffError,
    MiningError,
    RemoteRequestRejected,
    RemoteSourceError,
    RemoteSourceUnavailable,
    RepositoryUnreadable,
    SustainMinerError,
    WindowAnalysisFailed,
)
from sustain_miner.exceptions.taxonomy import ErrorCode
from sustain_miner.models import GapRecord


class TestErrorCode:
    """Test ErrorCode enum."""

    def test_source_error_codes(self):
        """Commit source errors are SM1xx."""
        assert RepositoryUnreadable("/x", "nope").code is ErrorCode.SM100
        assert HistoryTruncated("/x").code is ErrorCode.SM101
        assert GitCommandError("git log", "boom").code is ErrorCode.SM102

    def test_remote_error_codes(self):
        """Remote errors are SM2xx."""
        assert RemoteSourceUnavailable("https://api", 5, "503").code is ErrorCode.SM200
        assert RemoteRequestRejected("https://api", "401").code is ErrorCode.SM201

    def test_analysis_error_codes(self):
        """Analysis errors are SM3xx."""
        assert MalformedDiffError("abc", "bad hunk").code is ErrorCode.SM300
        now = datetime(2022, 1, 1, tzinfo=timezone.utc)
        assert WindowAnalysisFailed(1, now, now, ValueError("x")).code is ErrorCode.SM301

    def test_configuration_error_codes(self):
        """Configuration errors are SM5xx."""
        assert ConfigurationError("bad").code is ErrorCode.SM500
        assert InvalidProjectError("p", "no source").code is ErrorCode.SM501

    def test_codes_are_unique(self):
        values = [code.value for code in ErrorCode]
        assert len(values) == len(set(values))


class TestSustainMinerError:
    """Test the base exception."""

    def test_str_includes_code(self):
        err = ConfigurationError("File read failed")
        assert str(err) == "[SM500] File read failed"

    def test_str_includes_details(self):
        err = RepositoryUnreadable("/src/widget", "not a git repository")
        assert str(err) == (
            "[SM100] Cannot read repository: /src/widget "
            "(path=/src/widget, reason=not a git repository)"
        )

    def test_is_exception(self):
        with pytest.raises(SustainMinerError) as exc_info:
            raise InvalidConfigError("workers", 0, "must be at least 1")
        assert exc_info.value.key == "workers"
        assert exc_info.value.details["value"] == "0"


class TestHierarchy:
    """Recoverable errors become gaps; the rest abort the project."""

    @pytest.mark.parametrize(
        "error",
        [
            HistoryTruncated("/x"),
            MalformedDiffError("abc", "bad"),
            WindowAnalysisFailed(
                2, datetime(2022, 1, 1, tzinfo=timezone.utc), datetime(2022, 1, 31, tzinfo=timezone.utc), KeyError("k")
            ),
            MailboxUnavailable("dev.mbox", "missing"),
        ],
    )
    def test_recoverable(self, error):
        assert error.recoverable is True
        assert isinstance(error, MiningError)

    @pytest.mark.parametrize(
        "error",
        [
            RepositoryUnreadable("/x", "nope"),
            RemoteSourceUnavailable("u", 5, "r"),
            RemoteRequestRejected("u", "r"),
            InvalidProjectError("p", "r"),
        ],
    )
    def test_fatal(self, error):
        assert error.recoverable is False

    def test_remote_errors_share_a_base(self):
        assert issubclass(RemoteSourceUnavailable, RemoteSourceError)
        assert issubclass(RemoteRequestRejected, RemoteSourceError)

    def test_gap_from_error(self):
        start = datetime(2022, 1, 1, tzinfo=timezone.utc)
        end = datetime(2022, 1, 31, tzinfo=timezone.utc)
        error = WindowAnalysisFailed(3, start, end, ValueError("bad diff"))

        gap = GapRecord.from_error(error, "window", "3", start, end)

        assert gap.code is ErrorCode.SM301
        assert gap.to_row() == {
            "scope": "window",
            "code": "SM301",
            "unit_id": "3",
            "start": "2022-01-01T00:00:00+00:00",
            "end": "2022-01-31T00:00:00+00:00",
            "reason": str(error),
        }
        assert "bad diff" in gap.reason
