"""Shared data models: date ranges, gap records and project definitions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from .exceptions import InvalidProjectError, SustainMinerError
from .exceptions.taxonomy import ErrorCode


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp as returned by APIs (``Z`` suffix allowed)."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class DateRange:
    """Half-open UTC interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", to_utc(self.start))
        object.__setattr__(self, "end", to_utc(self.end))
        if self.end < self.start:
            raise ValueError(f"date range ends before it starts: {self.start} > {self.end}")

    @classmethod
    def from_dates(cls, start: date | str, end: date | str) -> "DateRange":
        """Build a range covering whole calendar days, ``end`` inclusive.

        ``"2022-01-01", "2022-01-31"`` covers every instant of January.
        """
        start_day = date.fromisoformat(start) if isinstance(start, str) else start
        end_day = date.fromisoformat(end) if isinstance(end, str) else end
        return cls(
            start=datetime.combine(start_day, time.min, tzinfo=timezone.utc),
            end=datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=timezone.utc),
        )

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class GapRecord:
    """A structured note marking data loss for one unit of work.

    Attributes:
        scope: Unit kind: "window", "commit", "page", "history", "interactions"
        code: Error code of the failure that produced the gap
        reason: Human-readable cause
        unit_id: Identifier of the unit (window index, commit hash, url...)
        start: Start of the affected time range, when known
        end: End (exclusive) of the affected time range, when known
    """

    scope: str
    code: ErrorCode
    reason: str
    unit_id: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def from_error(
        cls,
        error: SustainMinerError,
        scope: str,
        unit_id: str = "",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> "GapRecord":
        return cls(
            scope=scope,
            code=error.code,
            reason=str(error),
            unit_id=unit_id,
            start=start,
            end=end,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "code": self.code.value,
            "unit_id": self.unit_id,
            "start": self.start.isoformat() if self.start else "",
            "end": self.end.isoformat() if self.end else "",
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ProjectSpec:
    """One project to mine: where its history lives and which range to analyze.

    At least one of ``local_path`` and ``remote_url`` must be set. When both
    are set the local clone is preferred and the remote is the fallback.
    """

    name: str
    local_path: Optional[str] = None
    remote_url: Optional[str] = None
    date_range: Optional[DateRange] = None
    status: str = ""

    def validate(self) -> None:
        if not self.name:
            raise InvalidProjectError("<unnamed>", "project name is empty")
        if not self.local_path and not self.remote_url:
            raise InvalidProjectError(self.name, "neither a local path nor a remote url is set")
        if self.remote_url:
            self.github_slug()

    def github_slug(self) -> tuple[str, str]:
        """Return ``(owner, repo)`` parsed from ``remote_url``."""
        if not self.remote_url:
            raise InvalidProjectError(self.name, "no remote url")
        url = self.remote_url.strip().rstrip("/")
        if url.endswith(".git"):
            url = url[: -len(".git")]
        if url.startswith("git@"):
            url = url.split(":", 1)[-1]
        parts = [p for p in url.split("/") if p]
        if len(parts) < 2:
            raise InvalidProjectError(self.name, f"cannot parse owner/repo from {self.remote_url}")
        return parts[-2], parts[-1]
