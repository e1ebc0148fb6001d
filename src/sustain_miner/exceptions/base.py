"""Base exception for Sustain Miner."""

from typing import Dict, Optional

from .taxonomy import ErrorCode


class SustainMinerError(Exception):
    """Base exception for all Sustain Miner errors.

    Subclasses pin ``code`` and ``recoverable``. Recoverable errors become
    gap records on the report; the rest abort the project (or the run).
    """

    code: ErrorCode = ErrorCode.SM500
    recoverable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.value}] {self.message} ({details_str})"
        return f"[{self.code.value}] {self.message}"
