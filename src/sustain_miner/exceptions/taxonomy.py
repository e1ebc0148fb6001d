"""Error codes for failures and gap records.

Error Code Convention:
    SM1xx - Commit source errors
    SM2xx - Remote API errors
    SM3xx - Analysis / aggregation errors
    SM4xx - Interaction source errors
    SM5xx - Configuration errors
"""

from enum import Enum


class ErrorCode(Enum):
    """Structured error codes shared by exceptions and gap records."""

    # Commit source errors (SM1xx)
    SM100 = "SM100"  # Repository unreadable
    SM101 = "SM101"  # History truncated (shallow clone)
    SM102 = "SM102"  # Git subprocess failed or timed out

    # Remote API errors (SM2xx)
    SM200 = "SM200"  # Remote source unavailable after retries
    SM201 = "SM201"  # Remote request rejected (non-transient)
    SM202 = "SM202"  # Commit detail missing for a single commit

    # Analysis errors (SM3xx)
    SM300 = "SM300"  # Malformed diff
    SM301 = "SM301"  # Window analysis failed
    SM302 = "SM302"  # Window not dispatched (cancelled)

    # Interaction source errors (SM4xx)
    SM400 = "SM400"  # Mailbox / issue tracker unavailable

    # Configuration errors (SM5xx)
    SM500 = "SM500"  # Invalid configuration value
    SM501 = "SM501"  # Contradictory project definition

    @property
    def category(self) -> str:
        return _CATEGORIES[self.value[2]]


_CATEGORIES = {
    "1": "source",
    "2": "remote",
    "3": "analysis",
    "4": "interaction",
    "5": "configuration",
}
