"""Contribution concentration across developers.

Gini coefficient of per-developer commit counts:

    G = 0: every developer made the same number of commits
    G = 1: one developer made all of them

Formula (for sorted values x_1 <= x_2 <= ... <= x_n):
    G = (2 * sum(i * x_i)) / (n * sum(x_i)) - (n + 1) / n
"""

from typing import Sequence, Union

import numpy as np

# Developers at or under this share of a window's commits count as minor
MINOR_SHARE = 0.05


def gini_coefficient(values: Sequence[Union[int, float]], bias_correction: bool = False) -> float:
    """Compute the Gini coefficient of non-negative values.

    Args:
        values: Non-negative values; empty and single-value inputs give 0.0
        bias_correction: If True, apply the n/(n-1) sample correction

    Returns:
        Gini coefficient in [0, 1].

    Raises:
        ValueError: If any value is negative.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size < 2:
        return 0.0
    if np.any(arr < 0):
        raise ValueError("Gini requires non-negative values")

    total = arr.sum()
    if total == 0:
        return 0.0

    arr = np.sort(arr)
    n = arr.size
    ranks = np.arange(1, n + 1, dtype=np.float64)
    gini = (2.0 * np.dot(ranks, arr)) / (n * total) - (n + 1.0) / n

    if bias_correction:
        gini *= n / (n - 1)

    return float(max(0.0, min(1.0, gini)))


def contributor_split(commit_counts: Sequence[int]) -> tuple[int, int]:
    """Split developers into (major, minor) by their share of commits.

    A developer is minor when their commit count is at most 5% of the total
    (rounded down), so in small windows every developer with a single commit
    can still be major.
    """
    total = sum(commit_counts)
    threshold = int(total * MINOR_SHARE)
    minor = sum(1 for count in commit_counts if count <= threshold)
    return len(commit_counts) - minor, minor
