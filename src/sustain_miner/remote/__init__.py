"""Remote API access (GitHub)."""

from .client import GitHubClient

__all__ = ["GitHubClient"]
