"""GitHub API client with rate-limit handling and bounded retries.

Transient failures (rate limiting, 5xx, timeouts, connection errors and
GraphQL ``RATE_LIMITED`` errors) are retried with exponential backoff, or
after the delay the server asks for. Anything else fails immediately.
"""

from __future__ import annotations

import os
import time
from typing import Any, Callable, Optional

import httpx

from ..exceptions import RemoteRequestRejected, RemoteSourceUnavailable
from ..logging_config import get_logger

logger = get_logger(__name__)

API_URL = "https://api.github.com"


class _Transient(Exception):
    """Internal marker: the attempt failed but may be retried."""

    def __init__(self, reason: str, wait: Optional[float] = None):
        super().__init__(reason)
        self.reason = reason
        self.wait = wait


class GitHubClient:
    """Thin sync wrapper around the GitHub REST and GraphQL APIs."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: str = API_URL,
        timeout: float = 30.0,
        max_retries: int = 5,
        backoff_base: float = 1.0,
        backoff_max: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"bearer {resolved_token}"
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, **kwargs) -> "GitHubClient":
        return cls(
            token=config.github_token,
            timeout=config.request_timeout_seconds,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base_seconds,
            backoff_max=config.backoff_max_seconds,
            **kwargs,
        )

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- public -------------------------------------------------------------

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Single-resource GET, returns parsed JSON."""
        return self._request("GET", path, params=params)

    def graphql(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            RemoteRequestRejected: If the response carries non-transient errors
            RemoteSourceUnavailable: If rate limiting outlasts the retry budget
        """
        body = {"query": query, "variables": variables or {}}
        payload = self._request("POST", "/graphql", json=body, graphql=True)
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise RemoteRequestRejected(str(self._client.base_url.join("/graphql")), "response has no data")
        return data

    # -- internal -----------------------------------------------------------

    def _request(self, method: str, path: str, graphql: bool = False, **kwargs) -> Any:
        url = str(self._client.base_url.join(path))
        reason = "no attempt made"
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._attempt(method, path, url, graphql, **kwargs)
            except _Transient as transient:
                reason = transient.reason
                if attempt == self.max_retries:
                    break
                delay = self._delay(attempt, transient.wait)
                logger.warning(
                    "Transient failure on %s (%s), attempt %d/%d, retrying in %.1fs",
                    url,
                    reason,
                    attempt,
                    self.max_retries,
                    delay,
                )
                self._sleep(delay)
        raise RemoteSourceUnavailable(url, self.max_retries, reason)

    def _attempt(self, method: str, path: str, url: str, graphql: bool, **kwargs) -> Any:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise _Transient(f"timeout: {exc}")
        except httpx.TransportError as exc:
            raise _Transient(f"transport error: {exc}")

        if resp.status_code in (403, 429) and self._is_rate_limited(resp):
            raise _Transient(f"rate limited ({resp.status_code})", self._rate_limit_wait(resp))
        if resp.status_code >= 500:
            raise _Transient(f"server error {resp.status_code}")
        if resp.status_code >= 400:
            raise RemoteRequestRejected(url, _error_message(resp), resp.status_code)

        try:
            payload = resp.json()
        except ValueError:
            raise RemoteRequestRejected(url, "response is not valid JSON", resp.status_code)

        if graphql and isinstance(payload, dict) and payload.get("errors"):
            errors = payload["errors"]
            if any(isinstance(e, dict) and e.get("type") == "RATE_LIMITED" for e in errors):
                raise _Transient("graphql rate limited", self._rate_limit_wait(resp))
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise RemoteRequestRejected(url, messages, resp.status_code)

        return payload

    def _delay(self, attempt: int, wait: Optional[float]) -> float:
        if wait is not None:
            return min(max(wait, 0.0), self.backoff_max)
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        remaining = _parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None:
            return remaining == 0
        # Secondary rate limits only send Retry-After
        return "Retry-After" in response.headers

    @staticmethod
    def _rate_limit_wait(response: httpx.Response) -> Optional[float]:
        """Delay requested by the server, or None to use exponential backoff."""
        retry_after = _parse_header_int(response.headers.get("Retry-After"))
        if retry_after is not None:
            return float(max(retry_after, 1))
        reset_ts = _parse_header_int(response.headers.get("X-RateLimit-Reset"))
        if reset_ts is not None:
            return float(max(reset_ts - int(time.time()), 1))
        return None


def _parse_header_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict) and payload.get("message"):
        return f"HTTP {response.status_code}: {payload['message']}"
    return f"HTTP {response.status_code}"
