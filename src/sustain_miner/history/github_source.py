"""Read commit history from the GitHub API.

Commit metadata is paged through the GraphQL history connection; per-file
tallies come from the REST commit endpoint, one request per commit.
"""

from typing import Any, Optional

from ..exceptions import RemoteRequestRejected
from ..exceptions.taxonomy import ErrorCode
from ..logging_config import get_logger
from ..models import DateRange, GapRecord, parse_timestamp
from ..remote.client import GitHubClient
from .models import CommitPage, RawCommit, RawFileDelta
from .source import CommitSource

logger = get_logger(__name__)

HISTORY_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $after: String,
      $since: GitTimestamp, $until: GitTimestamp) {
  repository(owner: $owner, name: $name) {
    defaultBranchRef {
      target {
        ... on Commit {
          history(first: $first, after: $after, since: $since, until: $until) {
            pageInfo { hasNextPage endCursor }
            nodes {
              oid
              url
              message
              committedDate
              author { name email }
              parents(first: 2) { nodes { oid } }
            }
          }
        }
      }
    }
  }
}
"""


class GitHubCommitSource(CommitSource):
    """Commits of a repository's default branch, fetched page by page.

    Args:
        client: Configured API client (owns retries and rate limiting)
        owner: Repository owner
        repo: Repository name
        page_size: Commits requested per page
        filter_remotely: Send the date range to the API. When False every
            page is fetched and the range is applied after the fact.
    """

    name = "github"

    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        page_size: int = 100,
        filter_remotely: bool = True,
    ):
        super().__init__()
        self.client = client
        self.owner = owner
        self.repo = repo
        self.page_size = page_size
        self.filter_remotely = filter_remotely

    def fetch_page(
        self, date_range: Optional[DateRange] = None, cursor: Optional[str] = None
    ) -> CommitPage:
        variables: dict[str, Any] = {
            "owner": self.owner,
            "name": self.repo,
            "first": self.page_size,
            "after": cursor,
        }
        if date_range is not None and self.filter_remotely:
            variables["since"] = date_range.start.strftime("%Y-%m-%dT%H:%M:%SZ")
            variables["until"] = date_range.end.strftime("%Y-%m-%dT%H:%M:%SZ")

        data = self.client.graphql(HISTORY_QUERY, variables)
        history = _history_of(data, f"{self.owner}/{self.repo}")

        commits = []
        for node in history.get("nodes") or []:
            parents = tuple(p["oid"] for p in (node.get("parents") or {}).get("nodes") or [])
            if len(parents) > 1:
                continue
            commits.append(self._build_commit(node, parents))

        page_info = history.get("pageInfo") or {}
        next_cursor = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        logger.debug(
            "%s/%s: page with %d commits, more=%s", self.owner, self.repo, len(commits), next_cursor is not None
        )
        return CommitPage(commits=tuple(commits), next_cursor=next_cursor)

    def fetch_file_deltas(self, sha: str) -> Optional[tuple[RawFileDelta, ...]]:
        """Per-file tallies of one commit, or None when the detail is missing.

        A missing detail is recorded as a gap; the commit is kept without files.
        """
        path = f"/repos/{self.owner}/{self.repo}/commits/{sha}"
        try:
            detail = self.client.get(path)
        except RemoteRequestRejected as e:
            self.record_gap(
                GapRecord(scope="commit", code=ErrorCode.SM202, reason=str(e), unit_id=sha)
            )
            return None

        files = detail.get("files") if isinstance(detail, dict) else None
        if not isinstance(files, list):
            self.record_gap(
                GapRecord(scope="commit", code=ErrorCode.SM202, reason="commit detail has no file list", unit_id=sha)
            )
            return None

        return tuple(
            RawFileDelta(
                path=f["filename"],
                status=f.get("status", "modified"),
                additions=int(f.get("additions", 0)),
                deletions=int(f.get("deletions", 0)),
                previous_path=f.get("previous_filename"),
                has_patch="patch" in f,
            )
            for f in files
        )

    def _build_commit(self, node: dict, parents: tuple[str, ...]) -> RawCommit:
        author = node.get("author") or {}
        deltas = self.fetch_file_deltas(node["oid"])
        return RawCommit(
            hash=node["oid"],
            author_name=author.get("name") or "",
            author_email=author.get("email") or "",
            timestamp=parse_timestamp(node["committedDate"]),
            parents=parents,
            message=node.get("message") or "",
            file_deltas=deltas if deltas is not None else (),
            url=node.get("url") or "",
        )


def _history_of(data: dict, slug: str) -> dict:
    repository = data.get("repository")
    if not repository:
        raise RemoteRequestRejected(slug, "repository not found")
    branch = repository.get("defaultBranchRef")
    if not branch:
        # Empty repository: no default branch yet
        return {"nodes": [], "pageInfo": {"hasNextPage": False}}
    history = (branch.get("target") or {}).get("history")
    if not isinstance(history, dict):
        raise RemoteRequestRejected(slug, "response has no commit history")
    return history
