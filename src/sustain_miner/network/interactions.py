"""Interaction sources for the social network: mail archives and issues.

Every source turns threads (an issue with its comments, or a mail thread)
into pairwise :class:`Interaction` records: each post interacts with every
distinct earlier participant of its thread.
"""

from __future__ import annotations

import mailbox
from email.utils import parseaddr, parsedate_to_datetime
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

from ..exceptions import MailboxUnavailable, RemoteSourceError
from ..logging_config import get_logger
from ..models import DateRange, ProjectSpec, parse_timestamp, to_utc
from ..remote.client import GitHubClient
from .models import Interaction, InteractionSource

logger = get_logger(__name__)

# Automated senders and subjects that do not represent people talking
_IGNORED_SENDERS = {"jira@apache.org", "jiraposter@reviews.apache.org"}
_IGNORED_SUBJECT_PREFIXES = ("svn commit", "cvs commit")
_IGNORED_SUBJECT_MARKERS = ("[jira]",)

Participant = tuple[str, str]  # (name, email)


class InteractionProvider(Protocol):
    """Produces the interactions of one project.

    Raises:
        MailboxUnavailable: If the underlying archive or tracker cannot be read
    """

    def fetch(self, project: ProjectSpec) -> list[Interaction]: ...


def interactions_from_thread(
    posts: Sequence[tuple[Participant, object]],
    source: InteractionSource,
    thread_id: str,
) -> list[Interaction]:
    """Pairwise interactions of one thread.

    Args:
        posts: ``(participant, timestamp)`` in chronological order
        source: Kind of thread
        thread_id: Thread identifier shared by all interactions
    """
    interactions = []
    earlier: dict[str, Participant] = {}
    for participant, timestamp in posts:
        key = _participant_key(participant)
        for other_key, other in earlier.items():
            if other_key != key:
                interactions.append(
                    Interaction(a=participant, b=other, source=source, thread_id=thread_id, timestamp=timestamp)
                )
        earlier.setdefault(key, participant)
    return interactions


def _participant_key(participant: Participant) -> str:
    name, email = participant
    return email.strip().casefold() or name.strip().casefold()


class MboxInteractionSource:
    """Interactions from mbox archives, threaded by References/In-Reply-To.

    Args:
        paths: mbox files or directories holding ``*.mbox`` files
        date_range: Only messages inside this range are kept
    """

    def __init__(self, paths: Iterable[str], date_range: Optional[DateRange] = None):
        self.paths = [Path(p).expanduser() for p in paths]
        self.date_range = date_range

    def fetch(self, project: ProjectSpec) -> list[Interaction]:
        date_range = self.date_range or project.date_range
        posts = []
        for path in self._mbox_files():
            posts.extend(self._read(path, date_range))

        # Stable by date, so same-instant posts keep archive order
        posts.sort(key=lambda p: p[2])
        roots: dict[str, str] = {}
        threads: dict[str, list] = {}
        for message_id, parents, timestamp, participant in posts:
            root = _thread_root(message_id, parents, roots)
            if message_id:
                roots[message_id] = root
            threads.setdefault(root, []).append((participant, timestamp))

        interactions = []
        for root, thread in threads.items():
            interactions.extend(interactions_from_thread(thread, InteractionSource.MAIL_THREAD, root))
        logger.info("%s: %d mail threads, %d interactions", project.name, len(threads), len(interactions))
        return interactions

    def _mbox_files(self) -> list[Path]:
        files = []
        for path in self.paths:
            if path.is_dir():
                files.extend(sorted(path.glob("*.mbox")))
            elif path.is_file():
                files.append(path)
            else:
                raise MailboxUnavailable(str(path), "no such file or directory")
        return files

    def _read(self, path: Path, date_range: Optional[DateRange]) -> list:
        try:
            box = mailbox.mbox(str(path), create=False)
        except (OSError, mailbox.Error) as e:
            raise MailboxUnavailable(str(path), str(e))

        posts = []
        skipped = 0
        try:
            for index, message in enumerate(box):
                name, address = parseaddr(message.get("From", ""))
                subject = str(message.get("Subject", "")).strip()
                if _is_automated(address, subject):
                    skipped += 1
                    continue
                timestamp = _message_date(message)
                if timestamp is None:
                    skipped += 1
                    continue
                if date_range is not None and not date_range.contains(timestamp):
                    continue
                message_id = str(message.get("Message-ID", "")).strip() or f"{path.name}#{index}"
                parents = _referenced_ids(message)
                posts.append((message_id, parents, timestamp, (name.strip(), address.strip())))
        except OSError as e:
            raise MailboxUnavailable(str(path), str(e))
        finally:
            box.close()

        if skipped:
            logger.debug("%s: skipped %d automated or undated messages", path, skipped)
        return posts


def _is_automated(address: str, subject: str) -> bool:
    lowered = subject.lower()
    return (
        address.strip().lower() in _IGNORED_SENDERS
        or lowered.startswith(_IGNORED_SUBJECT_PREFIXES)
        or any(marker in lowered for marker in _IGNORED_SUBJECT_MARKERS)
    )


def _message_date(message):
    raw = message.get("Date")
    if not raw:
        return None
    try:
        return to_utc(parsedate_to_datetime(str(raw)))
    except (TypeError, ValueError, IndexError):
        return None


def _referenced_ids(message) -> list[str]:
    """Ancestor message ids, oldest first."""
    references = str(message.get("References", "")).split()
    if references:
        return references
    reply_to = str(message.get("In-Reply-To", "")).split()
    return reply_to[:1]


def _thread_root(message_id: str, parents: list[str], roots: dict[str, str]) -> str:
    if not parents:
        return message_id
    first = parents[0]
    return roots.get(first, first)


ISSUES_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    issues(first: $first, after: $cursor, orderBy: {field: CREATED_AT, direction: ASC}) {
      pageInfo { hasNextPage endCursor }
      nodes {
        number
        createdAt
        author { login }
        comments(first: 100) {
          pageInfo { hasNextPage endCursor }
          nodes { createdAt author { login } }
        }
      }
    }
  }
}
"""

COMMENTS_QUERY = """
query($owner: String!, $name: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    issue(number: $number) {
      comments(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes { createdAt author { login } }
      }
    }
  }
}
"""


class GitHubIssueSource:
    """Interactions from GitHub issues and their comments.

    Participants are GitHub logins, given the login's noreply address so
    they resolve to the same identity as commits made through GitHub.
    """

    def __init__(self, client: GitHubClient, page_size: int = 100):
        self.client = client
        self.page_size = page_size

    def fetch(self, project: ProjectSpec) -> list[Interaction]:
        owner, repo = project.github_slug()
        slug = f"{owner}/{repo}"
        try:
            interactions = []
            issues = 0
            for issue in self._iter_issues(owner, repo):
                issues += 1
                posts = [(_login(issue.get("author")), parse_timestamp(issue["createdAt"]))]
                for comment in self._comments(owner, repo, issue):
                    posts.append((_login(comment.get("author")), parse_timestamp(comment["createdAt"])))
                posts = [p for p in posts if p[0] is not None]
                if project.date_range is not None:
                    posts = [p for p in posts if project.date_range.contains(p[1])]
                posts.sort(key=lambda p: p[1])
                interactions.extend(
                    interactions_from_thread(posts, InteractionSource.ISSUE, f"{slug}#{issue['number']}")
                )
        except RemoteSourceError as e:
            raise MailboxUnavailable(slug, str(e))

        logger.info("%s: %d issues, %d interactions", slug, issues, len(interactions))
        return interactions

    def _iter_issues(self, owner: str, repo: str):
        cursor = None
        while True:
            data = self.client.graphql(
                ISSUES_QUERY, {"owner": owner, "name": repo, "first": self.page_size, "cursor": cursor}
            )
            connection = ((data.get("repository") or {}).get("issues")) or {}
            yield from connection.get("nodes") or []
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return
            cursor = page_info.get("endCursor")

    def _comments(self, owner: str, repo: str, issue: dict) -> list[dict]:
        connection = issue.get("comments") or {}
        comments = list(connection.get("nodes") or [])
        page_info = connection.get("pageInfo") or {}
        while page_info.get("hasNextPage"):
            data = self.client.graphql(
                COMMENTS_QUERY,
                {"owner": owner, "name": repo, "number": issue["number"], "cursor": page_info.get("endCursor")},
            )
            connection = (((data.get("repository") or {}).get("issue") or {}).get("comments")) or {}
            comments.extend(connection.get("nodes") or [])
            page_info = connection.get("pageInfo") or {}
        return comments


def _login(author: Optional[dict]) -> Optional[Participant]:
    # Deleted accounts come back as null authors
    if not author or not author.get("login"):
        return None
    login = author["login"]
    return login, f"{login.casefold()}@users.noreply.github.com"

