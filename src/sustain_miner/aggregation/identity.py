"""Developer identity resolution (alias table).

Policy:
    1. Emails are normalized: stripped, case-folded, and GitHub noreply
       addresses ``<id>+<login>@users.noreply.github.com`` lose the id.
    2. A commit with no email is keyed by its case-folded name.
    3. Explicit aliases (a mapping or a ``.mailmap`` file) merge keys.
    4. Optionally, keys that share a non-empty normalized name are merged.
    5. The canonical identity of a merged group is its smallest key.

The table is built once before aggregation and only read afterwards, so it
can be shared by worker threads.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from ..exceptions import ConfigurationError
from ..history.analyzer import normalize_email
from ..logging_config import get_logger

logger = get_logger(__name__)

_NOREPLY_RE = re.compile(r"^\d+\+(.+@users\.noreply\.github\.com)$")
_MAILMAP_EMAIL_RE = re.compile(r"<([^>]*)>")

UNKNOWN_IDENTITY = "unknown"


class IdentityResolver(Protocol):
    """Maps a raw (name, email) pair to a canonical developer identity."""

    def resolve(self, name: str, email: str) -> str: ...


def identity_key(name: str, email: str) -> str:
    """Key of a raw identity before alias merging."""
    normalized = normalize_email(email)
    if normalized:
        match = _NOREPLY_RE.match(normalized)
        return match.group(1) if match else normalized
    folded = " ".join(name.split()).casefold()
    return folded or UNKNOWN_IDENTITY


class ExactMatchResolver:
    """Exact match on the identity key, no merging."""

    def resolve(self, name: str, email: str) -> str:
        return identity_key(name, email)


class _UnionFind:
    def __init__(self) -> None:
        self.parent: dict[str, str] = {}

    def find(self, key: str) -> str:
        self.parent.setdefault(key, key)
        root = key
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[key] != root:
            self.parent[key], key = root, self.parent[key]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        # Smallest key wins so the result does not depend on merge order
        if rb < ra:
            ra, rb = rb, ra
        self.parent[rb] = ra


class AliasTable:
    """Explicit alias resolution table.

    Args:
        canonical: Mapping of identity key to canonical identity. Keys not
            present resolve to themselves.
    """

    def __init__(self, canonical: Optional[Mapping[str, str]] = None):
        self._canonical = dict(canonical or {})

    def resolve(self, name: str, email: str) -> str:
        key = identity_key(name, email)
        return self._canonical.get(key, key)

    def __len__(self) -> int:
        return len(self._canonical)

    @property
    def groups(self) -> dict[str, list[str]]:
        """Canonical identity to the sorted keys merged into it."""
        groups: dict[str, list[str]] = {}
        for key, canonical in sorted(self._canonical.items()):
            groups.setdefault(canonical, []).append(key)
        return groups

    @classmethod
    def from_commits(
        cls,
        commits: Iterable,
        aliases: Iterable[tuple[str, str]] = (),
        merge_by_name: bool = False,
    ) -> "AliasTable":
        """Build the table from the identities seen in ``commits``.

        Args:
            commits: Items with ``author_name`` and ``author_email``
            aliases: Pairs of emails to treat as the same developer
            merge_by_name: Also merge keys that share a normalized name
        """
        uf = _UnionFind()
        by_name: dict[str, str] = {}

        for commit in commits:
            key = identity_key(commit.author_name, commit.author_email)
            uf.find(key)
            if merge_by_name:
                name = " ".join(commit.author_name.split()).casefold()
                if name:
                    if name in by_name:
                        uf.union(by_name[name], key)
                    else:
                        by_name[name] = key

        for left, right in aliases:
            uf.union(identity_key("", left), identity_key("", right))

        canonical = {key: uf.find(key) for key in list(uf.parent)}
        merged = sum(1 for key, root in canonical.items() if key != root)
        if merged:
            logger.info("Merged %d developer aliases into %d identities", merged, len(set(canonical.values())))
        return cls({k: v for k, v in canonical.items() if k != v})

    @staticmethod
    def read_mailmap(path: str) -> list[tuple[str, str]]:
        """Read email alias pairs from a ``.mailmap`` file.

        Only lines naming two emails (``<proper> <commit>``) define aliases;
        name-only corrections are ignored.

        Raises:
            ConfigurationError: If the file cannot be read
        """
        try:
            text = Path(path).expanduser().read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read mailmap '{path}': {e}")

        pairs = []
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            emails = _MAILMAP_EMAIL_RE.findall(line)
            if len(emails) >= 2 and emails[0].strip() and emails[1].strip():
                pairs.append((emails[0], emails[1]))
        logger.debug("Read %d aliases from %s", len(pairs), path)
        return pairs
