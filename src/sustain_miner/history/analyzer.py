"""Turn raw commits into CommitFacts: per-file change kind and line deltas.

Local commits arrive as unified diff text (``git log -p``) and are parsed
here. Remote commits arrive with per-file tallies from the API and only need
their status mapped. Both paths then go through the optional language
restriction.

A commit whose files are all removed by the restriction is kept with an
empty file list: it still counts as a commit.
"""

import re
from typing import Iterable, Optional

from ..exceptions import MalformedDiffError
from ..logging_config import get_logger
from .languages import allowed_extensions, is_source_file, language_for_path
from .models import ChangeKind, CommitFact, FileChange, RawCommit, RawFileDelta

logger = get_logger(__name__)

# @@ -start[,count] +start[,count] @@ optional section heading
_HUNK_RE = re.compile(r"^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@")

_REMOTE_STATUS = {
    "added": ChangeKind.ADDED,
    "copied": ChangeKind.ADDED,
    "removed": ChangeKind.DELETED,
    "renamed": ChangeKind.RENAMED,
    "modified": ChangeKind.MODIFIED,
    "changed": ChangeKind.MODIFIED,
}

# Extended header lines that carry no information we keep
_IGNORED_HEADERS = (
    "index ",
    "similarity index ",
    "dissimilarity index ",
    "old mode ",
    "new mode ",
    "copy from ",
)


def normalize_email(email: str) -> str:
    """Strip whitespace and angle brackets, then case-fold."""
    return email.strip().strip("<>").strip().casefold()


class ChangeAnalyzer:
    """Classify file changes of a commit and apply the language policy."""

    def __init__(self, restrict_languages: bool = False, extensions: Optional[frozenset] = None):
        self.restrict_languages = restrict_languages
        self.extensions = extensions if extensions is not None else allowed_extensions()

    @classmethod
    def from_config(cls, config) -> "ChangeAnalyzer":
        return cls(
            restrict_languages=config.restrict_languages,
            extensions=allowed_extensions(config.allowed_languages),
        )

    def analyze(self, raw: RawCommit) -> CommitFact:
        """Build the CommitFact for one raw commit.

        Raises:
            MalformedDiffError: If the diff payload cannot be parsed
        """
        if raw.file_deltas is not None:
            changes = [_change_from_delta(raw.hash, d) for d in raw.file_deltas]
        elif raw.patch is not None:
            changes = parse_patch(raw.hash, raw.patch)
        else:
            changes = []

        return CommitFact(
            hash=raw.hash,
            author_name=raw.author_name.strip(),
            author_email=normalize_email(raw.author_email),
            timestamp=raw.timestamp,
            parents=raw.parents,
            files=self.filter_changes(changes),
            message=raw.message,
            url=raw.url,
        )

    def restrict(self, fact: CommitFact) -> CommitFact:
        """Apply the language policy to an already analyzed fact."""
        files = self.filter_changes(fact.files)
        if files == fact.files:
            return fact
        return CommitFact(
            hash=fact.hash,
            author_name=fact.author_name,
            author_email=fact.author_email,
            timestamp=fact.timestamp,
            parents=fact.parents,
            files=files,
            message=fact.message,
            url=fact.url,
        )

    def filter_changes(self, changes: Iterable[FileChange]) -> tuple[FileChange, ...]:
        if not self.restrict_languages:
            return tuple(changes)
        # A rename into or out of a source extension still counts
        return tuple(
            c
            for c in changes
            if is_source_file(c.path, self.extensions) or is_source_file(c.old_path, self.extensions)
        )


def _change_from_delta(commit: str, delta: RawFileDelta) -> FileChange:
    if delta.additions < 0 or delta.deletions < 0:
        raise MalformedDiffError(commit, f"negative line counts for {delta.path}")
    kind = _REMOTE_STATUS.get(delta.status.lower(), ChangeKind.MODIFIED)
    binary = not delta.has_patch and delta.additions == 0 and delta.deletions == 0
    return FileChange(
        path=delta.path,
        kind=kind,
        lines_added=delta.additions,
        lines_removed=delta.deletions,
        language=language_for_path(delta.path),
        old_path=delta.previous_path if kind is ChangeKind.RENAMED else None,
        binary=binary,
    )


class _FileBlock:
    """Mutable state for one ``diff --git`` section while parsing."""

    def __init__(self, old_path: str, new_path: str):
        self.old_path = old_path
        self.new_path = new_path
        self.kind = ChangeKind.MODIFIED
        self.added = 0
        self.removed = 0
        self.binary = False

    def to_change(self) -> FileChange:
        path = self.old_path if self.kind is ChangeKind.DELETED else self.new_path
        return FileChange(
            path=path,
            kind=self.kind,
            lines_added=self.added,
            lines_removed=self.removed,
            language=language_for_path(path),
            old_path=self.old_path if self.kind is ChangeKind.RENAMED else None,
            binary=self.binary,
        )


def parse_patch(commit: str, patch: str) -> list[FileChange]:
    """Parse unified git diff text into FileChanges, in diff order.

    Hunk bodies are consumed by the line counts in their ``@@`` headers, so
    content lines such as ``--- x`` inside a hunk are never mistaken for
    file headers. Only a line feed ends a line; form feeds and lone carriage
    returns are content.

    Raises:
        MalformedDiffError: On content outside a file section, an
            unparseable hunk header, a bad hunk line or a truncated hunk.
    """
    changes: list[FileChange] = []
    block: Optional[_FileBlock] = None
    old_left = new_left = 0
    in_binary_patch = False

    lines = patch.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    for lineno, line in enumerate(lines, 1):
        if old_left > 0 or new_left > 0:
            tag = line[:1]
            if tag in (" ", ""):
                old_left -= 1
                new_left -= 1
            elif tag == "-":
                old_left -= 1
                block.removed += 1
            elif tag == "+":
                new_left -= 1
                block.added += 1
            elif tag == "\\":
                continue
            else:
                raise MalformedDiffError(commit, f"unexpected hunk line {line[:40]!r}", lineno)
            if old_left < 0 or new_left < 0:
                raise MalformedDiffError(commit, "hunk longer than its header", lineno)
            continue

        if line.startswith("diff --git "):
            if block is not None:
                changes.append(block.to_change())
            old_path, new_path = _header_paths(commit, line[len("diff --git ") :], lineno)
            block = _FileBlock(old_path, new_path)
            in_binary_patch = False
            continue

        if in_binary_patch or not line.strip():
            continue

        if block is None:
            raise MalformedDiffError(commit, "content before the first file header", lineno)

        if line.startswith("@@"):
            match = _HUNK_RE.match(line)
            if not match:
                raise MalformedDiffError(commit, f"bad hunk header {line[:40]!r}", lineno)
            old_left = int(match.group(1)) if match.group(1) is not None else 1
            new_left = int(match.group(2)) if match.group(2) is not None else 1
        elif line.startswith("new file mode"):
            block.kind = ChangeKind.ADDED
        elif line.startswith("deleted file mode"):
            block.kind = ChangeKind.DELETED
        elif line.startswith("rename from "):
            block.kind = ChangeKind.RENAMED
            block.old_path = _unquote(line[len("rename from ") :])
        elif line.startswith("rename to "):
            block.kind = ChangeKind.RENAMED
            block.new_path = _unquote(line[len("rename to ") :])
        elif line.startswith("copy to "):
            block.kind = ChangeKind.ADDED
            block.new_path = _unquote(line[len("copy to ") :])
        elif line.startswith("--- "):
            path = _strip_side(line[4:], "a/")
            if path is not None:
                block.old_path = path
        elif line.startswith("+++ "):
            path = _strip_side(line[4:], "b/")
            if path is not None:
                block.new_path = path
        elif line.startswith("Binary files ") and line.endswith(" differ"):
            block.binary = True
        elif line.startswith("GIT binary patch"):
            block.binary = True
            in_binary_patch = True
        elif line.startswith(_IGNORED_HEADERS) or line.startswith("\\"):
            continue
        else:
            raise MalformedDiffError(commit, f"unexpected line {line[:40]!r}", lineno)

    if old_left > 0 or new_left > 0:
        raise MalformedDiffError(commit, "diff ends inside a hunk")
    if block is not None:
        changes.append(block.to_change())

    logger.debug("Parsed %d file changes for %s", len(changes), commit[:12])
    return changes


def _header_paths(commit: str, rest: str, lineno: int) -> tuple[str, str]:
    """Split ``a/<old> b/<new>`` from a ``diff --git`` line."""
    if rest.startswith('"'):
        match = re.match(r'^"((?:[^"\\]|\\.)*)" (.*)$', rest)
        if not match:
            raise MalformedDiffError(commit, "bad quoted file header", lineno)
        old, new = _unquote(f'"{match.group(1)}"'), _unquote(match.group(2))
        return old[2:], new[2:]

    if not rest.startswith("a/"):
        raise MalformedDiffError(commit, f"bad file header {rest[:40]!r}", lineno)

    # Unrenamed paths: "a/X b/X", which also handles spaces inside X
    n, odd = divmod(len(rest) - 5, 2)
    if not odd and n > 0 and rest[2 : 2 + n] == rest[5 + n :] and rest[2 + n : 5 + n] == " b/":
        return rest[2 : 2 + n], rest[5 + n :]

    split = rest.rfind(" b/")
    if split < 0:
        raise MalformedDiffError(commit, f"bad file header {rest[:40]!r}", lineno)
    new = rest[split + 1 :]
    new = _unquote(new) if new.startswith('"') else new
    return rest[2:split], new[2:]


def _strip_side(value: str, prefix: str) -> Optional[str]:
    """Path from a ``---``/``+++`` line, None for /dev/null."""
    value = value.rstrip("\n").split("\t", 1)[0]
    value = _unquote(value)
    if value == "/dev/null":
        return None
    if value.startswith(prefix):
        return value[len(prefix) :]
    return value


_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\", "a": "\a", "b": "\b", "f": "\f", "v": "\v", "r": "\r"}


def _unquote(value: str) -> str:
    """Undo git's C-style path quoting (octal escapes are UTF-8 bytes)."""
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    body = value[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        octal = body[i + 1 : i + 4]
        if len(octal) == 3 and all(c in "01234567" for c in octal):
            out.append(int(octal, 8) & 0xFF)
            i += 4
        else:
            out.extend(_ESCAPES.get(nxt, nxt).encode("utf-8"))
            i += 2
    return out.decode("utf-8", errors="replace")
