"""Tests for change analysis: diff parsing, remote deltas and language restriction."""

from datetime import datetime, timezone

import pytest

from sustain_miner.exceptions import MalformedDiffError
from sustain_miner.history.analyzer import ChangeAnalyzer, normalize_email, parse_patch
from sustain_miner.history.languages import allowed_extensions
from sustain_miner.history.models import ChangeKind, RawCommit, RawFileDelta

MODIFY = """\
diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 line1
-line2
+line2b
+line3
 line4
"""

ADD = """\
diff --git a/README.md b/README.md
new file mode 100644
index 0000000..e69de29
--- /dev/null
+++ b/README.md
@@ -0,0 +1,2 @@
+hello
+world
"""

DELETE = """\
diff --git a/old.c b/old.c
deleted file mode 100644
index abcdef0..0000000
--- a/old.c
+++ /dev/null
@@ -1 +0,0 @@
-int x;
"""

RENAME = """\
diff --git a/lib/a.py b/lib/b.py
similarity index 90%
rename from lib/a.py
rename to lib/b.py
index 1111111..2222222 100644
--- a/lib/a.py
+++ b/lib/b.py
@@ -1 +1 @@
-x = 1
+x = 2
"""

BINARY = """\
diff --git a/logo.png b/logo.png
new file mode 100644
index 0000000..abcdef0
Binary files /dev/null and b/logo.png differ
"""


class TestParsePatch:
    """Test unified diff parsing."""

    def test_modification_counts_lines(self):
        changes = parse_patch("c1", MODIFY)
        assert len(changes) == 1
        change = changes[0]
        assert change.path == "src/app.py"
        assert change.kind is ChangeKind.MODIFIED
        assert change.lines_added == 2
        assert change.lines_removed == 1
        assert change.language == "python"

    def test_added_file(self):
        (change,) = parse_patch("c1", ADD)
        assert change.kind is ChangeKind.ADDED
        assert change.path == "README.md"
        assert (change.lines_added, change.lines_removed) == (2, 0)

    def test_deleted_file_keeps_old_path(self):
        (change,) = parse_patch("c1", DELETE)
        assert change.kind is ChangeKind.DELETED
        assert change.path == "old.c"
        assert (change.lines_added, change.lines_removed) == (0, 1)

    def test_rename(self):
        (change,) = parse_patch("c1", RENAME)
        assert change.kind is ChangeKind.RENAMED
        assert change.path == "lib/b.py"
        assert change.old_path == "lib/a.py"

    def test_binary_file_registers_with_zero_lines(self):
        (change,) = parse_patch("c1", BINARY)
        assert change.binary is True
        assert change.kind is ChangeKind.ADDED
        assert (change.lines_added, change.lines_removed) == (0, 0)

    def test_multiple_files_in_diff_order(self):
        changes = parse_patch("c1", MODIFY + ADD + DELETE)
        assert [c.path for c in changes] == ["src/app.py", "README.md", "old.c"]

    def test_header_lookalike_inside_hunk_is_content(self):
        patch = (
            "diff --git a/notes.txt b/notes.txt\n"
            "--- a/notes.txt\n"
            "+++ b/notes.txt\n"
            "@@ -1,2 +1,1 @@\n"
            "--- not a header\n"
            " keep\n"
        )
        (change,) = parse_patch("c1", patch)
        assert change.path == "notes.txt"
        assert change.lines_removed == 1

    def test_path_with_spaces(self):
        patch = (
            "diff --git a/my file.txt b/my file.txt\n"
            "--- a/my file.txt\n"
            "+++ b/my file.txt\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        (change,) = parse_patch("c1", patch)
        assert change.path == "my file.txt"

    def test_quoted_non_ascii_path(self):
        patch = (
            'diff --git "a/t\\303\\251st.py" "b/t\\303\\251st.py"\n'
            '--- "a/t\\303\\251st.py"\n'
            '+++ "b/t\\303\\251st.py"\n'
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        (change,) = parse_patch("c1", patch)
        assert change.path == "tést.py"

    def test_no_newline_marker_is_ignored(self):
        patch = (
            "diff --git a/x.txt b/x.txt\n"
            "--- a/x.txt\n"
            "+++ b/x.txt\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "\\ No newline at end of file\n"
            "+b\n"
            "\\ No newline at end of file\n"
        )
        (change,) = parse_patch("c1", patch)
        assert (change.lines_added, change.lines_removed) == (1, 1)

    def test_form_feed_inside_line_is_content(self):
        patch = (
            "diff --git a/a.c b/a.c\n"
            "--- a/a.c\n"
            "+++ b/a.c\n"
            "@@ -1 +1,2 @@\n"
            " int x;\n"
            "+int a;\x0c/* page */\n"
        )
        (change,) = parse_patch("c1", patch)
        assert (change.lines_added, change.lines_removed) == (1, 0)

    def test_lone_carriage_return_is_content(self):
        patch = (
            "diff --git a/m.txt b/m.txt\n"
            "--- a/m.txt\n"
            "+++ b/m.txt\n"
            "@@ -1 +1 @@\n"
            "-one\n"
            "+one\rtwo\n"
        )
        (change,) = parse_patch("c1", patch)
        assert (change.lines_added, change.lines_removed) == (1, 1)

    def test_line_separator_characters_are_content(self):
        patch = (
            "diff --git a/u.txt b/u.txt\n"
            "--- a/u.txt\n"
            "+++ b/u.txt\n"
            "@@ -0,0 +1 @@\n"
            "+a\x1cb\x1dc\x1ed\x85e\u2028f\n"
        )
        (change,) = parse_patch("c1", patch)
        assert change.lines_added == 1

    def test_empty_patch(self):
        assert parse_patch("c1", "") == []


class TestMalformedPatch:
    """Malformed diffs raise MalformedDiffError."""

    def test_bad_hunk_header(self):
        patch = "diff --git a/x b/x\n@@ bogus @@\n"
        with pytest.raises(MalformedDiffError) as exc:
            parse_patch("deadbeef", patch)
        assert exc.value.commit == "deadbeef"
        assert exc.value.recoverable is True

    def test_truncated_hunk(self):
        patch = "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1,3 +1,3 @@\n context\n"
        with pytest.raises(MalformedDiffError):
            parse_patch("c1", patch)

    def test_content_before_header(self):
        with pytest.raises(MalformedDiffError):
            parse_patch("c1", "+orphan line\n")

    def test_garbage_inside_hunk(self):
        patch = "diff --git a/x b/x\n@@ -1,2 +1,2 @@\n a\n*garbage\n"
        with pytest.raises(MalformedDiffError):
            parse_patch("c1", patch)


class TestChangeAnalyzer:
    """Test CommitFact construction and the language policy."""

    def _raw(self, patch=None, deltas=None):
        return RawCommit(
            hash="a" * 40,
            author_name="  Alice ",
            author_email=" <Alice@Example.COM> ",
            timestamp=datetime(2022, 1, 1, tzinfo=timezone.utc),
            patch=patch,
            file_deltas=deltas,
        )

    def test_identity_is_normalized(self):
        fact = ChangeAnalyzer().analyze(self._raw(MODIFY))
        assert fact.author_name == "Alice"
        assert fact.author_email == "alice@example.com"

    def test_totals(self):
        fact = ChangeAnalyzer().analyze(self._raw(MODIFY + ADD))
        assert fact.lines_added == 4
        assert fact.lines_removed == 1

    def test_restriction_drops_non_source_files(self):
        analyzer = ChangeAnalyzer(restrict_languages=True)
        fact = analyzer.analyze(self._raw(MODIFY + ADD + BINARY))
        assert [f.path for f in fact.files] == ["src/app.py"]

    def test_restriction_keeps_commit_with_no_files_left(self):
        analyzer = ChangeAnalyzer(restrict_languages=True)
        fact = analyzer.analyze(self._raw(ADD))
        assert fact.files == ()
        assert fact.hash == "a" * 40

    def test_restriction_is_idempotent(self):
        analyzer = ChangeAnalyzer(restrict_languages=True)
        once = analyzer.analyze(self._raw(MODIFY + ADD + DELETE + RENAME))
        twice = analyzer.restrict(once)
        assert twice.files == once.files

    def test_restriction_with_named_languages(self):
        analyzer = ChangeAnalyzer(restrict_languages=True, extensions=allowed_extensions(["c"]))
        fact = analyzer.analyze(self._raw(MODIFY + DELETE))
        assert [f.path for f in fact.files] == ["old.c"]

    def test_no_restriction_keeps_everything(self):
        fact = ChangeAnalyzer().analyze(self._raw(MODIFY + ADD + BINARY))
        assert len(fact.files) == 3

    def test_remote_deltas(self):
        deltas = (
            RawFileDelta(path="a.py", status="added", additions=5),
            RawFileDelta(path="b.py", status="removed", deletions=2),
            RawFileDelta(path="d.py", status="renamed", additions=1, deletions=1, previous_path="c.py"),
            RawFileDelta(path="img.png", status="added", has_patch=False),
        )
        fact = ChangeAnalyzer().analyze(self._raw(deltas=deltas))
        kinds = {f.path: f.kind for f in fact.files}
        assert kinds == {
            "a.py": ChangeKind.ADDED,
            "b.py": ChangeKind.DELETED,
            "d.py": ChangeKind.RENAMED,
            "img.png": ChangeKind.ADDED,
        }
        renamed = next(f for f in fact.files if f.path == "d.py")
        assert renamed.old_path == "c.py"
        binary = next(f for f in fact.files if f.path == "img.png")
        assert binary.binary is True

    def test_negative_remote_counts_are_malformed(self):
        deltas = (RawFileDelta(path="a.py", status="modified", additions=-1),)
        with pytest.raises(MalformedDiffError):
            ChangeAnalyzer().analyze(self._raw(deltas=deltas))


class TestNormalizeEmail:
    def test_strips_and_casefolds(self):
        assert normalize_email(" <Alice@Example.COM> ") == "alice@example.com"

    def test_empty(self):
        assert normalize_email("") == ""
