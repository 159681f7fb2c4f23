"""Tests for diff_formatter."""

from agent_board.git.diff_formatter import (
    count_changes,
    format_tracked_diffs,
    parse_numstat,
    resolve_block_path,
    split_diff_blocks,
    synthesize_new_file_patch,
    unquote_path,
    untracked_diff_file,
)

TWO_FILE_DIFF = """\
diff --git a/README.md b/README.md
index 1111111..2222222 100644
--- a/README.md
+++ b/README.md
@@ -1,2 +1,3 @@
 # Project
-first line
+first line changed
+second line
diff --git a/old.txt b/old.txt
deleted file mode 100644
index 3333333..0000000
--- a/old.txt
+++ /dev/null
@@ -1 +0,0 @@
-gone
"""


class TestParseNumstat:
    """Tests for parse_numstat."""

    def test_parses_rows(self):
        stats = parse_numstat("2\t1\tREADME.md\n0\t1\told.txt\n")
        assert stats == {"README.md": (2, 1), "old.txt": (0, 1)}

    def test_binary_rows_count_as_zero(self):
        assert parse_numstat("-\t-\timage.png\n") == {"image.png": (0, 0)}

    def test_skips_malformed_rows(self):
        assert parse_numstat("garbage\nx\ty\tz.txt\n\n") == {}

    def test_unquotes_quoted_paths(self):
        assert parse_numstat('1\t0\t"caf\\303\\251.txt"\n') == {"café.txt": (1, 0)}


class TestSplitDiffBlocks:
    """Tests for split_diff_blocks."""

    def test_splits_per_file(self):
        blocks = split_diff_blocks(TWO_FILE_DIFF)
        assert len(blocks) == 2
        assert blocks[0].startswith("diff --git a/README.md b/README.md")
        assert blocks[1].startswith("diff --git a/old.txt b/old.txt")

    def test_blocks_reassemble_to_input(self):
        assert "".join(split_diff_blocks(TWO_FILE_DIFF)) == TWO_FILE_DIFF

    def test_empty_input(self):
        assert split_diff_blocks("") == []


class TestResolveBlockPath:
    """Tests for resolve_block_path."""

    def test_prefers_new_path(self):
        assert resolve_block_path(split_diff_blocks(TWO_FILE_DIFF)[0]) == "README.md"

    def test_falls_back_to_old_path_for_deletions(self):
        assert resolve_block_path(split_diff_blocks(TWO_FILE_DIFF)[1]) == "old.txt"

    def test_mode_only_block_has_no_path(self):
        block = "diff --git a/run.sh b/run.sh\nold mode 100644\nnew mode 100755\n"
        assert resolve_block_path(block) is None

    def test_quoted_markers(self):
        block = (
            'diff --git "a/caf\\303\\251.txt" "b/caf\\303\\251.txt"\n'
            '--- "a/caf\\303\\251.txt"\n'
            '+++ "b/caf\\303\\251.txt"\n'
            "@@ -1 +1,2 @@\n a\n+b\n"
        )
        assert resolve_block_path(block) == "café.txt"

    def test_quoted_old_path_for_deletions(self):
        block = 'diff --git "a/tab\\there" "b/tab\\there"\n--- "a/tab\\there"\n+++ /dev/null\n'
        assert resolve_block_path(block) == "tab\there"


class TestUnquotePath:
    """Tests for unquote_path."""

    def test_plain_path_unchanged(self):
        assert unquote_path("src/app.py") == "src/app.py"

    def test_octal_bytes_decode_as_utf8(self):
        assert unquote_path('"caf\\303\\251.txt"') == "café.txt"

    def test_named_escapes(self):
        assert unquote_path('"a\\"b\\\\c\\n"') == 'a"b\\c\n'


class TestCountChanges:
    """Tests for count_changes."""

    def test_ignores_metadata_lines(self):
        assert count_changes(split_diff_blocks(TWO_FILE_DIFF)[0]) == (2, 1)

    def test_content_that_looks_like_markers(self):
        patch = "@@ -1,2 +1,2 @@\n--- a list item\n-index 3\n+++i;\n+@@ note\n"
        # Inside a hunk every +/- line is content, whatever follows the prefix
        assert count_changes(patch) == (2, 2)

    def test_headers_of_a_later_block_are_not_content(self):
        patch = TWO_FILE_DIFF + "diff --git a/c.txt b/c.txt\n--- a/c.txt\n+++ b/c.txt\n@@ -0,0 +1 @@\n+new\n"
        assert count_changes(patch) == (3, 2)

    def test_no_newline_marker_is_not_counted(self):
        assert count_changes("@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n") == (1, 1)


class TestFormatTrackedDiffs:
    """Tests for format_tracked_diffs."""

    def test_uses_numstat_counts_in_diff_order(self):
        files = format_tracked_diffs(TWO_FILE_DIFF, {"README.md": (2, 1), "old.txt": (0, 1)})
        assert [f.path for f in files] == ["README.md", "old.txt"]
        assert (files[0].added, files[0].removed) == (2, 1)
        assert (files[1].added, files[1].removed) == (0, 1)
        assert files[0].patch.startswith("diff --git ")

    def test_missing_numstat_defaults_to_zero(self):
        files = format_tracked_diffs(TWO_FILE_DIFF, {})
        assert all((f.added, f.removed) == (0, 0) for f in files)

    def test_discards_blocks_without_path(self):
        diff = "diff --git a/run.sh b/run.sh\nold mode 100644\nnew mode 100755\n"
        assert format_tracked_diffs(diff, {}) == []


class TestSynthesizeNewFilePatch:
    """Tests for synthesize_new_file_patch."""

    def test_header_and_body(self):
        patch = synthesize_new_file_patch("notes.txt", "a\nb\nc\n")
        lines = patch.splitlines()
        assert lines[:6] == [
            "diff --git a/notes.txt b/notes.txt",
            "new file mode 100644",
            "index 0000000..0000000",
            "--- /dev/null",
            "+++ b/notes.txt",
            "@@ -0,0 +1,3 @@",
        ]
        assert lines[6:] == ["+a", "+b", "+c"]

    def test_counts_every_content_line_as_added(self):
        content = "one\ntwo\nthree\nfour"
        entry = untracked_diff_file("x.txt", synthesize_new_file_patch("x.txt", content))
        assert (entry.added, entry.removed) == (4, 0)
        assert entry.path == "x.txt"

    def test_empty_file(self):
        patch = synthesize_new_file_patch("empty.txt", "")
        assert "@@ -0,0 +1,0 @@" in patch
        assert count_changes(patch) == (0, 0)

    def test_missing_trailing_newline_is_marked(self):
        patch = synthesize_new_file_patch("x.txt", "one\ntwo")
        assert patch.splitlines()[-2:] == ["+two", "\\ No newline at end of file"]
        assert count_changes(patch) == (2, 0)

    def test_trailing_newline_has_no_marker(self):
        assert "No newline" not in synthesize_new_file_patch("x.txt", "one\n")
