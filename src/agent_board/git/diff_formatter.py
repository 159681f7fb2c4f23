"""Turn raw git diff output into per-file DiffFile records.

Pure text processing: git's own output is the source of truth for formatting
and line classification, so the only logic here is splitting, path lookup and
counting.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..core.models import DiffFile

logger = logging.getLogger(__name__)

DIFF_HEADER = "diff --git "
NO_NEWLINE_MARKER = "\\ No newline at end of file"

_OCTAL_ESCAPE = re.compile(r"[0-7]{1,3}")

_C_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    '"': '"',
    "\\": "\\",
}


def unquote_path(path: str) -> str:
    """
    Undo git's C-style quoting of a path ("caf\\303\\251.txt" -> café.txt).

    Unquoted paths are returned unchanged. Octal escapes are raw bytes and
    are decoded together as UTF-8.
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        octal = _OCTAL_ESCAPE.match(body, i + 1)
        if octal:
            out.append(int(octal.group(), 8) & 0xFF)
            i = octal.end()
        else:
            out.extend(_C_ESCAPES.get(nxt, nxt).encode("utf-8"))
            i += 2
    return out.decode("utf-8", errors="replace")


def parse_numstat(output: str) -> Dict[str, Tuple[int, int]]:
    """
    Parse `git diff --numstat` output into {path: (added, removed)}.

    Binary files report "-" for both counts and map to (0, 0).
    Malformed rows are skipped.
    """
    stats: Dict[str, Tuple[int, int]] = {}
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added_raw, removed_raw = parts[0].strip(), parts[1].strip()
        path = unquote_path("\t".join(parts[2:]))
        try:
            added = int(added_raw) if added_raw != "-" else 0
            removed = int(removed_raw) if removed_raw != "-" else 0
        except ValueError:
            logger.debug(f"Skipping malformed numstat row: {line!r}")
            continue
        stats[path] = (added, removed)
    return stats


def split_diff_blocks(diff_text: str) -> List[str]:
    """Split unified diff output at each `diff --git` line into per-file blocks."""
    blocks: List[str] = []
    current: List[str] = []

    for line in diff_text.splitlines(keepends=True):
        if line.startswith(DIFF_HEADER) and current:
            blocks.append("".join(current))
            current = []
        if current or line.startswith(DIFF_HEADER):
            current.append(line)

    if current:
        blocks.append("".join(current))
    return blocks


def _marker_path(line: str, side: str) -> Optional[str]:
    """
    Path from a `+++`/`---` marker line, or None when it is for another side.

    side is "a" or "b". Handles both `+++ b/path` and the quoted form
    `+++ "b/path"` git uses for unusual characters.
    """
    rest = line[4:].rstrip("\r\n")
    # git appends a tab when the path contains spaces
    if rest.endswith("\t"):
        rest = rest[:-1]
    if rest.startswith('"'):
        rest = unquote_path(rest)
    prefix = f"{side}/"
    if not rest.startswith(prefix):
        return None
    return rest[len(prefix):] or None


def resolve_block_path(block: str) -> Optional[str]:
    """
    Canonical path for one diff block.

    Prefers the `+++ b/<path>` marker; falls back to `--- a/<path>` for
    deletions. Returns None for blocks with neither (e.g. mode-only changes).
    """
    new_path = None
    old_path = None
    for line in block.splitlines():
        if line.startswith("@@"):
            break
        if line.startswith("+++ "):
            new_path = _marker_path(line, "b")
        elif line.startswith("--- "):
            old_path = _marker_path(line, "a")
    return new_path or old_path


def count_changes(patch: str) -> Tuple[int, int]:
    """
    Count added and removed content lines.

    Only lines inside a hunk count: everything between a `diff --git` header
    and the first `@@` of its block is metadata, whatever its prefix.
    """
    added = 0
    removed = 0
    in_hunk = False
    for line in patch.splitlines():
        if line.startswith(DIFF_HEADER):
            in_hunk = False
            continue
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk:
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return added, removed


def format_tracked_diffs(diff_text: str, numstat: Dict[str, Tuple[int, int]]) -> List[DiffFile]:
    """
    Build DiffFile records for tracked changes, in diff order.

    Counts come from the numstat lookup and default to (0, 0) when the path
    has no entry (binary files, for instance).
    """
    files: List[DiffFile] = []
    for block in split_diff_blocks(diff_text):
        path = resolve_block_path(block)
        if path is None:
            logger.debug("Discarding diff block without +++/--- path markers")
            continue
        added, removed = numstat.get(path, (0, 0))
        files.append(DiffFile(path=path, added=added, removed=removed, patch=block))
    return files


def synthesize_new_file_patch(path: str, content: str) -> str:
    """
    Build a "new file" unified diff for content git has never seen.

    Mirrors the shape of `git diff --no-index /dev/null <path>` output,
    including the marker git prints when the last line has no newline.
    """
    lines = content.splitlines()
    header = [
        f"diff --git a/{path} b/{path}",
        "new file mode 100644",
        "index 0000000..0000000",
        "--- /dev/null",
        f"+++ b/{path}",
        f"@@ -0,0 +1,{len(lines)} @@",
    ]
    body = [f"+{line}" for line in lines]
    if content and not content.endswith(("\n", "\r")):
        body.append(NO_NEWLINE_MARKER)
    return "\n".join(header + body) + "\n"


def untracked_diff_file(path: str, patch: str) -> DiffFile:
    """DiffFile for an untracked file, counted from the patch text itself."""
    added, removed = count_changes(patch)
    return DiffFile(path=path, added=added, removed=removed, patch=patch)
