"""Git plumbing and diff formatting."""

from .diff_formatter import (
    count_changes,
    format_tracked_diffs,
    parse_numstat,
    resolve_block_path,
    split_diff_blocks,
    synthesize_new_file_patch,
)
from .plumbing import GitPlumbing

__all__ = [
    "GitPlumbing",
    "count_changes",
    "format_tracked_diffs",
    "parse_numstat",
    "resolve_block_path",
    "split_diff_blocks",
    "synthesize_new_file_patch",
]
