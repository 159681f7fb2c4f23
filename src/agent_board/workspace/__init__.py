"""Per-task git worktrees."""

from .worktree_manager import BRANCH_PREFIX, WorktreeManager

__all__ = ["BRANCH_PREFIX", "WorktreeManager"]
