"""Git worktree manager for per-task agent workspaces.

Each task gets its own branch (``task/<task_id>``) checked out into its own
directory (``<data_root>/worktrees/<task_id>``), so agents never touch the
user's working copy and never see each other's edits.
"""

import logging
import shutil
import threading
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from git.exc import GitCommandError

from ..core.config import BoardConfig
from ..core.models import DiffFile, FileStatus, Worktree
from ..errors import RepositoryError, WorktreeError
from ..git.plumbing import GitPlumbing
from ..utils.error_handling import ErrorContext, log_and_ignore
from ..utils.validators import validate_branch_name, validate_identifier

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "task/"


class WorktreeManager:
    """
    Maps task ids to {branch, directory} and owns the directory lifecycle.

    Mutations for the same task are serialized; different tasks proceed in
    parallel.
    """

    def __init__(self, config: BoardConfig, plumbing: Optional[GitPlumbing] = None):
        self.config = config
        self.root = config.worktrees_root
        self.plumbing = plumbing or GitPlumbing(timeout=config.worktree.git_timeout)
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _task_lock(self, task_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[task_id]

    def path_for(self, task_id: str) -> Path:
        """Deterministic worktree directory for a task."""
        return self.root / validate_identifier(task_id, "task_id")

    def branch_for(self, task_id: str) -> str:
        """Deterministic branch name for a task."""
        return validate_branch_name(BRANCH_PREFIX + validate_identifier(task_id, "task_id"))

    def create(self, task_id: str, source_repository_path: Path) -> Worktree:
        """
        Create a fresh worktree for task_id from the source repository's HEAD.

        HEAD and the branch are checked before anything is touched; only then
        is a directory already at the task's path deleted. The branch must not
        already exist.

        Raises:
            RepositoryError: Source is not a git repository or HEAD is unborn
            WorktreeError: Branch exists, or the directory/worktree could not be created
        """
        worktree_path = self.path_for(task_id)
        branch_name = self.branch_for(task_id)

        with self._task_lock(task_id):
            repo = self.plumbing.open_repository(Path(source_repository_path))
            head = self.plumbing.resolve_head(repo)
            if self.plumbing.branch_exists(repo, branch_name):
                raise WorktreeError(f"Branch '{branch_name}' already exists")

            if worktree_path.exists():
                logger.info(f"Deleting stale worktree directory for task {task_id}: {worktree_path}")
                try:
                    shutil.rmtree(worktree_path)
                except OSError as e:
                    raise WorktreeError(
                        f"Failed to delete existing worktree directory {worktree_path}: {e}"
                    ) from e
                with ErrorContext("pruning worktree entries", raise_on_error=False,
                                  catch=(GitCommandError,), log_level=logging.WARNING):
                    self.plumbing.prune_worktrees(repo)

            try:
                worktree_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise WorktreeError(f"Failed to create worktree root {worktree_path.parent}: {e}") from e

            self.plumbing.create_branch(repo, branch_name, head)
            try:
                self.plumbing.add_worktree(repo, worktree_path, branch_name)
            except WorktreeError:
                # Don't leave an orphan branch that would block the next attempt
                with ErrorContext(f"rolling back branch {branch_name}", raise_on_error=False,
                                  catch=(GitCommandError,), log_level=logging.WARNING):
                    self.plumbing.delete_branch(repo, branch_name)
                raise

        logger.info(f"Created worktree for task {task_id}: {worktree_path} (branch {branch_name})")
        return Worktree(task_id=task_id, branch_name=branch_name, directory_path=worktree_path)

    def remove(self, worktree_path: Path, source_repository_path: Path) -> None:
        """
        Remove a task worktree. Removing a path that does not exist succeeds.

        The directory is deleted first, then git's bookkeeping for it is pruned
        and the task branch is deleted; those two git steps are best-effort.

        Raises:
            WorktreeError: If the directory tree cannot be deleted
        """
        worktree_path = Path(worktree_path)
        task_id = worktree_path.name

        with self._task_lock(task_id):
            if not worktree_path.exists():
                logger.debug(f"Worktree already removed: {worktree_path}")
                return

            try:
                shutil.rmtree(worktree_path)
            except OSError as e:
                raise WorktreeError(f"Failed to delete worktree directory {worktree_path}: {e}") from e

            self._cleanup_git_entries(task_id, Path(source_repository_path))

        logger.info(f"Removed worktree: {worktree_path}")

    def _cleanup_git_entries(self, task_id: str, source_repository_path: Path) -> None:
        try:
            repo = self.plumbing.open_repository(source_repository_path)
        except RepositoryError as e:
            log_and_ignore(e, f"Skipping branch cleanup for task {task_id}", logger_instance=logger)
            return

        try:
            self.plumbing.prune_worktrees(repo)
        except GitCommandError as e:
            log_and_ignore(e, "Failed to prune worktree entries", logger_instance=logger)

        branch_name = BRANCH_PREFIX + task_id
        if not self.plumbing.branch_exists(repo, branch_name):
            return
        try:
            self.plumbing.delete_branch(repo, branch_name)
        except GitCommandError as e:
            log_and_ignore(e, f"Failed to delete branch {branch_name}", logger_instance=logger)

    def list(self, app_data_root: Optional[Path] = None) -> List[str]:
        """Task ids that currently have a worktree directory, sorted."""
        root = (Path(app_data_root) / self.config.worktree.dirname) if app_data_root else self.root
        if not root.is_dir():
            return []
        return sorted(entry.name for entry in root.iterdir() if entry.is_dir())

    def get_diffs(self, worktree_path: Path) -> List[DiffFile]:
        return self.plumbing.get_diffs(Path(worktree_path))

    def get_status(self, worktree_path: Path) -> List[FileStatus]:
        return self.plumbing.status(Path(worktree_path))

    def commit(self, worktree_path: Path, files: List[str], message: str) -> str:
        """Stage the selected files and commit them; returns the commit SHA."""
        worktree_path = Path(worktree_path)
        with self._task_lock(worktree_path.name):
            return self.plumbing.commit_files(worktree_path, files, message)
