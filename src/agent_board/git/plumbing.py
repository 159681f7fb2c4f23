"""Git operations used by the worktree manager and diff retrieval.

Read-only diff plumbing shells out through run_git_command so the exact flags
stay visible; repository mutations (branches, worktree add/prune) go through
GitPython.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from git import Repo
from git.exc import BadName, GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git.objects import Commit

from ..core.models import DiffFile, FileStatus
from ..errors import RepositoryError, WorktreeError
from ..utils.subprocess_utils import SubprocessError, run_git_command
from . import diff_formatter

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 60

# Print non-ASCII paths verbatim instead of as C-quoted octal escapes
UNQUOTED_PATHS = ["-c", "core.quotepath=off"]


class GitPlumbing:
    """Thin adapter over git for one process; stateless apart from the timeout."""

    def __init__(self, timeout: int = DEFAULT_GIT_TIMEOUT):
        self.timeout = timeout

    # -- repository mutations (GitPython) ---------------------------------

    def open_repository(self, path: Path) -> Repo:
        """Open the repository at path. Raises RepositoryError when it is not one."""
        try:
            return Repo(str(path))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise RepositoryError(f"Not a git repository: {path}") from e

    def resolve_head(self, repo: Repo) -> Commit:
        """Commit HEAD points at. Raises RepositoryError for an unborn HEAD."""
        try:
            return repo.head.commit
        except (ValueError, BadName) as e:
            raise RepositoryError(
                f"Cannot resolve HEAD in {repo.working_dir}: repository has no commits"
            ) from e

    def branch_exists(self, repo: Repo, branch_name: str) -> bool:
        return branch_name in [head.name for head in repo.heads]

    def create_branch(self, repo: Repo, branch_name: str, commit: Commit) -> None:
        """Create branch_name at commit. An existing branch is an error."""
        if self.branch_exists(repo, branch_name):
            raise WorktreeError(f"Branch '{branch_name}' already exists")
        try:
            repo.create_head(branch_name, commit)
        except (GitCommandError, OSError) as e:
            raise WorktreeError(f"Failed to create branch '{branch_name}': {e}") from e

    def delete_branch(self, repo: Repo, branch_name: str) -> None:
        """Force-delete branch_name. Raises GitCommandError on failure."""
        repo.delete_head(branch_name, force=True)

    def add_worktree(self, repo: Repo, worktree_path: Path, branch_name: str) -> None:
        """Check out an existing branch into a new linked worktree."""
        try:
            repo.git.worktree("add", str(worktree_path), branch_name)
        except GitCommandError as e:
            raise WorktreeError(
                f"Failed to add worktree at {worktree_path}: {e.stderr.strip() if e.stderr else e}"
            ) from e

    def prune_worktrees(self, repo: Repo) -> None:
        """Drop git's bookkeeping for worktrees whose directories are gone."""
        repo.git.worktree("prune")

    # -- preconditions ----------------------------------------------------

    def ensure_work_tree(self, worktree_path: Path) -> None:
        """Raise RepositoryError unless worktree_path is an existing git work tree."""
        if not worktree_path.is_dir():
            raise RepositoryError(f"Worktree path does not exist: {worktree_path}")
        result = run_git_command(
            ["rev-parse", "--is-inside-work-tree"],
            cwd=worktree_path,
            check=False,
            timeout=self.timeout,
        )
        if result.returncode != 0 or result.stdout.strip() != "true":
            raise RepositoryError(f"Not a git work tree: {worktree_path}")

    # -- tolerant diff reads ----------------------------------------------

    def _read(self, args: List[str], cwd: Path, ok_returncodes: Tuple[int, ...] = (0,)) -> str:
        """Run a read-only git subcommand; failures are logged and yield ''."""
        try:
            result = run_git_command(
                UNQUOTED_PATHS + args,
                cwd=cwd,
                timeout=self.timeout,
                ok_returncodes=ok_returncodes,
            )
        except SubprocessError as e:
            logger.warning(f"git {args[0]} failed in {cwd}: {e.short_message}")
            return ""
        return result.stdout

    def numstat(self, worktree_path: Path) -> str:
        return self._read(["diff", "--numstat"], worktree_path)

    def unified_diff(self, worktree_path: Path) -> str:
        return self._read(["diff", "--unified=3", "--no-color"], worktree_path)

    def untracked_files(self, worktree_path: Path) -> List[str]:
        output = self._read(["ls-files", "-z", "--others", "--exclude-standard"], worktree_path)
        return [entry for entry in output.split("\0") if entry]

    def untracked_patch(self, worktree_path: Path, relative_path: str) -> str:
        # Exit code 1 from --no-index means "differences found"
        return self._read(
            ["diff", "--no-index", "--unified=3", "--no-color", os.devnull, relative_path],
            worktree_path,
            ok_returncodes=(0, 1),
        )

    def get_diffs(self, worktree_path: Path) -> List[DiffFile]:
        """
        Structured per-file diff of a worktree against its index.

        Tracked changes come first, in git's diff order, followed by untracked
        files in listing order.

        Raises:
            RepositoryError: If worktree_path is missing or not a git work tree
        """
        worktree_path = Path(worktree_path)
        self.ensure_work_tree(worktree_path)

        stats = diff_formatter.parse_numstat(self.numstat(worktree_path))
        files = diff_formatter.format_tracked_diffs(self.unified_diff(worktree_path), stats)

        for relative_path in self.untracked_files(worktree_path):
            entry = self._untracked_entry(worktree_path, relative_path)
            if entry is not None:
                files.append(entry)

        logger.debug(f"Computed diff for {worktree_path}: {len(files)} file(s)")
        return files

    def _untracked_entry(self, worktree_path: Path, relative_path: str) -> Optional[DiffFile]:
        try:
            content = (worktree_path / relative_path).read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as e:
            logger.debug(f"Skipping untracked file {relative_path}: {e}")
            return None

        patch = self.untracked_patch(worktree_path, relative_path)
        if not patch.strip():
            patch = diff_formatter.synthesize_new_file_patch(relative_path, content)
        return diff_formatter.untracked_diff_file(relative_path, patch)

    # -- status & commit --------------------------------------------------

    def status(self, worktree_path: Path) -> List[FileStatus]:
        """Parse `git status --porcelain` into FileStatus rows."""
        worktree_path = Path(worktree_path)
        self.ensure_work_tree(worktree_path)
        result = run_git_command(
            UNQUOTED_PATHS + ["status", "--porcelain"], cwd=worktree_path, timeout=self.timeout
        )

        statuses: List[FileStatus] = []
        for line in result.stdout.splitlines():
            if len(line) < 4:
                continue
            code = line[:2].strip()
            path = line[3:]
            # Renames are reported as "old -> new"
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            statuses.append(FileStatus(path=diff_formatter.unquote_path(path), status=code))
        return statuses

    def commit_files(self, worktree_path: Path, files: List[str], message: str) -> str:
        """
        Stage exactly the given files and commit them.

        Returns:
            The new commit's full SHA

        Raises:
            ValueError: If files is empty or message is blank
            SubprocessError: If git add or git commit fails
        """
        if not files:
            raise ValueError("No files selected for commit")
        if not message.strip():
            raise ValueError("Commit message cannot be empty")

        worktree_path = Path(worktree_path)
        self.ensure_work_tree(worktree_path)

        run_git_command(["add", "--"] + list(files), cwd=worktree_path, timeout=self.timeout)
        run_git_command(["commit", "-m", message], cwd=worktree_path, timeout=self.timeout)
        result = run_git_command(["rev-parse", "HEAD"], cwd=worktree_path, timeout=self.timeout)
        sha = result.stdout.strip()
        logger.info(f"Committed {len(files)} file(s) in {worktree_path}: {sha[:8]}")
        return sha
