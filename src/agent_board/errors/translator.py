"""Translate technical errors to short user-facing messages."""

import re
from dataclasses import dataclass, field
from typing import List

from .exceptions import BoardError


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: Exception
    title: str
    explanation: str
    actions: List[str] = field(default_factory=list)
    show_technical: bool = False

    @property
    def short_message(self) -> str:
        return f"{self.title}: {self.explanation}"


class ErrorTranslator:
    """Translate technical errors to user-friendly messages."""

    ERROR_PATTERNS = {
        r"No such file or directory: '?git'?|git.*(command )?not found": {
            "title": "git is not installed",
            "explanation": "The git executable could not be found on PATH.",
            "actions": ["Install git and make sure it is on PATH"],
        },
        r"not a git repository|InvalidGitRepositoryError|NoSuchPathError": {
            "title": "Not a git repository",
            "explanation": "The project path does not point at a git repository.",
            "actions": [
                "Check the project path",
                "Run 'git init' in the project directory",
            ],
        },
        r"already exists": {
            "title": "Branch already exists",
            "explanation": "A branch for this task already exists in the repository.",
            "actions": [
                "Remove the old worktree for this task first",
                "Or delete the branch: git branch -D task/<task_id>",
            ],
        },
        r"CLI not found|AgentSpawnError": {
            "title": "Agent CLI unavailable",
            "explanation": "The agent executable could not be started.",
            "actions": [
                "Install the agent CLI and make sure it is on PATH",
                "Or set the executable path in the agents section of the config",
            ],
        },
        r"Permission denied|PermissionError": {
            "title": "Permission denied",
            "explanation": "The filesystem refused the operation.",
            "actions": ["Check ownership and permissions of the data directory"],
        },
    }

    def translate(self, error: Exception) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        full_error = f"{type(error).__name__}: {error}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=translation["actions"],
                )

        # Our own errors already carry a readable message
        if isinstance(error, BoardError):
            return UserFriendlyError(
                original_error=error,
                title="Operation failed",
                explanation=str(error),
            )

        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=str(error).splitlines()[0] if str(error) else type(error).__name__,
            actions=["Check logs for details"],
            show_technical=True,
        )

    def short_message(self, error: Exception) -> str:
        """One-line description suitable for an API or UI response."""
        if isinstance(error, (BoardError, ValueError)):
            return str(error)
        return self.translate(error).short_message

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Format error for CLI display (rich markup)."""
        output = f"[bold red]{friendly_error.title}[/]\n\n"
        output += f"{friendly_error.explanation}\n"

        if friendly_error.actions:
            output += "\n[bold]How to fix:[/]\n"
            for i, action in enumerate(friendly_error.actions, 1):
                output += f"  {i}. {action}\n"

        if friendly_error.show_technical:
            output += f"\n[dim]Technical details:[/]\n[dim]{friendly_error.original_error}[/]"

        return output
