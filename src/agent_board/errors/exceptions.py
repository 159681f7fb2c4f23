"""Exception hierarchy for agent-board operations."""


class BoardError(Exception):
    """Base class for all agent-board failures."""


class RepositoryError(BoardError):
    """Source path is not a usable git repository (missing, no HEAD, not a work tree)."""


class WorktreeError(BoardError):
    """Creating or removing a task worktree failed."""


class ProcessNotFoundError(BoardError):
    """No agent process is registered under the given id."""

    def __init__(self, process_id: str):
        self.process_id = process_id
        super().__init__(f"Process not found: {process_id}")


class UnknownProfileError(BoardError):
    """No agent backend is registered for the requested profile."""

    def __init__(self, profile: str, known: list[str]):
        self.profile = profile
        self.known = known
        super().__init__(
            f"Unknown agent profile '{profile}'. Known profiles: {', '.join(known) or 'none'}"
        )


class AgentSpawnError(BoardError):
    """The external agent CLI could not be started."""

    def __init__(self, message: str, process_id: str):
        self.process_id = process_id
        super().__init__(message)
