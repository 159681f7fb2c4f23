"""Error types and user-facing error translation."""

from .exceptions import (
    AgentSpawnError,
    BoardError,
    ProcessNotFoundError,
    RepositoryError,
    UnknownProfileError,
    WorktreeError,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "AgentSpawnError",
    "BoardError",
    "ErrorTranslator",
    "ProcessNotFoundError",
    "RepositoryError",
    "UnknownProfileError",
    "UserFriendlyError",
    "WorktreeError",
]
