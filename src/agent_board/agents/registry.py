"""Profile name -> agent backend lookup."""

import logging
from typing import Dict, List, Optional

from ..core.config import AgentConfig
from ..errors import UnknownProfileError
from .base import AgentBackend
from .claude_backend import ClaudeCodeBackend
from .codex_backend import CodexBackend

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Resolves profile names and aliases to backend instances."""

    def __init__(self, backends: Optional[List[AgentBackend]] = None):
        self._backends: Dict[str, AgentBackend] = {}
        self._profiles: List[str] = []
        for backend in backends or []:
            self.register(backend)

    def register(self, backend: AgentBackend) -> None:
        """Register backend under its name and aliases; later registrations win."""
        if not backend.name:
            raise ValueError(f"{type(backend).__name__} has no profile name")
        for key in (backend.name,) + tuple(backend.aliases):
            key = key.lower()
            if key in self._backends and self._backends[key] is not backend:
                logger.debug(f"Replacing backend for profile '{key}'")
            self._backends[key] = backend
        if backend.name not in self._profiles:
            self._profiles.append(backend.name)

    def get(self, profile: str) -> AgentBackend:
        """
        Backend for a profile name or alias (case-insensitive).

        Raises:
            UnknownProfileError: If nothing is registered under profile
        """
        backend = self._backends.get((profile or "").strip().lower())
        if backend is None:
            raise UnknownProfileError(profile, self.profiles())
        return backend

    def profiles(self) -> List[str]:
        """Primary profile names, in registration order."""
        return list(self._profiles)

    def __contains__(self, profile: str) -> bool:
        return (profile or "").strip().lower() in self._backends


def default_backends(config: Optional[AgentConfig] = None) -> BackendRegistry:
    """Registry with the built-in Claude Code and Codex backends."""
    config = config or AgentConfig()
    return BackendRegistry([
        ClaudeCodeBackend(executable=config.claude_executable),
        CodexBackend(executable=config.codex_executable),
    ])
