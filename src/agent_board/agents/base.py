"""Base agent backend interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.models import AgentMessage

# One decoded stdout event, or the raw text of a line that wasn't JSON
StreamItem = Union[Dict[str, Any], str]


@dataclass
class InvocationPlan:
    """Everything needed to launch one agent CLI run."""
    command: str
    args: List[str]
    cwd: str
    stdin_data: Optional[str] = None  # Written to stdin, then stdin is closed
    env: Dict[str, str] = field(default_factory=dict)  # Merged over os.environ

    @property
    def argv(self) -> List[str]:
        return [self.command] + self.args


class AgentBackend(ABC):
    """
    One external coding-agent CLI.

    A backend knows how to build the command line for a prompt and how to
    turn each line the CLI prints into AgentMessages. Adding a CLI means
    registering another backend instance, nothing else.
    """

    #: Primary profile name
    name: str = ""
    #: Extra profile names that resolve to this backend
    aliases: Tuple[str, ...] = ()

    @abstractmethod
    def build_invocation(self, prompt: str, worktree_path: str) -> InvocationPlan:
        """Build the command that runs prompt inside worktree_path."""

    @abstractmethod
    def parse_line(self, item: StreamItem) -> List[AgentMessage]:
        """
        Parse one stdout item into zero or more messages.

        Args:
            item: A decoded JSON object, or the stripped text of a non-JSON line

        Returns:
            Messages in output order; empty when the item carries nothing to show
        """

    def extract_stats(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """
        Session bookkeeping carried by an event (session_id, total_cost_usd,
        num_turns). Backends that report none return {}.
        """
        return {}
