"""Claude Code CLI backend (stream-json output)."""

import json
import logging
from typing import Any, Dict, List

from ..core.models import AgentMessage, Sender
from .base import AgentBackend, InvocationPlan, StreamItem

logger = logging.getLogger(__name__)

ALLOWED_TOOLS = ("Read", "Write", "Edit", "MultiEdit", "Bash")

_FILE_READ_TOOLS = frozenset({"Read"})
_FILE_EDIT_TOOLS = frozenset({"Edit", "Write", "MultiEdit"})


def _tool_message_type(tool_name: str) -> str:
    if tool_name in _FILE_READ_TOOLS:
        return "file_read"
    if tool_name in _FILE_EDIT_TOOLS:
        return "file_edit"
    return "tool_call"


def _content_blocks(event: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Dict blocks of event["message"]["content"]; anything malformed yields none."""
    message = event.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def _number(value: Any, cast, default):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def _tool_result_text(content: Any) -> str:
    """tool_result content is a string or a list of {type: text} blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        joined = "\n".join(p for p in parts if p)
        if joined:
            return joined
    return "Tool executed"


class ClaudeCodeBackend(AgentBackend):
    """Runs `claude -p` with line-delimited JSON output."""

    name = "claude"
    aliases = ("claude-code",)

    def __init__(self, executable: str = "claude"):
        self.executable = executable

    def build_invocation(self, prompt: str, worktree_path: str) -> InvocationPlan:
        args = [
            "-p", prompt,
            "--output-format", "stream-json",  # One JSON event per line
            "--verbose",  # Required by the CLI for stream-json in print mode
            "--permission-mode", "acceptEdits",
            "--dangerously-skip-permissions",
            "--allowedTools", ",".join(ALLOWED_TOOLS),
            "--add-dir", str(worktree_path),
        ]
        return InvocationPlan(command=self.executable, args=args, cwd=str(worktree_path))

    def parse_line(self, item: StreamItem) -> List[AgentMessage]:
        if isinstance(item, str):
            return self._parse_text(item)

        event_type = item.get("type")
        if event_type == "system":
            subtype = item.get("subtype") or "init"
            session_id = item.get("session_id", "unknown")
            return [AgentMessage.from_agent(
                f"Claude Code session initialized ({session_id})",
                subtype,
                metadata=item,
                sender=Sender.SYSTEM,
            )]
        if event_type == "assistant":
            return self._parse_assistant(item)
        if event_type == "user":
            return self._parse_tool_results(item)
        if event_type == "result":
            subtype = item.get("subtype", "success")
            cost = _number(item.get("total_cost_usd") or 0.0, float, 0.0)
            turns = _number(item.get("num_turns") or 0, int, 0)
            return [AgentMessage.from_agent(
                f"Session completed: {subtype} (${cost:.4f}, {turns} turns)",
                "result",
                metadata=item,
            )]

        logger.debug(f"Unhandled Claude event type: {event_type}")
        return []

    def _parse_text(self, text: str) -> List[AgentMessage]:
        text = text.strip()
        if not text:
            return []
        if text.startswith(("Error:", "Warning:")):
            return [AgentMessage.from_agent(text, "error")]
        return [AgentMessage.from_agent(text, "text")]

    def _parse_assistant(self, event: Dict[str, Any]) -> List[AgentMessage]:
        messages: List[AgentMessage] = []
        for block in _content_blocks(event):
            block_type = block.get("type")
            if block_type == "text" and block.get("text"):
                messages.append(AgentMessage.from_agent(block["text"], "text", metadata=event))
            elif block_type == "tool_use":
                tool_name = block.get("name", "unknown")
                tool_input = json.dumps(block.get("input"), ensure_ascii=False)
                messages.append(AgentMessage.from_agent(
                    f"Using tool: {tool_name} - {tool_input}",
                    _tool_message_type(tool_name),
                    metadata=event,
                ))
        return messages

    def _parse_tool_results(self, event: Dict[str, Any]) -> List[AgentMessage]:
        messages: List[AgentMessage] = []
        for block in _content_blocks(event):
            if block.get("type") != "tool_result":
                continue
            message_type = "error" if block.get("is_error") else "tool_result"
            messages.append(AgentMessage.from_agent(
                _tool_result_text(block.get("content")),
                message_type,
                metadata=event,
            ))
        return messages

    def extract_stats(self, item: Dict[str, Any]) -> Dict[str, Any]:
        stats: Dict[str, Any] = {}
        if item.get("type") in ("system", "result") and item.get("session_id"):
            stats["session_id"] = item["session_id"]
        if item.get("type") == "result":
            cost = _number(item.get("total_cost_usd"), float, None)
            if cost is not None:
                stats["total_cost_usd"] = cost
            turns = _number(item.get("num_turns"), int, None)
            if turns is not None:
                stats["num_turns"] = turns
        return stats
