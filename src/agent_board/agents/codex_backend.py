"""Codex CLI backend (`codex exec --json`)."""

import json
import logging
from typing import Any, Dict, List

from ..core.models import AgentMessage, Sender
from ..git.diff_formatter import count_changes
from .base import AgentBackend, InvocationPlan, StreamItem

logger = logging.getLogger(__name__)

# High-volume events with nothing worth showing
_SKIPPED_EVENTS = frozenset({
    "agent_reasoning_section_break",
    "exec_command_output_delta",
    "exec_command_output",
    "exec_command_stderr",
})

_FILE_READ_TOOLS = frozenset({"read_file", "read"})
_FILE_EDIT_TOOLS = frozenset({"edit_file", "write_file", "edit", "write"})


def _tool_message_type(tool_name: str) -> str:
    if tool_name in _FILE_READ_TOOLS:
        return "file_read"
    if tool_name in _FILE_EDIT_TOOLS:
        return "file_edit"
    return "tool_call"


def _is_internal_log(text: str) -> bool:
    """Tracing lines the codex binary writes alongside its JSON events."""
    has_level = any(level in text for level in ("INFO", "DEBUG", "WARN"))
    return has_level and ("codex_core" in text or "codex_exec" in text)


class CodexBackend(AgentBackend):
    """Runs `codex exec` with the prompt on stdin."""

    name = "codex"
    aliases = ("chat-codex", "chatgpt-codex")

    def __init__(self, executable: str = "codex"):
        self.executable = executable

    def build_invocation(self, prompt: str, worktree_path: str) -> InvocationPlan:
        args = [
            "exec",
            "--json",
            "--skip-git-repo-check",  # Linked worktrees confuse codex's repo detection
            "--dangerously-bypass-approvals-and-sandbox",
            "--sandbox", "danger-full-access",
        ]
        return InvocationPlan(
            command=self.executable,
            args=args,
            cwd=str(worktree_path),
            stdin_data=prompt,
        )

    def parse_line(self, item: StreamItem) -> List[AgentMessage]:
        if isinstance(item, str):
            return self._parse_text(item)

        if any(key in item for key in ("workdir", "sandbox", "approval")):
            return [AgentMessage.from_agent(
                f"Codex session initialized (workdir: {item.get('workdir', 'unknown')}, "
                f"sandbox: {item.get('sandbox', 'unknown')}, "
                f"approval: {item.get('approval', 'unknown')})",
                "config",
                metadata=item,
            )]

        if isinstance(item.get("prompt"), str):
            return [AgentMessage.from_agent(
                item["prompt"], "text", metadata=item, sender=Sender.USER
            )]

        msg = item.get("msg")
        if "id" in item and isinstance(msg, dict):
            message = self._parse_event(str(item["id"]), msg, item)
            return [message] if message else []

        return [AgentMessage.from_agent(
            f"Raw Codex data: {json.dumps(item, ensure_ascii=False)}",
            "json_data",
            metadata=item,
        )]

    def _parse_text(self, text: str) -> List[AgentMessage]:
        text = text.strip()
        if not text or _is_internal_log(text):
            return []
        if "Shutting down" in text or "interrupt received" in text:
            return [AgentMessage.from_agent(text, "system_status")]
        return [AgentMessage.from_agent(text, "text")]

    def _parse_event(self, event_id: str, msg: Dict[str, Any], raw: Dict[str, Any]):
        msg_type = msg.get("type") or ""
        if not isinstance(msg_type, str):
            logger.debug(f"Skipping Codex event with non-string type: {msg_type!r}")
            return None

        if msg_type in _SKIPPED_EVENTS:
            return None

        if msg_type == "task_started":
            context_window = msg.get("model_context_window", 0)
            return AgentMessage.from_agent(
                f"Task started (ID: {event_id}, context window: {context_window})",
                "task_started",
                metadata=raw,
            )

        if msg_type == "agent_reasoning":
            text = msg.get("text") or ""
            return AgentMessage.from_agent(text, "agent_reasoning", metadata=raw) if text else None

        if msg_type == "agent_message":
            return AgentMessage.from_agent(msg.get("message") or "", "agent_message", metadata=raw)

        if msg_type == "token_count":
            input_tokens = msg.get("input_tokens") or 0
            output_tokens = msg.get("output_tokens") or 0
            total_tokens = msg.get("total_tokens") or 0
            if not (input_tokens or output_tokens or total_tokens):
                return None
            return AgentMessage.from_agent(
                f"Token usage: {input_tokens} input, {output_tokens} output, {total_tokens} total",
                "token_count",
                metadata=raw,
            )

        if msg_type == "tool_use":
            tool_name = msg.get("tool") or "unknown"
            tool_input = json.dumps(msg.get("input"), ensure_ascii=False)
            return AgentMessage.from_agent(
                f"Using tool: {tool_name} - {tool_input}",
                _tool_message_type(tool_name),
                metadata=raw,
            )

        if msg_type == "tool_result":
            content = msg.get("content")
            if not isinstance(content, str):
                content = "Tool executed"
            return AgentMessage.from_agent(
                content, "error" if msg.get("is_error") else "tool_result", metadata=raw
            )

        if msg_type == "patch_apply_begin":
            changes = msg.get("changes") or {}
            approval = "auto-approved" if msg.get("auto_approved") else "pending approval"
            return AgentMessage.from_agent(
                f"Starting file operation ({len(changes)} files) - {approval}",
                "file_edit_start",
                metadata=raw,
            )

        if msg_type == "patch_apply_end":
            if msg.get("success"):
                content = f"File operation completed: {(msg.get('stdout') or '').strip()}"
            else:
                content = f"File operation failed: {(msg.get('stderr') or '').strip()}"
            return AgentMessage.from_agent(content, "file_edit_end", metadata=raw)

        if msg_type == "turn_diff":
            unified_diff = msg.get("unified_diff")
            return self._turn_diff_message(unified_diff if isinstance(unified_diff, str) else "", raw)

        if msg_type == "exec_command_begin":
            command = " ".join(str(part) for part in msg.get("command") or []) or "unknown command"
            return AgentMessage.from_agent(
                f"Executing: {command}",
                "command_start",
                metadata={"call_id": msg.get("call_id", "unknown"), "command": command, "original": raw},
            )

        if msg_type == "exec_command_end":
            exit_code = msg.get("exit_code", -1)
            outcome = "completed" if exit_code == 0 else "failed"
            return AgentMessage.from_agent(
                f"Command {outcome} (exit code: {exit_code})",
                "command_end",
                metadata={"call_id": msg.get("call_id", "unknown"), "exit_code": exit_code, "original": raw},
            )

        if "error" in msg_type or "fail" in msg_type:
            return AgentMessage.from_agent(
                f"Codex event: {msg_type} (ID: {event_id})",
                msg_type,
                metadata=raw,
                sender=Sender.SYSTEM,
            )

        logger.debug(f"Skipping Codex event: {msg_type}")
        return None

    def _turn_diff_message(self, unified_diff: str, raw: Dict[str, Any]) -> AgentMessage:
        file_name = "unknown file"
        for line in unified_diff.splitlines():
            if line.startswith("+++ b/"):
                file_name = line[len("+++ b/"):]
                break
            if line.startswith("+++ "):
                file_name = line[len("+++ "):].rsplit("/", 1)[-1]
                break

        added, removed = count_changes(unified_diff)
        header = f"Modified {file_name} (+{added} -{removed} lines)"
        body = unified_diff.strip()
        content = f"{header}\n\n{body}" if body else header
        return AgentMessage.from_agent(content, "file_diff", metadata=raw)
