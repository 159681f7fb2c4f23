"""Agent CLI backends."""

from .base import AgentBackend, InvocationPlan, StreamItem
from .claude_backend import ClaudeCodeBackend
from .codex_backend import CodexBackend
from .registry import BackendRegistry, default_backends

__all__ = [
    "AgentBackend",
    "BackendRegistry",
    "ClaudeCodeBackend",
    "CodexBackend",
    "InvocationPlan",
    "StreamItem",
    "default_backends",
]
