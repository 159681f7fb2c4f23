"""Data models for worktrees, diffs and agent processes."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Collision-free identifier for processes and messages."""
    return uuid.uuid4().hex


class Worktree(BaseModel):
    """A task's isolated checkout."""
    task_id: str
    branch_name: str
    directory_path: Path


class DiffFile(BaseModel):
    """Unified diff for exactly one file plus its line counts."""
    path: str
    added: int = Field(default=0, ge=0)
    removed: int = Field(default=0, ge=0)
    patch: str


class FileStatus(BaseModel):
    """One row of `git status --porcelain`."""
    path: str
    status: str


class ProcessStatus(str, Enum):
    """Agent process lifecycle status."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        return self is not ProcessStatus.RUNNING


class Sender(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


# Message types that are bookkeeping from the CLI rather than agent output
SYSTEM_MESSAGE_TYPES = frozenset({
    "system",
    "init",
    "config",
    "result",
    "error",
    "task_started",
    "token_count",
    "system_status",
    "json_data",
})

USER_MESSAGE_TYPES = frozenset({"tool_result"})


def sender_for_type(message_type: str) -> Sender:
    """Derive the message sender from its type."""
    if message_type in SYSTEM_MESSAGE_TYPES:
        return Sender.SYSTEM
    if message_type in USER_MESSAGE_TYPES:
        return Sender.USER
    return Sender.AGENT


class AgentMessage(BaseModel):
    """One entry in an agent process's conversation log."""
    id: str = Field(default_factory=new_id)
    sender: Sender
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    message_type: str = "text"
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_agent(
        cls,
        content: str,
        message_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        sender: Optional[Sender] = None,
    ) -> "AgentMessage":
        """Build a message parsed from agent output; sender follows message_type unless given."""
        return cls(
            sender=sender or sender_for_type(message_type),
            content=content,
            message_type=message_type,
            metadata=metadata,
        )

    def transcript_line(self) -> str:
        return f"{self.sender.value}: {self.content}"


class AgentProcess(BaseModel):
    """One spawned agent invocation and everything it produced."""
    id: str
    task_id: str
    status: ProcessStatus = ProcessStatus.RUNNING
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    messages: List[AgentMessage] = Field(default_factory=list)
    raw_output: List[str] = Field(default_factory=list)
    profile: str
    worktree_path: str
    previous_process_id: Optional[str] = None
    # Lightweight reference to the live child; the handle itself lives in the orchestrator
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    session_id: Optional[str] = None
    total_cost_usd: Optional[float] = None
    num_turns: Optional[int] = None


class ProcessSummary(BaseModel):
    """Cheap listing row for an agent process."""
    id: str
    task_id: str
    status: ProcessStatus
    start_time: datetime
    message_count: int
    profile: str


class TaskStatus(str, Enum):
    """Board column a task sits in."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    CANCELLED = "cancelled"


class Project(BaseModel):
    """A git repository tasks are worked on in."""
    id: str = Field(default_factory=new_id)
    name: str
    project_path: str
    created_at: datetime = Field(default_factory=utcnow)


class Task(BaseModel):
    """A unit of work delegated to an agent."""
    id: str = Field(default_factory=new_id)
    project_id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    created_at: datetime = Field(default_factory=utcnow)
    worktree_path: Optional[str] = None
    profile: str = "claude"
