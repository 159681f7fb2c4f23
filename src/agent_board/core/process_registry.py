"""In-memory registry of agent processes and their message logs."""

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, List, Optional

from ..errors import ProcessNotFoundError
from .models import (
    AgentMessage,
    AgentProcess,
    ProcessStatus,
    ProcessSummary,
    Sender,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fields callers may patch through update(); status goes through set_status()
_UPDATABLE_FIELDS = frozenset({
    "pid",
    "exit_code",
    "session_id",
    "total_cost_usd",
    "num_turns",
})


class ProcessRegistry:
    """
    Thread-safe table of AgentProcess records keyed by process id.

    A single lock guards the whole map and is held only for one read or write.
    Reads hand out deep copies so callers can never mutate registry state.
    """

    def __init__(self):
        self._processes: "OrderedDict[str, AgentProcess]" = OrderedDict()
        self._lock = threading.Lock()

    def create(
        self,
        task_id: str,
        initial_user_message: str,
        *,
        profile: str,
        worktree_path: str,
        previous_process_id: Optional[str] = None,
    ) -> str:
        """Register a running process whose log opens with the user's message."""
        process = AgentProcess(
            id=new_id(),
            task_id=task_id,
            profile=profile,
            worktree_path=str(worktree_path),
            previous_process_id=previous_process_id,
            messages=[AgentMessage(sender=Sender.USER, content=initial_user_message)],
        )
        with self._lock:
            self._processes[process.id] = process

        logger.debug(f"Registered process {process.id} for task {task_id} ({profile})")
        return process.id

    def get(self, process_id: str) -> Optional[AgentProcess]:
        with self._lock:
            process = self._processes.get(process_id)
            return process.model_copy(deep=True) if process else None

    def get_by_task(self, task_id: str) -> List[AgentProcess]:
        with self._lock:
            return [
                p.model_copy(deep=True)
                for p in self._processes.values()
                if p.task_id == task_id
            ]

    def list_summaries(self) -> List[ProcessSummary]:
        with self._lock:
            return [
                ProcessSummary(
                    id=p.id,
                    task_id=p.task_id,
                    status=p.status,
                    start_time=p.start_time,
                    message_count=len(p.messages),
                    profile=p.profile,
                )
                for p in self._processes.values()
            ]

    def _require(self, process_id: str) -> AgentProcess:
        # Caller must hold self._lock
        process = self._processes.get(process_id)
        if process is None:
            raise ProcessNotFoundError(process_id)
        return process

    def append_message(self, process_id: str, message: AgentMessage) -> None:
        with self._lock:
            self._require(process_id).messages.append(message.model_copy(deep=True))

    def append_raw_output(self, process_id: str, line: str) -> None:
        with self._lock:
            self._require(process_id).raw_output.append(line)

    def set_status(
        self,
        process_id: str,
        status: ProcessStatus,
        end_time: Optional[datetime] = None,
    ) -> bool:
        """
        Move a process to a new status.

        Terminal statuses are final: a terminal process never goes back to
        running and never switches to a different terminal status.

        Returns:
            True if the status changed, False if the transition was ignored
        """
        with self._lock:
            process = self._require(process_id)
            current = process.status

            if current.is_terminal:
                if status != current:
                    logger.debug(
                        f"Ignoring status change {current.value} -> {status.value} "
                        f"for finished process {process_id}"
                    )
                return False
            if status == current:
                return False

            process.status = status
            process.end_time = end_time or utcnow()

        logger.info(f"Process {process_id} {current.value} -> {status.value}")
        return True

    def kill(self, process_id: str) -> bool:
        """Record a process as killed. Signalling the child is the orchestrator's job."""
        return self.set_status(process_id, ProcessStatus.KILLED)

    def update(self, process_id: str, **fields: Any) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update process fields: {', '.join(sorted(unknown))}")
        with self._lock:
            process = self._require(process_id)
            for name, value in fields.items():
                setattr(process, name, value)

    def get_chain(self, process_id: str) -> List[AgentProcess]:
        """The continuation chain ending at process_id, oldest first."""
        chain: List[AgentProcess] = []
        seen = set()
        with self._lock:
            current = self._require(process_id)
            while current is not None and current.id not in seen:
                seen.add(current.id)
                chain.append(current.model_copy(deep=True))
                if current.previous_process_id is None:
                    break
                current = self._processes.get(current.previous_process_id)
        chain.reverse()
        return chain

    def transcript(self, process_id: str, limit: Optional[int] = None) -> str:
        """
        Render the message log as "sender: content" lines.

        Args:
            process_id: Process whose log to render
            limit: Only the last `limit` messages, or all when None

        Raises:
            ProcessNotFoundError: If process_id is unknown
        """
        with self._lock:
            messages = list(self._require(process_id).messages)
        if limit is not None:
            messages = messages[-limit:]
        return "\n".join(m.transcript_line() for m in messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)
