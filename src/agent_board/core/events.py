"""In-process event channel for process and worktree changes."""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from .models import AgentMessage, ProcessStatus, utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    AGENT_PROCESS_STATUS = "agent_process_status"
    AGENT_MESSAGE_UPDATE = "agent_message_update"
    WORKTREE_CREATED = "worktree_created"
    WORKTREE_REMOVED = "worktree_removed"


class BoardEvent(BaseModel):
    """One notification broadcast to subscribers."""
    type: EventType
    process_id: Optional[str] = None
    task_id: Optional[str] = None
    status: Optional[ProcessStatus] = None
    message: Optional[AgentMessage] = None
    path: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


Subscriber = Callable[[BoardEvent], None]


class EventBus:
    """Synchronous fan-out to registered callables."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: BoardEvent) -> None:
        """Deliver event to every subscriber; a failing subscriber doesn't stop the rest."""
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed on {event.type.value}: {e}", exc_info=True)

    def process_status(self, process_id: str, task_id: str, status: ProcessStatus) -> None:
        self.publish(BoardEvent(
            type=EventType.AGENT_PROCESS_STATUS,
            process_id=process_id,
            task_id=task_id,
            status=status,
        ))

    def message_update(self, process_id: str, task_id: str, message: AgentMessage) -> None:
        self.publish(BoardEvent(
            type=EventType.AGENT_MESSAGE_UPDATE,
            process_id=process_id,
            task_id=task_id,
            message=message,
        ))
