"""Tests for board data models."""

import pytest
from pydantic import ValidationError

from agent_board.core.models import (
    AgentMessage,
    DiffFile,
    ProcessStatus,
    Sender,
    Task,
    TaskStatus,
    new_id,
    sender_for_type,
)


class TestSenderForType:
    @pytest.mark.parametrize("message_type,expected", [
        ("init", Sender.SYSTEM),
        ("result", Sender.SYSTEM),
        ("error", Sender.SYSTEM),
        ("token_count", Sender.SYSTEM),
        ("tool_result", Sender.USER),
        ("text", Sender.AGENT),
        ("file_edit", Sender.AGENT),
        ("command_start", Sender.AGENT),
    ])
    def test_mapping(self, message_type, expected):
        assert sender_for_type(message_type) == expected

    def test_explicit_sender_wins(self):
        message = AgentMessage.from_agent("prompt", "text", sender=Sender.USER)
        assert message.sender == Sender.USER

    def test_transcript_line(self):
        assert AgentMessage(sender=Sender.AGENT, content="done").transcript_line() == "agent: done"


class TestModels:
    def test_ids_unique(self):
        assert len({new_id() for _ in range(1000)}) == 1000

    def test_terminal_statuses(self):
        assert [s for s in ProcessStatus if s.is_terminal] == [
            ProcessStatus.COMPLETED, ProcessStatus.FAILED, ProcessStatus.KILLED,
        ]

    def test_diff_counts_non_negative(self):
        with pytest.raises(ValidationError):
            DiffFile(path="a", added=-1, patch="")

    def test_task_round_trips_through_json(self):
        task = Task(project_id="p1", title="Fix", status=TaskStatus.IN_REVIEW)
        restored = Task(**task.model_dump(mode="json"))

        assert restored == task
        assert restored.status is TaskStatus.IN_REVIEW
