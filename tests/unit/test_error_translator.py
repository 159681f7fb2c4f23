"""Tests for ErrorTranslator and the error hierarchy."""

import pytest

from agent_board.errors import (
    AgentSpawnError,
    BoardError,
    ErrorTranslator,
    ProcessNotFoundError,
    RepositoryError,
    UnknownProfileError,
    UserFriendlyError,
    WorktreeError,
)


@pytest.fixture
def translator():
    return ErrorTranslator()


class TestTranslate:
    """Pattern-based translation to user-friendly messages."""

    def test_not_a_repository(self, translator):
        result = translator.translate(RepositoryError("Not a git repository: /tmp/x"))

        assert isinstance(result, UserFriendlyError)
        assert result.title == "Not a git repository"
        assert any("git init" in action for action in result.actions)

    def test_existing_branch(self, translator):
        result = translator.translate(WorktreeError("Branch 'task/t1' already exists"))
        assert result.title == "Branch already exists"

    def test_missing_agent_cli(self, translator):
        error = AgentSpawnError("claude CLI not found: 'claude' is not on PATH", "p1")
        assert translator.translate(error).title == "Agent CLI unavailable"

    def test_missing_git(self, translator):
        error = FileNotFoundError(2, "No such file or directory", "git")
        assert translator.translate(error).title == "git is not installed"

    def test_case_insensitive(self, translator):
        assert translator.translate(OSError("PERMISSION DENIED")).title == "Permission denied"

    def test_board_error_keeps_its_message(self, translator):
        result = translator.translate(ProcessNotFoundError("abc"))

        assert result.title == "Operation failed"
        assert result.explanation == "Process not found: abc"
        assert result.show_technical is False

    def test_unknown_error(self, translator):
        result = translator.translate(RuntimeError("something odd\nwith details"))

        assert result.title == "Unexpected error"
        assert result.explanation == "something odd"
        assert result.show_technical is True


class TestShortMessage:
    """One-line messages for operation results."""

    def test_board_errors_pass_through(self, translator):
        error = UnknownProfileError("gpt", ["claude", "codex"])
        assert translator.short_message(error) == "Unknown agent profile 'gpt'. Known profiles: claude, codex"

    def test_value_errors_pass_through(self, translator):
        assert translator.short_message(ValueError("Invalid task_id: a b")) == "Invalid task_id: a b"

    def test_other_errors_are_translated(self, translator):
        assert translator.short_message(PermissionError("Permission denied: '/data'")) == (
            "Permission denied: The filesystem refused the operation."
        )


class TestFormatForCli:
    def test_includes_actions_and_technical_details(self, translator):
        output = translator.format_for_cli(translator.translate(RuntimeError("kaboom")))

        assert "[bold red]Unexpected error[/]" in output
        assert "How to fix:" in output
        assert "1. Check logs for details" in output
        assert "kaboom" in output


class TestHierarchy:
    @pytest.mark.parametrize("error", [
        RepositoryError("x"),
        WorktreeError("x"),
        ProcessNotFoundError("p"),
        UnknownProfileError("p", []),
        AgentSpawnError("x", "p"),
    ])
    def test_all_are_board_errors(self, error):
        assert isinstance(error, BoardError)

    def test_unknown_profile_with_no_profiles(self):
        assert str(UnknownProfileError("x", [])).endswith("Known profiles: none")
