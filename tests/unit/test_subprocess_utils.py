"""Tests for subprocess_utils."""

from pathlib import Path

import pytest

from agent_board.utils.subprocess_utils import (
    SubprocessError,
    check_command_exists,
    run_command,
    run_git_command,
)


def test_subprocess_error_includes_context():
    """SubprocessError keeps the command context in attributes and message."""
    error = SubprocessError(
        cmd="git status",
        returncode=1,
        stderr="error message",
        stdout="output",
        cwd=Path("/tmp"),
        timed_out=True,
    )

    assert error.cmd == "git status"
    assert error.returncode == 1
    assert error.stdout == "output"
    assert error.cwd == Path("/tmp")
    assert error.timed_out is True
    assert "/tmp" in str(error)
    assert "timed out" in str(error)


def test_short_message_prefers_first_stderr_line():
    error = SubprocessError(cmd="git worktree add", returncode=128, stderr="fatal: bad ref\nhint: x")
    assert error.short_message == "fatal: bad ref"

    quiet = SubprocessError(cmd="git diff", returncode=2, stderr="")
    assert quiet.short_message == "Command failed with exit code 2: git diff"


def test_run_command_success():
    result = run_command(["echo", "hello"], check=True)
    assert result.returncode == 0
    assert "hello" in result.stdout


def test_run_command_failure_raises():
    with pytest.raises(SubprocessError) as exc_info:
        run_command(["false"], check=True)

    assert exc_info.value.returncode != 0


def test_run_command_failure_no_check():
    result = run_command(["false"], check=False)
    assert result.returncode != 0


def test_run_command_accepts_listed_returncodes():
    """Exit codes in ok_returncodes count as success."""
    result = run_command(["false"], ok_returncodes=(0, 1))
    assert result.returncode == 1


def test_run_command_timeout():
    with pytest.raises(SubprocessError) as exc_info:
        run_command(["sleep", "10"], check=True, timeout=1)

    assert exc_info.value.timed_out is True


def test_run_command_with_cwd(tmp_path):
    (tmp_path / "test.txt").write_text("content")

    result = run_command(["ls"], cwd=tmp_path, check=True)
    assert "test.txt" in result.stdout


def test_run_git_command_success(tmp_path):
    run_command(["git", "init"], cwd=tmp_path, check=True)

    result = run_git_command(["status"], cwd=tmp_path, check=True)
    assert result.returncode == 0


def test_run_git_command_flexible_timeout(tmp_path):
    run_command(["git", "init"], cwd=tmp_path, check=True)

    result = run_git_command(["status"], cwd=tmp_path, timeout=None)
    assert result.returncode == 0


def test_run_git_command_outside_repository(tmp_path):
    with pytest.raises(SubprocessError) as exc_info:
        run_git_command(["rev-parse", "HEAD"], cwd=tmp_path)

    assert exc_info.value.returncode != 0
    assert exc_info.value.cwd == tmp_path


def test_check_command_exists():
    assert check_command_exists("git") is True
    assert check_command_exists("nonexistent_command_12345") is False
