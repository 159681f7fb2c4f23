"""Shared test fixtures: throwaway git repositories and a scriptable fake agent CLI."""

import logging
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import List

import pytest

from agent_board.agents.base import InvocationPlan
from agent_board.agents.claude_backend import ClaudeCodeBackend
from agent_board.agents.registry import BackendRegistry
from agent_board.core.config import AgentConfig, BoardConfig, clear_config_cache
from agent_board.utils.rich_logging import ROOT_LOGGER_NAME


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout


def init_repo(path: Path) -> Path:
    """Repository with one commit containing README.md (two lines)."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "config", "user.email", "dev@example.com")
    git(path, "config", "user.name", "Dev")
    git(path, "config", "commit.gpgsign", "false")
    (path / "README.md").write_text("# Project\nfirst line\n")
    git(path, "add", "README.md")
    git(path, "commit", "-q", "-m", "initial")
    return path


@pytest.fixture(autouse=True)
def restore_package_logger():
    """CLI invocations reconfigure the package logger; undo that so caplog keeps working."""
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    level, propagate = package_logger.level, package_logger.propagate
    yield
    for handler in package_logger.handlers[:]:
        handler.close()
        package_logger.removeHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = propagate


@pytest.fixture
def git_repo(tmp_path):
    return init_repo(tmp_path / "repo")


@pytest.fixture
def board_config(tmp_path):
    clear_config_cache()
    return BoardConfig(
        data_root=tmp_path / "board",
        agents=AgentConfig(kill_grace_seconds=1.0),
    )


FAKE_AGENT_SCRIPT = textwrap.dedent('''
    import json
    import sys
    import time

    prompt = sys.argv[1]
    exit_code = int(sys.argv[2])
    delay = float(sys.argv[3])

    def emit(obj):
        print(json.dumps(obj), flush=True)

    emit({"type": "system", "subtype": "init", "session_id": "sess-1"})
    if delay:
        time.sleep(delay)
    emit({"type": "assistant", "message": {"content": [{"type": "text", "text": "echo: " + prompt}]}})
    print("{\\"type\\": \\"unknown_event\\"}", flush=True)
    emit({"type": "result", "subtype": "success", "session_id": "sess-1",
          "total_cost_usd": 0.0123, "num_turns": 2})
    if exit_code:
        print("boom", file=sys.stderr, flush=True)
    sys.exit(exit_code)
''')


class FakeAgentBackend(ClaudeCodeBackend):
    """Claude-format parser driven by a local Python script instead of the real CLI."""

    name = "fake"
    aliases = ("fake-alias",)

    def __init__(self, script: Path, exit_code: int = 0, delay: float = 0.0):
        super().__init__(executable=sys.executable)
        self.script = script
        self.exit_code = exit_code
        self.delay = delay
        self.prompts: List[str] = []

    def build_invocation(self, prompt: str, worktree_path: str) -> InvocationPlan:
        self.prompts.append(prompt)
        return InvocationPlan(
            command=sys.executable,
            args=[str(self.script), prompt, str(self.exit_code), str(self.delay)],
            cwd=str(worktree_path),
        )


@pytest.fixture
def fake_agent_script(tmp_path):
    script = tmp_path / "fake_agent.py"
    script.write_text(FAKE_AGENT_SCRIPT)
    return script


@pytest.fixture
def fake_backend(fake_agent_script):
    return FakeAgentBackend(fake_agent_script)


@pytest.fixture
def backends(fake_backend):
    return BackendRegistry([fake_backend])


@pytest.fixture
def agent_cwd(tmp_path):
    path = tmp_path / "worktree"
    path.mkdir()
    return path
