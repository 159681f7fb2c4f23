"""Tests for configuration loading."""

import os

import pytest
from pydantic import ValidationError

from agent_board.core.config import (
    AgentConfig,
    BoardConfig,
    LoggingConfig,
    WorktreeSettings,
    clear_config_cache,
    default_config_path,
    load_config,
)


@pytest.fixture(autouse=True)
def fresh_cache():
    clear_config_cache()
    yield
    clear_config_cache()


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.agents.default_profile == "claude"
        assert config.agents.context_message_limit == 20
        assert config.agents.timeout_seconds is None
        assert config.worktree.dirname == "worktrees"

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "agent-board.yaml"
        path.write_text(
            f"data_root: {tmp_path / 'data'}\n"
            "agents:\n"
            "  default_profile: codex\n"
            "  timeout_seconds: 600\n"
            "  log_output: true\n"
            "logging:\n"
            "  level: debug\n"
        )

        config = load_config(path)

        assert config.data_root == (tmp_path / "data").resolve()
        assert config.worktrees_root == (tmp_path / "data").resolve() / "worktrees"
        assert config.logs_dir == (tmp_path / "data").resolve() / "logs"
        assert config.agents.default_profile == "codex"
        assert config.agents.timeout_seconds == 600
        assert config.agents.log_output is True
        assert config.logging.level == "DEBUG"

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_CLAUDE_BIN", "/opt/bin/claude")
        path = tmp_path / "agent-board.yaml"
        path.write_text("agents:\n  claude_executable: ${MY_CLAUDE_BIN}\n  codex_executable: ${UNSET_VAR_XYZ}\n")

        config = load_config(path)

        assert config.agents.claude_executable == "/opt/bin/claude"
        assert config.agents.codex_executable == "${UNSET_VAR_XYZ}"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "agent-board.yaml"
        path.write_text("")
        assert load_config(path).agents.default_profile == "claude"

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "agent-board.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_cached_until_file_changes(self, tmp_path):
        path = tmp_path / "agent-board.yaml"
        path.write_text("agents:\n  default_profile: codex\n")

        first = load_config(path)
        assert load_config(path) is first

        path.write_text("agents:\n  default_profile: claude\n")
        later = path.stat().st_mtime + 10
        os.utime(path, (later, later))

        assert load_config(path).agents.default_profile == "claude"

    def test_default_path_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AGENT_BOARD_CONFIG", str(tmp_path / "custom.yaml"))
        assert default_config_path() == tmp_path / "custom.yaml"


class TestValidation:
    """Field validators."""

    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    @pytest.mark.parametrize("kwargs", [
        {"timeout_seconds": 0},
        {"timeout_seconds": -5},
        {"context_message_limit": 0},
    ])
    def test_bad_agent_settings(self, kwargs):
        with pytest.raises(ValidationError):
            AgentConfig(**kwargs)

    def test_unlimited_context(self):
        assert AgentConfig(context_message_limit=None).context_message_limit is None

    def test_bad_git_timeout(self):
        with pytest.raises(ValidationError):
            WorktreeSettings(git_timeout=0)

    def test_data_root_is_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = BoardConfig(data_root="~/boards")
        assert config.data_root == (tmp_path / "boards").resolve()
