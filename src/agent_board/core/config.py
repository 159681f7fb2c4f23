"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("agent-board.yaml")


class WorktreeSettings(BaseModel):
    """Worktree and git plumbing settings."""
    # Directory under data_root holding one checkout per task
    dirname: str = "worktrees"
    git_timeout: int = 60

    @field_validator('git_timeout')
    @classmethod
    def validate_git_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"git_timeout must be >= 1, got {v}")
        return v


class AgentConfig(BaseModel):
    """Agent CLI settings."""
    claude_executable: str = "claude"
    codex_executable: str = "codex"
    default_profile: str = "claude"

    # None = no limit; a hung agent is killed and marked failed once exceeded
    timeout_seconds: Optional[float] = None
    # Seconds between SIGTERM and SIGKILL when killing an agent
    kill_grace_seconds: float = 5.0
    # Messages from the previous process folded into a continuation prompt
    context_message_limit: Optional[int] = 20
    # Mirror agent stdout/stderr into <data_root>/logs/agent-<process_id>.log
    log_output: bool = False

    @field_validator('timeout_seconds')
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {v}")
        return v

    @field_validator('context_message_limit')
    @classmethod
    def validate_context_limit(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"context_message_limit must be >= 1, got {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging settings."""
    level: str = "INFO"
    to_file: bool = False

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return v


class BoardConfig(BaseSettings):
    """Main agent-board configuration."""
    model_config = SettingsConfigDict(env_prefix="AGENT_BOARD_")

    data_root: Path = Field(default=Path("~/.agent-board"))
    worktree: WorktreeSettings = Field(default_factory=WorktreeSettings)
    agents: AgentConfig = Field(default_factory=AgentConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('data_root')
    @classmethod
    def expand_data_root(cls, v: Path) -> Path:
        return Path(v).expanduser().resolve()

    @property
    def worktrees_root(self) -> Path:
        return self.data_root / self.worktree.dirname

    @property
    def logs_dir(self) -> Path:
        return self.data_root / "logs"

    @property
    def documents_dir(self) -> Path:
        return self.data_root / "data"


# Module-level cache: resolved path -> (config, mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def _load_config_from_file(config_path: Path) -> BoardConfig:
    """Internal loader for board config (no caching)."""
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    data = _expand_env_vars(data)
    return BoardConfig(**data)


def default_config_path() -> Path:
    """Config path from AGENT_BOARD_CONFIG, or ./agent-board.yaml."""
    return Path(os.environ.get("AGENT_BOARD_CONFIG", str(DEFAULT_CONFIG_PATH)))


def load_config(config_path: Optional[Path] = None) -> BoardConfig:
    """Load board configuration from YAML file.

    Uses mtime-based caching, so repeated loads of an unchanged file are free.
    """
    config_path = Path(config_path) if config_path else default_config_path()
    if not config_path.exists():
        logger.warning(
            f"Config file not found: {config_path}. Using default configuration."
        )
        return BoardConfig()

    result = _get_cached_or_load(config_path.resolve(), _load_config_from_file)
    return result if result is not None else BoardConfig()


def clear_config_cache() -> None:
    """Clear the module-level config cache. Useful for tests."""
    _config_cache.clear()


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ${VAR} values in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "agents.claude_executable")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used."
            )
            return data
        return value
    return data
