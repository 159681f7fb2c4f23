"""agent-board: run coding-agent CLIs in isolated per-task git worktrees."""

__version__ = "0.1.0"
