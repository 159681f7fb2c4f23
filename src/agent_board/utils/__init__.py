"""Shared utility functions for agent-board."""

from .atomic_io import atomic_write_text
from .error_handling import ErrorContext, log_and_ignore
from .process_utils import kill_process_tree
from .rich_logging import BoardLogFormatter, ContextLogger, setup_logging
from .stream_parser import decode_stream_line, split_json_objects
from .subprocess_utils import (
    SubprocessError,
    check_command_exists,
    run_command,
    run_git_command,
)
from .validators import validate_branch_name, validate_identifier

__all__ = [
    # Atomic I/O
    "atomic_write_text",
    # Error handling
    "ErrorContext",
    "log_and_ignore",
    # Process management
    "kill_process_tree",
    # Logging
    "BoardLogFormatter",
    "ContextLogger",
    "setup_logging",
    # Stream parsing
    "decode_stream_line",
    "split_json_objects",
    # Subprocess utilities
    "SubprocessError",
    "check_command_exists",
    "run_command",
    "run_git_command",
    # Validators
    "validate_branch_name",
    "validate_identifier",
]
