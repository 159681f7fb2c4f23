"""Log formatting with task/process context."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "agent_board"


class BoardLogFormatter(logging.Formatter):
    """Formatter that prefixes task and process context when present."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        context = ""
        if hasattr(record, "task_id"):
            context += f"[{record.task_id}] "
        if hasattr(record, "process_id"):
            context += f"[{str(record.process_id)[:8]}] "

        if self.use_colors:
            level_color = self.LEVEL_COLORS.get(record.levelname, "")
            reset = "\033[0m"
        else:
            level_color = ""
            reset = ""

        line = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"{record.name.split('.')[-1]}: {context}{record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that adds task/process context to all log messages."""

    def __init__(
        self,
        logger: logging.Logger,
        task_id: Optional[str] = None,
        process_id: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.task_id = task_id
        self.process_id = process_id

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        if self.task_id:
            extra["task_id"] = self.task_id
        if self.process_id:
            extra["process_id"] = self.process_id
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    use_colors: Optional[bool] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: When set, also write plain-text logs to log_dir/agent-board.log
        use_colors: Force color on/off (defaults to stderr being a tty)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    if use_colors is None:
        use_colors = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(BoardLogFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "agent-board.log")
        file_handler.setFormatter(BoardLogFormatter(use_colors=False))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
