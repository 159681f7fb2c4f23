"""Helpers for best-effort steps whose failure must not mask the real outcome."""

import logging
from typing import Optional, Tuple, Type

logger = logging.getLogger(__name__)


def log_and_ignore(
    error: Exception,
    message: str,
    *,
    logger_instance: Optional[logging.Logger] = None,
    level: int = logging.WARNING,
) -> None:
    """Log `message: error` at level and carry on."""
    log = logger_instance or logger
    log.log(level, f"{message}: {error}")


class ErrorContext:
    """
    Log failures of one step, optionally swallowing them.

    Only exceptions matching `catch` are handled; anything else propagates
    untouched. After the block, `error` holds the handled exception.

    Usage:
        with ErrorContext("deleting branch", raise_on_error=False, catch=(GitCommandError,)):
            plumbing.delete_branch(repo, branch)
    """

    def __init__(
        self,
        operation: str,
        *,
        raise_on_error: bool = True,
        catch: Tuple[Type[BaseException], ...] = (Exception,),
        logger_instance: Optional[logging.Logger] = None,
        log_level: int = logging.ERROR,
    ):
        self.operation = operation
        self.raise_on_error = raise_on_error
        self.catch = catch
        self.logger = logger_instance or logger
        self.log_level = log_level
        self.error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None or not issubclass(exc_type, self.catch):
            return False

        self.error = exc_val
        self.logger.log(self.log_level, f"Error during {self.operation}: {exc_val}")
        return not self.raise_on_error
