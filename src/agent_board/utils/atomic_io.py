"""Atomic replacement of small text documents."""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str, max_retries: int = 3) -> None:
    """
    Replace file_path with content through a temp file in the same directory.

    Readers see the old document or the new one, never a partial write. The
    parent directory is created when missing.

    Raises:
        OSError: If every attempt fails
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    # Same directory so os.replace stays a rename; PID keeps concurrent writers apart
    tmp_file = file_path.with_name(f".{file_path.name}.{os.getpid()}.tmp")

    last_error: Optional[OSError] = None
    for attempt in range(1, max_retries + 1):
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_file, file_path)
            return
        except OSError as e:
            last_error = e
            logger.warning(f"Writing {file_path} failed (attempt {attempt}/{max_retries}): {e}")
            _discard(tmp_file)

    logger.error(f"Giving up on {file_path} after {max_retries} attempts")
    raise last_error


def _discard(tmp_file: Path) -> None:
    try:
        tmp_file.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Could not remove temp file {tmp_file}: {e}")
