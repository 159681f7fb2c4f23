"""Blocking subprocess helpers for git and other short-lived commands."""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class SubprocessError(Exception):
    """A command exited with an unexpected code or ran past its timeout."""

    def __init__(
        self,
        cmd: str,
        returncode: int,
        stderr: str,
        stdout: str = "",
        cwd: Optional[Path] = None,
        timed_out: bool = False,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        self.cwd = cwd
        self.timed_out = timed_out

        if timed_out:
            summary = f"Command timed out: {cmd}"
        else:
            summary = f"Command failed with exit code {returncode}: {cmd}"
        if cwd is not None:
            summary += f" (cwd: {cwd})"
        super().__init__(f"{summary}\nstderr: {stderr}")

    @property
    def short_message(self) -> str:
        """First line of stderr, or the summary when stderr is empty."""
        first = (self.stderr or "").strip().splitlines()
        return first[0] if first else str(self).splitlines()[0]


def run_command(
    cmd: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
    ok_returncodes: Iterable[int] = (0,),
) -> subprocess.CompletedProcess:
    """
    Run cmd to completion, capturing text output.

    Output is decoded as UTF-8 with replacement, so arbitrary file content in
    a diff never raises.

    Args:
        cmd: Argument vector
        cwd: Working directory
        check: Raise when the exit code is not in ok_returncodes
        timeout: Seconds before the command is killed (None = no limit)
        env: Full environment for the child (default: inherit)
        ok_returncodes: Exit codes that count as success

    Raises:
        SubprocessError: On an unexpected exit code (with check) or a timeout
    """
    cmd_str = " ".join(str(c) for c in cmd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {cmd_str}")
        raise SubprocessError(
            cmd=cmd_str,
            returncode=-1,
            stderr=str(e.stderr or ""),
            stdout=str(e.stdout or ""),
            cwd=cwd,
            timed_out=True,
        ) from e

    if check and result.returncode not in tuple(ok_returncodes):
        raise SubprocessError(
            cmd=cmd_str,
            returncode=result.returncode,
            stderr=result.stderr,
            stdout=result.stdout,
            cwd=cwd,
        )
    return result


def run_git_command(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = 30,
    ok_returncodes: Iterable[int] = (0,),
) -> subprocess.CompletedProcess:
    """
    Run `git <args>` in cwd.

    Credential prompts are disabled so a misconfigured remote fails fast
    instead of blocking on a terminal that isn't there.

    Raises:
        SubprocessError: On an unexpected exit code or a timeout
        FileNotFoundError: If the git executable is missing
    """
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    try:
        return run_command(
            ["git"] + list(args),
            cwd=cwd,
            check=check,
            timeout=timeout,
            env=env,
            ok_returncodes=ok_returncodes,
        )
    except SubprocessError as e:
        logger.debug(f"git {' '.join(args)} failed in {cwd}: {e.short_message}")
        raise


def check_command_exists(command: str) -> bool:
    """True if command resolves to an executable (a PATH lookup, or the path itself)."""
    return shutil.which(command) is not None
