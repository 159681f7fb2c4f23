"""Process management utilities for signalling agent process trees."""

import os
import signal


def kill_process_tree(pid: int, sig: int = signal.SIGTERM) -> bool:
    """Send signal to entire process group, falling back to single process.

    Agents are spawned with start_new_session=True so they lead their own
    process group, and killpg reaches anything the CLI itself spawned.

    Returns:
        True if a signal was delivered, False if the process was already gone.
    """
    try:
        pgid = os.getpgid(pid)
        os.killpg(pgid, sig)
        return True
    except (ProcessLookupError, PermissionError):
        return False
    except OSError:
        # Process may not be a group leader
        try:
            os.kill(pid, sig)
            return True
        except (ProcessLookupError, PermissionError):
            return False
