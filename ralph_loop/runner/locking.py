"""
Run lock for ralph_loop.

Only one loop may drive a clone at a time: two loops would fight over the
checked-out branch. A second `ralph run` fails fast with LockTimeout.
"""

import atexit
import fcntl
import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path

LOCK_FILENAME = "ralph.lock"


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


def _read_holder(lock_file: Path) -> str:
    try:
        return lock_file.read_text().strip()
    except OSError:
        return ""


@contextmanager
def _acquire_lock(lock_file: Path, timeout: int, lock_name: str):
    """
    Acquire an exclusive flock on lock_file.

    timeout is in seconds; 0 means a single non-blocking attempt.

    The lock file is never deleted: deleting it would let two processes
    hold "exclusive" locks on different inodes with the same path.
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'a+')
    start = time.time()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.time() - start >= timeout:
                fd.close()
                holder = _read_holder(lock_file)
                raise LockTimeout(
                    f"Could not acquire {lock_name}"
                    + (f" (held by pid {holder})" if holder else "")
                )
            time.sleep(1)

    def cleanup():
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
            fd.close()
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)
    original_sigterm = signal.signal(signal.SIGTERM, lambda *_: sys.exit(1))

    try:
        fd.seek(0)
        fd.truncate()
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        atexit.unregister(cleanup)
        signal.signal(signal.SIGTERM, original_sigterm)
        cleanup()


@contextmanager
def run_lock(state_dir: Path, timeout: int = 0):
    """
    Acquire the per-clone run lock, yield, release on exit.
    """
    lock_file = state_dir / "locks" / LOCK_FILENAME
    with _acquire_lock(lock_file, timeout, "ralph run lock"):
        yield
