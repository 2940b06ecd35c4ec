"""
Lock management for prdflow.

Uses flock so that two automated callers cannot interleave writes to the
sequence counter or to one feature's state.
"""

import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


@contextmanager
def file_lock(lock_file: Path, timeout: float = 30, lock_name: str = "lock", poll: float = 0.1):
    """
    Acquire an exclusive flock on lock_file, yield, release on exit.

    Lock files are never deleted: deleting lets two processes hold
    "exclusive" locks on different inodes with the same path.

    Raises:
        LockTimeout: if the lock isn't acquired within timeout seconds
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'w')
    start = time.monotonic()

    try:
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() - start > timeout:
                    raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
                time.sleep(poll)

        fd.write(f"{os.getpid()}\n")
        fd.flush()
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        fd.close()


@contextmanager
def feature_lock(state_dir: Path, feature: str, timeout: float = 30):
    """Per-feature lock."""
    lock_file = state_dir / "locks" / f"{feature}.lock"
    with file_lock(lock_file, timeout, f"lock for {feature}"):
        yield
