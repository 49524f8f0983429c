"""
Advisory run lock scoped to a project's backups root.
"""

import fcntl
import os
from pathlib import Path

from craftbackup.errors import LockError


LOCK_FILENAME = '.craftbackup.lock'


class RunLock:
    """
    Non-blocking flock on <backups_root>/.craftbackup.lock.

    Overlapping runs against the same project are rejected instead of racing
    on the staging directory or the database export.
    """

    def __init__(self, backups_root: Path):
        self.path = Path(backups_root) / LOCK_FILENAME
        self._fd = None

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    def acquire(self):
        """
        Acquire the lock.

        Raises:
            LockError: If the lock file cannot be opened or another run holds it
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as e:
            raise LockError(f"Failed to open lock file {self.path}: {e}")

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            raise LockError(f"Another backup is already running for {self.path.parent}")

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd

    def release(self):
        """Release the lock. Safe to call when not held."""
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
