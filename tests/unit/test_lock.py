"""
Unit tests for the run lock (craftbackup/backup/lock.py).
"""

import pytest

from craftbackup.backup.lock import LOCK_FILENAME, RunLock
from craftbackup.errors import LockError


class TestRunLock:
    """Test RunLock acquire/release."""

    def test_acquire_creates_lock_file(self, tmp_path):
        lock = RunLock(tmp_path / 'backups')

        lock.acquire()
        try:
            assert lock.is_held
            assert (tmp_path / 'backups' / LOCK_FILENAME).exists()
        finally:
            lock.release()

        assert not lock.is_held

    def test_second_lock_is_rejected(self, tmp_path):
        """Test overlapping runs on the same backups root are rejected."""
        first = RunLock(tmp_path)
        second = RunLock(tmp_path)

        with first:
            with pytest.raises(LockError, match="already running"):
                second.acquire()

        assert not second.is_held

    def test_lock_can_be_reacquired_after_release(self, tmp_path):
        with RunLock(tmp_path):
            pass

        with RunLock(tmp_path) as lock:
            assert lock.is_held

    def test_release_without_acquire(self, tmp_path):
        """Test release is a no-op when the lock is not held."""
        RunLock(tmp_path).release()

    def test_locks_on_different_roots_are_independent(self, tmp_path):
        with RunLock(tmp_path / 'site-a'):
            with RunLock(tmp_path / 'site-b') as other:
                assert other.is_held
