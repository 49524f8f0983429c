"""
Retention policy enforcement for backups.

Deletes archives and log files whose modification time is older than the
configured retention window. Purely age based; there is no minimum count.
"""

import logging
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from craftbackup.errors import RetentionError


logger = logging.getLogger(__name__)

ARCHIVE_PATTERN = 'backup-*.tar.gz'
LOG_PATTERN = '*.log'


class RetentionSweeper:
    """
    Removes files older than a retention window from a directory.
    """

    def __init__(self, retention_days: int, log: Optional[Callable[[str], None]] = None):
        """
        Initialize retention sweeper.

        Args:
            retention_days: Age threshold in days (must be at least 1)
            log: Optional transcript callback

        Raises:
            RetentionError: If retention_days is zero or negative
        """
        if retention_days is None or retention_days < 1:
            raise RetentionError(
                f"Refusing to sweep with a retention window of {retention_days} days"
            )
        self.retention_days = retention_days
        self._log = log or logger.info

    def cutoff(self, now: Optional[float] = None) -> float:
        """Epoch seconds before which a file is eligible for deletion."""
        if now is None:
            now = time.time()
        return now - timedelta(days=self.retention_days).total_seconds()

    def find_expired(self, root: Path, pattern: str, now: Optional[float] = None) -> List[Path]:
        """
        List files in root matching pattern that are older than the window.

        A file modified exactly at the cutoff is kept.
        """
        root = Path(root)
        if not root.is_dir():
            return []

        cutoff = self.cutoff(now)
        expired = []
        for path in sorted(root.glob(pattern)):
            if not path.is_file() or path.is_symlink():
                continue
            if path.stat().st_mtime < cutoff:
                expired.append(path)
        return expired

    def sweep(self, root: Path, pattern: str, now: Optional[float] = None) -> List[Path]:
        """
        Delete expired files.

        Args:
            root: Directory to sweep (not recursive)
            pattern: Glob pattern of candidate files
            now: Reference time in epoch seconds (defaults to the current time)

        Returns:
            Paths that were deleted

        Raises:
            RetentionError: If listing or deleting fails
        """
        root = Path(root)
        if not root.is_dir():
            self._log(f"{root} does not exist, nothing to remove")
            return []

        try:
            expired = self.find_expired(root, pattern, now)
        except OSError as e:
            raise RetentionError(f"Failed to list {root}: {e}")

        deleted = []
        for path in expired:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise RetentionError(f"Failed to delete {path}: {e}")
            deleted.append(path)
            logger.debug("Deleted expired file: %s", path)

        return deleted


def enforce_retention(
    backups_root: Path,
    logs_root: Path,
    retention_days: int,
    log: Optional[Callable[[str], None]] = None,
    now: Optional[float] = None
) -> Dict[str, Any]:
    """
    Sweep old archives and old logs of one project.

    Returns:
        Dict with the deleted paths: {'archives': [...], 'logs': [...]}

    Raises:
        RetentionError: If retention_days is invalid or a deletion fails
    """
    log = log or logger.info
    sweeper = RetentionSweeper(retention_days, log=log)

    log(f"Removing backup files older than {retention_days} days...")
    archives = sweeper.sweep(backups_root, ARCHIVE_PATTERN, now=now)
    log(f"Old backup archives removed: {len(archives)}")

    log(f"Removing log files older than {retention_days} days...")
    logs = sweeper.sweep(logs_root, LOG_PATTERN, now=now)
    log(f"Old logs removed: {len(logs)}")

    return {
        'archives': archives,
        'logs': logs,
    }
