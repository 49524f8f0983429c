"""
Staging tree for a single backup run.

Layout under the backups root:
    <timestamp>/
    <timestamp>/files/
    <timestamp>/db/
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from craftbackup.errors import FilesystemError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StagingTree:
    """Ephemeral working directories of one run."""
    root: Path

    @property
    def files_dir(self) -> Path:
        return self.root / 'files'

    @property
    def db_dir(self) -> Path:
        return self.root / 'db'

    def exists(self) -> bool:
        return all(p.is_dir() for p in (self.root, self.files_dir, self.db_dir))


class StagingManager:
    """
    Creates the isolated working tree for a run.
    """

    def __init__(self, backups_root: Path):
        """
        Initialize staging manager.

        Args:
            backups_root: Directory holding archives, logs and staging trees
        """
        self.backups_root = Path(backups_root)

    def create(self, timestamp: str) -> StagingTree:
        """
        Create the staging tree for a run.

        Args:
            timestamp: Run identifier used as the staging directory name

        Returns:
            StagingTree with root, files/ and db/ created

        Raises:
            FilesystemError: If any directory cannot be created or verified
        """
        try:
            self.backups_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create the backups directory {self.backups_root}: {e}")

        if not self.backups_root.is_dir():
            raise FilesystemError(
                f"The backups directory does not exist in the project path: {self.backups_root}"
            )

        tree = StagingTree(self.backups_root / timestamp)

        # exist_ok is False on purpose: a leftover tree belongs to another run
        try:
            os.mkdir(tree.root)
            os.mkdir(tree.files_dir)
            os.mkdir(tree.db_dir)
        except FileExistsError:
            raise FilesystemError(f"Staging directory already exists: {tree.root}")
        except OSError as e:
            raise FilesystemError(f"Failed to create sub directories in {self.backups_root}: {e}")

        if not tree.exists():
            raise FilesystemError(f"Failed to verify staging directories under {tree.root}")

        logger.debug("Staging tree ready at %s", tree.root)
        return tree
