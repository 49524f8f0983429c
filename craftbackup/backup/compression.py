"""
Final archive handling.

Compresses a staging tree into backup-<project>-<timestamp>.tar.gz, verifies
it by listing every member, and removes the staging tree afterwards.
"""

import logging
import os
import shutil
import tarfile
from pathlib import Path
from typing import List

from craftbackup.errors import CompressionError, FilesystemError, IntegrityError
from .staging import StagingTree


logger = logging.getLogger(__name__)


def generate_archive_filename(project_name: str, timestamp: str) -> str:
    """
    Generate the final archive filename.

    Format: backup-{project_name}-{timestamp}.tar.gz

    Args:
        project_name: Name of the Craft CMS project (basename of its root)
        timestamp: Run identifier

    Returns:
        Filename (without path)
    """
    return f"backup-{project_name}-{timestamp}.tar.gz"


def get_archive_size(archive_path) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        IntegrityError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise IntegrityError(f"Archive not found: {archive_path}")
    except OSError as e:
        raise IntegrityError(f"Failed to get archive size: {e}")


class ArchiveFinalizer:
    """
    Produces and verifies the single archive of a run.
    """

    def compress(self, tree: StagingTree, destination: Path) -> Path:
        """
        Create a gzip tar of the staging tree contents.

        Members are relative to the staging root (db/..., files/..., loose
        files at the top).

        Args:
            tree: Staging tree to compress
            destination: Archive path to create

        Returns:
            Path to the created archive

        Raises:
            CompressionError: If the archive already exists or creation fails
        """
        destination = Path(destination)

        if not tree.root.is_dir():
            raise CompressionError(f"Staging directory does not exist: {tree.root}")

        if destination.exists():
            raise CompressionError(f"Archive already exists: {destination}")

        created = False
        try:
            # 'x' refuses to replace an archive written since the check above
            with tarfile.open(destination, 'x:gz') as tar:
                created = True
                for child in sorted(tree.root.iterdir()):
                    tar.add(child, arcname=child.name, recursive=True)
        except (OSError, tarfile.TarError) as e:
            if not created:
                if isinstance(e, FileExistsError):
                    raise CompressionError(f"Archive already exists: {destination}")
                raise CompressionError(f"Failed to compress backup file: {e}")
            # Clean up partial archive on failure
            try:
                destination.unlink()
            except FileNotFoundError:
                pass
            except OSError as unlink_error:
                logger.warning("Failed to remove partial archive %s: %s", destination, unlink_error)
            raise CompressionError(f"Failed to compress backup file: {e}")

        return destination

    def verify(self, archive_path: Path) -> List[str]:
        """
        List the archive without extracting it.

        This proves the container is well formed; it does not checksum the
        contents against the source.

        Args:
            archive_path: Archive to check

        Returns:
            Member names in archive order

        Raises:
            IntegrityError: If the archive is missing, empty or unreadable
        """
        if get_archive_size(archive_path) == 0:
            raise IntegrityError(f"Archive is empty: {archive_path}")

        try:
            with tarfile.open(archive_path, 'r:gz') as tar:
                # getmembers() reads through to the end of the stream
                names = [member.name for member in tar.getmembers()]
        except (OSError, EOFError, tarfile.TarError) as e:
            raise IntegrityError(f"Failed to check the integrity of the backup file: {e}")

        return names

    def discard(self, archive_path: Path):
        """Remove an archive that failed verification."""
        try:
            Path(archive_path).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove unverified archive %s: %s", archive_path, e)

    def cleanup(self, tree: StagingTree):
        """
        Remove the staging tree.

        Only call after verify() succeeded; a failed run keeps its tree for
        inspection.

        Raises:
            FilesystemError: If the tree cannot be removed
        """
        try:
            shutil.rmtree(tree.root)
        except OSError as e:
            raise FilesystemError(f"Failed to remove working files in {tree.root}: {e}")
