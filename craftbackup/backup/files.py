"""
Project file archiving.

Each configured directory becomes one tar.gz under the staging files/
directory, rooted at the directory's own contents. The project's .env and
composer.json are copied verbatim into the staging root.
"""

import logging
import re
import shutil
import tarfile
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from craftbackup.errors import ArchiveError, CopyError


logger = logging.getLogger(__name__)

FILLER = '-'

_ESCAPES = {'%25': '%', '%2D': FILLER, FILLER: '/'}
_DECODE_PATTERN = re.compile('%25|%2D|-')


def encode_directory_name(directory: str) -> str:
    """
    Encode a relative directory path as a flat archive name.

    Path separators become '-'. Literal '%' and '-' are percent-escaped first
    so the encoding stays reversible: 'web/css' -> 'web-css',
    'my-theme/css' -> 'my%2Dtheme-css'.
    """
    escaped = directory.strip('/').replace('%', '%25').replace(FILLER, '%2D')
    return escaped.replace('/', FILLER)


def decode_directory_name(name: str) -> str:
    """Inverse of encode_directory_name()."""
    return _DECODE_PATTERN.sub(lambda m: _ESCAPES[m.group(0)], name)


def directory_archive_name(directory: str, timestamp: str) -> str:
    """Filename of the tarball for a configured directory."""
    return f"{encode_directory_name(directory)}-{timestamp}.tar.gz"


def archive_directory(source_dir: Path, archive_path: Path) -> Path:
    """
    Create a gzip tar of a directory's contents.

    Members are stored relative to source_dir itself, so extracting the
    archive anywhere reproduces the directory's contents directly.

    Raises:
        ArchiveError: If the archive cannot be written
    """
    try:
        with tarfile.open(archive_path, 'w:gz') as tar:
            for child in sorted(source_dir.iterdir()):
                tar.add(child, arcname=child.name, recursive=True)
    except (OSError, tarfile.TarError) as e:
        if archive_path.exists():
            archive_path.unlink()
        raise ArchiveError(f"Failed to archive {source_dir}: {e}")

    return archive_path


class FileArchiver:
    """
    Archives configured project directories and copies mandatory files.
    """

    def __init__(
        self,
        project_root: Path,
        directories: Iterable[str],
        timestamp: str,
        log: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize file archiver.

        Args:
            project_root: Craft CMS project root
            directories: Ordered directories relative to the project root
            timestamp: Run identifier used in archive names
            log: Optional transcript callback
        """
        self.project_root = Path(project_root)
        self.directories = list(directories)
        self.timestamp = timestamp
        self._log = log or logger.info

    def archive_directories(self, files_dir: Path) -> List[Path]:
        """
        Archive every configured directory that exists.

        Args:
            files_dir: Staging files/ directory

        Returns:
            Paths of the created tarballs, in configuration order

        Raises:
            ArchiveError: If an existing directory cannot be archived
        """
        created = []

        for directory in self.directories:
            source = self.project_root / directory

            if not source.is_dir():
                self._log(f"/{directory} does not exist. Skipping...")
                continue

            self._log(f"Backing up /{directory} ...")
            archive_path = Path(files_dir) / directory_archive_name(directory, self.timestamp)
            archive_directory(source, archive_path)
            created.append(archive_path)

        return created

    def copy_file(self, name: str, staging_root: Path, copy_name: Optional[str] = None) -> Path:
        """
        Copy a mandatory project file into the staging root.

        Args:
            name: Filename relative to the project root
            staging_root: Staging tree root
            copy_name: Name of the copy (defaults to name)

        Returns:
            Path of the copy

        Raises:
            CopyError: If the file is missing or cannot be copied
        """
        source = self.project_root / name
        destination = Path(staging_root) / (copy_name or name)

        if not source.is_file():
            raise CopyError(f"Required project file is missing: {source}")

        try:
            shutil.copy2(source, destination)
        except OSError as e:
            raise CopyError(f"Failed to copy {name}: {e}")

        return destination
