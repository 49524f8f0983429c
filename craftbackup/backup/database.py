"""
Database export for Craft CMS projects.

Credentials reach mysqldump through a temporary option file
(--defaults-extra-file) so they never appear in the process list.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from craftbackup.config import DatabaseCredentials
from craftbackup.errors import DumpError


logger = logging.getLogger(__name__)


def _quote_option_value(value) -> str:
    """Quote a value for the MySQL option file parser."""
    escaped = str(value).replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


class CredentialScope:
    """
    Ephemeral MySQL option file holding connection credentials.

    The file is created with mode 0600 and removed by close(), which is
    idempotent. Use as a context manager so the file is removed on every exit
    path of the dump.
    """

    def __init__(self, credentials: DatabaseCredentials, directory: Optional[str] = None):
        """
        Initialize credential scope.

        Args:
            credentials: Database connection parameters
            directory: Optional directory for the temp file (defaults to system temp)
        """
        self.credentials = credentials
        self.directory = directory
        self.path = None

    def open(self) -> str:
        """
        Write the option file.

        Returns:
            Path to the option file

        Raises:
            DumpError: If the file cannot be written
        """
        if self.path is not None:
            raise DumpError("Credential scope is already open")

        try:
            fd, path = tempfile.mkstemp(prefix='craftbackup-', suffix='.cnf', dir=self.directory)
        except OSError as e:
            raise DumpError(f"Failed to create temporary credentials file: {e}")
        self.path = path
        try:
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, 'w') as f:
                f.write("[client]\n")
                f.write(f"user={_quote_option_value(self.credentials.user)}\n")
                f.write(f"password={_quote_option_value(self.credentials.password)}\n")
                f.write(f"host={_quote_option_value(self.credentials.host)}\n")
                f.write(f"port={self.credentials.port}\n")
        except OSError as e:
            self.close()
            raise DumpError(f"Failed to write temporary credentials file: {e}")

        return path

    def close(self):
        """Remove the option file if it exists."""
        if self.path is None:
            return
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        finally:
            self.path = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class DatabaseDumper:
    """
    Exports a consistent snapshot of the project database with mysqldump.
    """

    def __init__(
        self,
        credentials: DatabaseCredentials,
        binary: str = 'mysqldump',
        timeout: Optional[int] = 3600
    ):
        """
        Initialize database dumper.

        Args:
            credentials: Database connection parameters
            binary: mysqldump executable name or path
            timeout: Seconds before the export is killed (None disables)
        """
        self.credentials = credentials
        self.binary = binary
        self.timeout = timeout

    def build_command(self, defaults_file: str, database: str) -> list:
        """Build the mysqldump argument list. No secrets appear in it."""
        return [
            self.binary,
            f"--defaults-extra-file={defaults_file}",
            '--single-transaction',
            '--set-gtid-purged=OFF',
            database,
        ]

    def dump(self, database: str, destination: Path) -> Path:
        """
        Dump the database as SQL text.

        Args:
            database: Database name
            destination: Path of the .sql file to write

        Returns:
            Path to the written dump

        Raises:
            DumpError: If mysqldump is missing, times out or exits nonzero
        """
        destination = Path(destination)

        try:
            out = open(destination, 'wb')
        except OSError as e:
            raise DumpError(f"Cannot write database dump to {destination}: {e}")

        with out, CredentialScope(self.credentials) as defaults_file:
            cmd = self.build_command(defaults_file, database)
            try:
                result = subprocess.run(
                    cmd,
                    stdout=out,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout
                )
            except FileNotFoundError:
                raise DumpError(f"{self.binary} is not installed or not on PATH")
            except subprocess.TimeoutExpired:
                raise DumpError(f"{self.binary} timed out after {self.timeout} seconds")
            except OSError as e:
                raise DumpError(f"Failed to run {self.binary}: {e}")

        if result.returncode != 0:
            stderr = (result.stderr or b'').decode(errors='replace').strip()
            logger.debug("mysqldump stderr: %s", stderr)
            detail = stderr.splitlines()[-1] if stderr else 'no output'
            raise DumpError(
                f"Failed to create the database backup. "
                f"mysqldump exited with status {result.returncode}: {detail}"
            )

        return destination
