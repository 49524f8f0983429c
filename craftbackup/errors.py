"""
Error types raised by the backup pipeline.

Every error is fatal to the run that raised it. Each kind carries the process
exit code the CLI reports for it.
"""


class BackupError(Exception):
    """Base class for all pipeline failures."""
    exit_code = 1


class ConfigurationError(BackupError):
    """Raised when project settings are missing or invalid."""
    exit_code = 2


class LockError(BackupError):
    """Raised when another run already holds the backups root."""
    exit_code = 3


class FilesystemError(BackupError):
    """Raised when the staging tree cannot be created."""
    exit_code = 4


class DumpError(BackupError):
    """Raised when the database export fails."""
    exit_code = 5


class ArchiveError(BackupError):
    """Raised when a project directory cannot be archived."""
    exit_code = 6


class CopyError(BackupError):
    """Raised when a mandatory project file cannot be copied."""
    exit_code = 7


class CompressionError(BackupError):
    """Raised when the final archive cannot be created."""
    exit_code = 8


class IntegrityError(BackupError):
    """Raised when the final archive fails its listing check."""
    exit_code = 9


class RetentionError(BackupError):
    """Raised when old archives or logs cannot be swept."""
    exit_code = 10
