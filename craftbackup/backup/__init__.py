"""
Backup module for craftbackup.

This module handles the backup pipeline stages:
- Staging tree creation
- Database export with scoped credentials
- Project file archiving
- Final compression and integrity verification
- Retention policy enforcement
- Per-run log files
- Execution orchestration
"""

from .executor import BackupExecutor, BackupRun, RunState, execute_backup
from .staging import StagingManager, StagingTree
from .database import CredentialScope, DatabaseDumper
from .files import FileArchiver
from .compression import ArchiveFinalizer
from .retention import RetentionSweeper, enforce_retention
from .lock import RunLock
from .transcript import RunTranscript

__all__ = [
    'BackupExecutor',
    'BackupRun',
    'RunState',
    'execute_backup',
    'StagingManager',
    'StagingTree',
    'CredentialScope',
    'DatabaseDumper',
    'FileArchiver',
    'ArchiveFinalizer',
    'RetentionSweeper',
    'enforce_retention',
    'RunLock',
    'RunTranscript'
]
