"""
Backup executor - orchestrates the complete backup workflow.

Workflow (strictly linear, fail-fast):
1. Acquire the run lock on the backups root
2. Create the staging tree                      -> STAGING_READY
3. Dump the database                            -> DB_DUMPED
4. Archive directories, copy mandatory files    -> FILES_ARCHIVED
5. Compress, verify, remove the staging tree    -> FINALIZED
6. Sweep old archives and logs                  -> RETENTION_APPLIED
7. Done                                         -> DONE

Any failure moves the run to FAILED, recording the stage. Later stages never
run and nothing is retried. The staging tree is only removed once the final
archive has passed verification.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from craftbackup.config import BackupSettings
from craftbackup.errors import BackupError, IntegrityError
from .compression import ArchiveFinalizer, generate_archive_filename, get_archive_size
from .database import DatabaseDumper
from .files import FileArchiver
from .lock import RunLock
from .retention import enforce_retention
from .staging import StagingManager, StagingTree
from .transcript import RunTranscript


logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d-%H-%M-%S'


class RunState(enum.Enum):
    INIT = 'init'
    STAGING_READY = 'staging_ready'
    DB_DUMPED = 'db_dumped'
    FILES_ARCHIVED = 'files_archived'
    FINALIZED = 'finalized'
    RETENTION_APPLIED = 'retention_applied'
    DONE = 'done'
    FAILED = 'failed'


def generate_run_id(now: Optional[datetime] = None) -> str:
    """Timestamp identifier of a run, e.g. 2025-04-25-13-05-09."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


@dataclass
class BackupRun:
    """State of one backup invocation."""
    timestamp: str
    project_root: Path
    project_name: str
    staging_root: Path
    directories: List[str]
    mandatory_files: List[str]
    retention_days: int
    state: RunState = RunState.INIT
    stage: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[BaseException] = None
    archive_path: Optional[Path] = None
    archive_size: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    logs: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.DONE

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return 0
        return getattr(self.error, 'exit_code', 1)


class BackupExecutor:
    """
    Orchestrates the complete backup workflow for a project.
    """

    def __init__(
        self,
        settings: BackupSettings,
        timestamp: Optional[str] = None,
        transcript: bool = False
    ):
        """
        Initialize backup executor.

        Args:
            settings: Validated project settings
            timestamp: Run identifier (generated from the current time if omitted)
            transcript: Write the run log to <backups>/logs/backup-<timestamp>.log
        """
        self.settings = settings
        self.transcript = transcript
        timestamp = timestamp or generate_run_id()

        self.run = BackupRun(
            timestamp=timestamp,
            project_root=settings.project_root,
            project_name=settings.project_name,
            staging_root=settings.backups_root / timestamp,
            directories=list(settings.directories),
            mandatory_files=[settings.secret_file, settings.manifest_file],
            retention_days=settings.retention_days,
        )
        self.tree: Optional[StagingTree] = None
        self._transcript = RunTranscript(self.transcript_path) if transcript else None

    @property
    def transcript_path(self) -> Path:
        return self.settings.logs_root / f"backup-{self.run.timestamp}.log"

    def execute(self) -> BackupRun:
        """
        Execute the backup.

        Returns:
            BackupRun in state DONE or FAILED
        """
        self.run.started_at = datetime.now()
        if self._transcript is not None:
            self._transcript.open()

        lock = RunLock(self.settings.backups_root)
        self._log(f"Backup starting for {self.run.project_name} ({self.run.timestamp})")

        try:
            self.run.stage = 'lock'
            lock.acquire()
            self._execute_workflow()

            self._advance(RunState.DONE)
            self._log("Local backup completed successfully")
            self._log(f"Backup filename: {self.run.archive_path.name}")

        except BackupError as e:
            self._fail(e)

        except Exception as e:
            logger.exception("Unexpected error during stage %s", self.run.stage)
            self._fail(e)

        finally:
            lock.release()
            self.run.completed_at = datetime.now()
            if self._transcript is not None:
                self._transcript.close()

        return self.run

    def _execute_workflow(self):
        """Execute the main backup workflow steps."""
        # Step 1: Staging tree
        self.run.stage = 'staging'
        self._log("Creating necessary backup directory structure...")
        self.tree = StagingManager(self.settings.backups_root).create(self.run.timestamp)
        self._advance(RunState.STAGING_READY)

        # Step 2: Database
        self.run.stage = 'database'
        self._log("Backing up database...")
        self._dump_database()
        self._log("Database backup successful")
        self._advance(RunState.DB_DUMPED)

        # Step 3: Project files
        self.run.stage = 'files'
        self._log("Backing up project files...")
        self._archive_files()
        self._advance(RunState.FILES_ARCHIVED)

        # Step 4: Final archive
        self.run.stage = 'finalize'
        self._finalize()
        self._advance(RunState.FINALIZED)

        # Step 5: Retention
        self.run.stage = 'retention'
        enforce_retention(
            self.settings.backups_root,
            self.settings.logs_root,
            self.settings.retention_days,
            log=self._log
        )
        self._advance(RunState.RETENTION_APPLIED)

    def _dump_database(self) -> Path:
        """
        Dump the project database into the staging db/ directory.

        Raises:
            DumpError: If the export fails
        """
        dumper = DatabaseDumper(
            self.settings.credentials,
            binary=self.settings.mysqldump_binary,
            timeout=self.settings.dump_timeout
        )
        destination = self.tree.db_dir / f"db-{self.run.timestamp}.sql"
        return dumper.dump(self.settings.database, destination)

    def _archive_files(self):
        """
        Archive configured directories and copy the mandatory files.

        Raises:
            ArchiveError: If an existing directory cannot be archived
            CopyError: If .env or composer.json is missing
        """
        archiver = FileArchiver(
            self.settings.project_root,
            self.settings.directories,
            self.run.timestamp,
            log=self._log
        )
        created = archiver.archive_directories(self.tree.files_dir)
        self._log(f"All directory backups successful ({len(created)} archives)")

        self._log(f"Backing up {self.settings.secret_file} and {self.settings.manifest_file} files")
        archiver.copy_file(
            self.settings.secret_file,
            self.tree.root,
            copy_name=self.settings.secret_file_copy_name
        )
        archiver.copy_file(self.settings.manifest_file, self.tree.root)

    def _finalize(self):
        """
        Compress the staging tree, verify the archive, then remove the tree.

        Raises:
            CompressionError: If compression fails
            IntegrityError: If the archive listing fails (the archive is removed)
        """
        finalizer = ArchiveFinalizer()
        destination = self.settings.backups_root / generate_archive_filename(
            self.run.project_name, self.run.timestamp
        )

        self._log("Compressing backup...")
        self.run.archive_path = finalizer.compress(self.tree, destination)

        self._log("Checking the integrity of the backup...")
        try:
            members = finalizer.verify(self.run.archive_path)
        except IntegrityError:
            # The staging tree stays for inspection; the archive does not
            finalizer.discard(self.run.archive_path)
            self.run.archive_path = None
            raise
        self.run.archive_size = get_archive_size(self.run.archive_path)
        self._log(
            f"Backup passed integrity check ({len(members)} entries, "
            f"{self.run.archive_size / 1024 / 1024:.2f} MB)"
        )

        self._log("Removing working files...")
        finalizer.cleanup(self.tree)

    def _advance(self, state: RunState):
        logger.debug("Run %s: %s -> %s", self.run.timestamp, self.run.state.value, state.value)
        self.run.state = state

    def _fail(self, error: BaseException):
        self.run.state = RunState.FAILED
        self.run.failed_stage = self.run.stage
        self.run.error = error
        self._log(f"Backup failed during {self.run.stage} stage: {error}", level=logging.ERROR)

    def _log(self, message: str, level: int = logging.INFO):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
            level: Logging level for the module logger
        """
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        self.run.logs.append(f"[{timestamp}] {message}")
        logger.log(level, message)


def execute_backup(settings: BackupSettings, transcript: bool = False) -> BackupRun:
    """
    Run a backup for the project described by settings.

    Returns:
        BackupRun with the terminal state
    """
    executor = BackupExecutor(settings, transcript=transcript)
    return executor.execute()
