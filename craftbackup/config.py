import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

from dotenv import dotenv_values

from craftbackup.errors import ConfigurationError


DEFAULT_BACKUP_DIRECTORIES = (
    'config',
    'modules',
    'templates',
    'web/css',
    'web/js',
    'translations',
)

REQUIRED_DB_VARIABLES = (
    'CRAFT_DB_DATABASE',
    'CRAFT_DB_SERVER',
    'CRAFT_DB_PORT',
    'CRAFT_DB_USER',
    'CRAFT_DB_PASSWORD',
)


def _split_directories(value):
    return tuple(d.strip() for d in value.split(',') if d.strip())


class Config:
    """Base configuration"""

    # Project layout
    DEFAULT_BASE_PATH = os.environ.get('CRAFTBACKUP_BASE_PATH') or '/srv/www/'
    BACKUPS_DIRNAME = os.environ.get('CRAFTBACKUP_BACKUPS_DIRNAME') or 'backups'
    BACKUP_DIRECTORIES = _split_directories(
        os.environ.get('CRAFTBACKUP_DIRECTORIES', '')
    ) or DEFAULT_BACKUP_DIRECTORIES
    SECRET_FILE = '.env'
    SECRET_FILE_COPY_NAME = 'env-backup.txt'
    MANIFEST_FILE = 'composer.json'

    # Retention
    RETENTION_DAYS = int(os.environ.get('CRAFTBACKUP_RETENTION_DAYS', 14))

    # Database export
    MYSQLDUMP_BINARY = os.environ.get('CRAFTBACKUP_MYSQLDUMP') or 'mysqldump'
    DUMP_TIMEOUT = int(os.environ.get('CRAFTBACKUP_DUMP_TIMEOUT', 3600))

    # Logging
    LOGGING_ENABLED = os.environ.get('CRAFTBACKUP_LOGGING', 'true').lower() == 'true'
    LOG_LEVEL = os.environ.get('CRAFTBACKUP_LOG_LEVEL') or 'INFO'

    # Scheduler
    SCHEDULER_TIMEZONE = 'UTC'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    BACKUP_DIRECTORIES = DEFAULT_BACKUP_DIRECTORIES
    RETENTION_DAYS = 14
    DUMP_TIMEOUT = 30
    LOGGING_ENABLED = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


@dataclass(frozen=True)
class DatabaseCredentials:
    """Connection parameters for the project's MySQL database."""
    host: str
    port: int
    user: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class BackupSettings:
    """
    Validated, immutable settings for one backup run.

    Built once by load_settings() and passed to every pipeline component.
    """
    project_root: Path
    project_name: str
    backups_root: Path
    database: str
    credentials: DatabaseCredentials
    directories: Tuple[str, ...]
    retention_days: int
    secret_file: str = '.env'
    secret_file_copy_name: str = 'env-backup.txt'
    manifest_file: str = 'composer.json'
    mysqldump_binary: str = 'mysqldump'
    dump_timeout: Optional[int] = 3600

    @property
    def logs_root(self) -> Path:
        return self.backups_root / 'logs'


def resolve_project_path(path: str) -> Path:
    """Resolve the project path argument; '.' means the current directory."""
    if path == '.':
        return Path.cwd()
    return Path(path).expanduser().resolve()


def validate_directory(directory: str) -> str:
    """
    Normalize a configured backup directory.

    Args:
        directory: Directory relative to the project root

    Returns:
        Normalized POSIX relative path (no leading/trailing slashes)

    Raises:
        ConfigurationError: If the directory is empty, absolute or escapes the project
    """
    cleaned = directory.strip().strip('/')
    if not cleaned or directory.strip().startswith('/'):
        raise ConfigurationError(f"Backup directory must be a relative path: '{directory}'")

    parts = PurePosixPath(cleaned).parts
    if not parts:
        raise ConfigurationError(f"Backup directory must name a subdirectory: '{directory}'")
    if '..' in parts:
        raise ConfigurationError(f"Backup directory may not contain '..': '{directory}'")

    return str(PurePosixPath(*parts))


def load_settings(project_path, app_config, retention_days: Optional[int] = None) -> BackupSettings:
    """
    Load and validate settings for a Craft CMS project.

    Reads the project's .env without touching os.environ and checks every
    field the pipeline needs before any stage runs.

    Args:
        project_path: Path to the Craft CMS project root
        app_config: Mapping of application configuration (Flask app.config)
        retention_days: Optional override of RETENTION_DAYS

    Returns:
        BackupSettings instance

    Raises:
        ConfigurationError: If anything is missing or invalid
    """
    project_root = Path(project_path)
    if not project_root.is_dir():
        raise ConfigurationError(f"Invalid path to the CraftCMS project: {project_root}")

    secret_file = app_config.get('SECRET_FILE', '.env')
    env_path = project_root / secret_file
    if not env_path.is_file():
        raise ConfigurationError(
            f"The {secret_file} file does not exist in the project path, "
            f"are you sure this is a CraftCMS project? ({project_root})"
        )

    values = dotenv_values(env_path)
    for name in REQUIRED_DB_VARIABLES:
        if not values.get(name):
            raise ConfigurationError(f"The {name} variable is not set in the {secret_file} file")

    try:
        port = int(values['CRAFT_DB_PORT'])
    except ValueError:
        raise ConfigurationError(f"CRAFT_DB_PORT must be an integer: '{values['CRAFT_DB_PORT']}'")
    if not 0 < port < 65536:
        raise ConfigurationError(f"CRAFT_DB_PORT out of range: {port}")

    if retention_days is None:
        retention_days = app_config.get('RETENTION_DAYS', 14)
    try:
        retention_days = int(retention_days)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Retention days must be an integer: '{retention_days}'")
    if retention_days < 1:
        raise ConfigurationError(f"Retention days must be at least 1, got {retention_days}")

    directories = tuple(
        validate_directory(d)
        for d in app_config.get('BACKUP_DIRECTORIES', DEFAULT_BACKUP_DIRECTORIES)
    )

    credentials = DatabaseCredentials(
        host=values['CRAFT_DB_SERVER'],
        port=port,
        user=values['CRAFT_DB_USER'],
        password=values['CRAFT_DB_PASSWORD'],
    )

    return BackupSettings(
        project_root=project_root,
        project_name=project_root.name,
        backups_root=project_root / app_config.get('BACKUPS_DIRNAME', 'backups'),
        database=values['CRAFT_DB_DATABASE'],
        credentials=credentials,
        directories=directories,
        retention_days=retention_days,
        secret_file=secret_file,
        secret_file_copy_name=app_config.get('SECRET_FILE_COPY_NAME', 'env-backup.txt'),
        manifest_file=app_config.get('MANIFEST_FILE', 'composer.json'),
        mysqldump_binary=app_config.get('MYSQLDUMP_BINARY', 'mysqldump'),
        dump_timeout=app_config.get('DUMP_TIMEOUT', 3600),
    )


def check_requirements(settings: BackupSettings):
    """
    Check that the external tools the pipeline needs are installed.

    Raises:
        ConfigurationError: If a required command is not on PATH
    """
    binary = settings.mysqldump_binary
    if shutil.which(binary) is None:
        raise ConfigurationError(
            f"{binary} is not installed on the system. "
            f"To install it run: sudo apt install mysql-client"
        )
