"""
Backup command group.

    flask --app craftbackup backup run /srv/www/craftcms --silent
    flask --app craftbackup backup sweep /srv/www/craftcms --days 30
    flask --app craftbackup backup schedule /srv/www/craftcms --cron "0 2 * * *"
"""

import logging
from datetime import datetime

import click
from flask import Blueprint, current_app
from flask.cli import FlaskGroup

from craftbackup.config import check_requirements, load_settings, resolve_project_path
from craftbackup.errors import BackupError
from craftbackup.backup.executor import BackupExecutor, generate_run_id
from craftbackup.backup.retention import enforce_retention
from craftbackup.backup.transcript import RunTranscript
from craftbackup.utils.masking import display_value


logger = logging.getLogger(__name__)

bp = Blueprint('backup', __name__, cli_group='backup')

CHECK = '✔'


def _print_header():
    click.secho('  ------------------------------------------------ ', fg='yellow')
    click.secho(
        f"  CraftCMS Backup Script -  Started: {datetime.now().strftime('%Y-%m-%d (%H:%M:%S)')} ",
        fg='yellow'
    )
    click.echo()


def _print_settings(settings):
    rows = [
        ('CRAFT_DB_DATABASE', settings.database),
        ('CRAFT_DB_SERVER', settings.credentials.host),
        ('CRAFT_DB_PORT', settings.credentials.port),
        ('CRAFT_DB_USER', settings.credentials.user),
        ('CRAFT_DB_PASSWORD', settings.credentials.password),
    ]
    click.secho(f"{CHECK} - Project name set to: {settings.project_name}", fg='green')
    for name, value in rows:
        click.secho(f"    {CHECK} - Setting {name} to: {display_value(name, value)}", fg='green')
    click.secho(f"{CHECK} - Retention: {settings.retention_days} days", fg='green')
    click.secho(f"{CHECK} - Directories: {', '.join(settings.directories)}", fg='green')


def _open_transcript(project_path, timestamp):
    """
    Start the run's log file before settings are validated.

    Only possible once the project root exists; configuration errors for an
    existing project are then recorded in backups/logs.
    """
    project_root = resolve_project_path(project_path)
    if not project_root.is_dir():
        return None

    backups_root = project_root / current_app.config.get('BACKUPS_DIRNAME', 'backups')
    transcript = RunTranscript(backups_root / 'logs' / f"backup-{timestamp}.log")
    return transcript if transcript.open() else None


def _load(project_path, retention_days=None):
    """Resolve and validate project settings, exiting on configuration errors."""
    ctx = click.get_current_context()
    try:
        settings = load_settings(
            resolve_project_path(project_path),
            current_app.config,
            retention_days=retention_days
        )
        check_requirements(settings)
    except BackupError as e:
        logger.error("Backup not started: %s", e)
        click.secho(str(e), fg='red', err=True)
        ctx.exit(e.exit_code)
    return settings


@bp.cli.command('run')
@click.argument('project_path', required=False)
@click.option('-s', '--silent', is_flag=True, help='Suppress all confirmations and prompts.')
@click.option('--no-log', 'no_log', is_flag=True, help='Disable logging to file.')
@click.option('--days', 'retention_days', type=int, default=None,
              help='Retention window in days (default: RETENTION_DAYS).')
def run_command(project_path, silent, no_log, retention_days):
    """Back up a CraftCMS project's database and files."""
    ctx = click.get_current_context()
    _print_header()

    if not project_path:
        if silent:
            click.secho("A project path is required in silent mode.", fg='red', err=True)
            ctx.exit(2)
        project_path = click.prompt(
            'Enter the path to the CraftCMS project',
            default=current_app.config['DEFAULT_BASE_PATH']
        )

    timestamp = generate_run_id()
    transcript = None
    if current_app.config.get('LOGGING_ENABLED', True) and not no_log:
        transcript = _open_transcript(project_path, timestamp)

    try:
        settings = _load(project_path, retention_days)
        click.secho(f"{CHECK} - CraftCMS project path is valid: {settings.project_root}", fg='green')

        if not silent:
            _print_settings(settings)
            click.secho(f"{CHECK} - Good to go!", fg='green')
            click.echo()
            if not click.confirm('Are you sure you want to continue with the backup?', default=True):
                logger.info("Backup cancelled by user")
                click.echo('Backup cancelled. Exiting.')
                ctx.exit(1)

        run = BackupExecutor(settings, timestamp=timestamp).execute()
    finally:
        if transcript is not None:
            transcript.close()

    if run.succeeded:
        click.secho(f"{CHECK} - Backup filename: {run.archive_path.name}", fg='green')
        click.secho(
            f"{CHECK} - Script finished on: {run.completed_at.strftime('%Y-%m-%d (%H:%M:%S)')}",
            fg='green'
        )
        click.secho('  ------------------------------------------------ ', fg='yellow')
    else:
        click.secho(
            f"Backup Script Failed during the {run.failed_stage} stage: {run.error}",
            fg='red',
            err=True
        )
    ctx.exit(run.exit_code)


@bp.cli.command('sweep')
@click.argument('project_path')
@click.option('--days', 'retention_days', type=int, default=None,
              help='Retention window in days (default: RETENTION_DAYS).')
def sweep_command(project_path, retention_days):
    """Remove archives and logs older than the retention window."""
    ctx = click.get_current_context()
    settings = _load(project_path, retention_days)

    try:
        result = enforce_retention(
            settings.backups_root,
            settings.logs_root,
            settings.retention_days
        )
    except BackupError as e:
        click.secho(str(e), fg='red', err=True)
        ctx.exit(e.exit_code)

    click.secho(
        f"{CHECK} - Removed {len(result['archives'])} archives and {len(result['logs'])} logs",
        fg='green'
    )


@bp.cli.command('schedule')
@click.argument('project_path')
@click.option('--cron', 'cron_expression', required=True,
              help='Crontab expression, e.g. "0 2 * * *".')
@click.option('--no-log', 'no_log', is_flag=True, help='Disable logging to file.')
def schedule_command(project_path, cron_expression, no_log):
    """Run silent backups on a cron schedule (blocks)."""
    from craftbackup.scheduler import init_scheduler, add_backup_job, start_scheduler

    ctx = click.get_current_context()
    settings = _load(project_path)

    init_scheduler(current_app._get_current_object())
    try:
        add_backup_job(
            settings.project_root,
            cron_expression,
            transcript=current_app.config.get('LOGGING_ENABLED', True) and not no_log
        )
    except ValueError as e:
        click.secho(f"Invalid cron expression '{cron_expression}': {e}", fg='red', err=True)
        ctx.exit(2)

    click.secho(f"{CHECK} - Scheduled backups of {settings.project_name}: {cron_expression}", fg='green')
    start_scheduler()


def _create_app():
    from craftbackup import create_app
    return create_app()


@click.group(cls=FlaskGroup, create_app=_create_app, add_default_commands=False, load_dotenv=False)
def cli():
    """craftbackup command line."""


def main():
    cli()
