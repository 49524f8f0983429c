"""
APScheduler configuration for recurring backups.

Runs silent backups of one project on a cron schedule in the foreground.
"""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from craftbackup.config import load_settings
from craftbackup.backup.executor import execute_backup
from craftbackup.errors import BackupError


logger = logging.getLogger(__name__)

# Global scheduler instance and Flask app reference
scheduler = None
flask_app = None


def init_scheduler(app):
    """
    Initialize and configure APScheduler.

    Args:
        app: Flask app instance

    Returns:
        BlockingScheduler instance
    """
    global scheduler, flask_app

    if scheduler is not None:
        return scheduler

    # Store Flask app reference for use in job callbacks
    flask_app = app

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one instance of a job at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BlockingScheduler(
        job_defaults=job_defaults,
        timezone=app.config.get('SCHEDULER_TIMEZONE', 'UTC')
    )

    return scheduler


def add_backup_job(project_path, cron_expression: str, transcript: bool = True):
    """
    Schedule recurring backups of a project.

    Args:
        project_path: Craft CMS project root
        cron_expression: Standard 5-field crontab expression
        transcript: Write a log file for every run

    Raises:
        RuntimeError: If the scheduler is not initialized
        ValueError: If the cron expression is invalid
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    trigger = CronTrigger.from_crontab(
        cron_expression,
        timezone=flask_app.config.get('SCHEDULER_TIMEZONE', 'UTC')
    )

    return scheduler.add_job(
        func=_execute_backup_wrapper,
        args=[str(project_path), transcript],
        trigger=trigger,
        id=f"backup_{project_path}",
        name=f"Backup: {project_path}",
        replace_existing=True
    )


def start_scheduler():
    """
    Start the scheduler. Blocks until interrupted.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    for job in scheduler.get_jobs():
        logger.info("Scheduled %s (%s)", job.name, job.trigger)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


def stop_scheduler():
    """Stop the scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
    scheduler = None


def _execute_backup_wrapper(project_path: str, transcript: bool = True):
    """
    Run one scheduled backup.

    Settings are reloaded for every run so .env changes are picked up.
    Failures are logged; the schedule keeps running.
    """
    with flask_app.app_context():
        try:
            settings = load_settings(project_path, flask_app.config)
        except BackupError as e:
            logger.error("Scheduled backup of %s not started: %s", project_path, e)
            return None

        run = execute_backup(settings, transcript=transcript)
        if run.succeeded:
            logger.info("Scheduled backup of %s completed: %s", project_path, run.archive_path)
        else:
            logger.error(
                "Scheduled backup of %s failed during %s stage (exit code %s)",
                project_path, run.failed_stage, run.exit_code
            )
        return run
