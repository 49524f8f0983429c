import os
import logging
from flask import Flask


def configure_logging(app):
    """Configure application logging"""

    level_name = str(app.config.get('LOG_LEVEL', 'INFO')).upper()
    log_level = logging.DEBUG if app.config.get('DEBUG', False) else getattr(logging, level_name, logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    # Configure package logger (replace the handler on repeated app creation)
    package_logger = logging.getLogger('craftbackup')
    for handler in list(package_logger.handlers):
        if getattr(handler, '_craftbackup_console', False):
            package_logger.removeHandler(handler)
    console_handler._craftbackup_console = True
    package_logger.addHandler(console_handler)
    package_logger.setLevel(log_level)

    # Configure Flask app logger
    app.logger.setLevel(log_level)

    app.logger.debug(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_app(config_name=None):
    """Flask application factory"""

    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('CRAFTBACKUP_ENV', 'production')

    from craftbackup.config import config
    app.config.from_object(config[config_name])

    # Configure logging
    configure_logging(app)

    # Register command groups
    from craftbackup.commands import backup_commands
    app.register_blueprint(backup_commands.bp)

    return app
