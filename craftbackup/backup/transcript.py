"""
Per-run log file.

Attaches a FileHandler to the package logger for the duration of one run so
everything the pipeline logs at INFO and above lands in
<backups>/logs/backup-<timestamp>.log.
"""

import logging
from pathlib import Path


logger = logging.getLogger(__name__)

PACKAGE_LOGGER = 'craftbackup'


class RunTranscript:
    """
    File handler bound to the craftbackup logger between open() and close().
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._handler = None
        self._previous_level = None

    @property
    def is_open(self) -> bool:
        return self._handler is not None

    def open(self) -> bool:
        """
        Start writing the log file.

        A log file that cannot be created is reported and the run continues
        without one.

        Returns:
            True if the file handler is attached
        """
        if self._handler is not None:
            return True

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path)
        except OSError as e:
            logger.warning("Cannot write log file %s: %s", self.path, e)
            return False
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(message)s'))

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        self._previous_level = package_logger.level
        # The file records INFO even when the console is quieter
        if package_logger.getEffectiveLevel() > logging.INFO:
            package_logger.setLevel(logging.INFO)
        package_logger.addHandler(handler)
        self._handler = handler
        return True

    def close(self):
        """Detach and close the handler, restoring the logger level. Idempotent."""
        if self._handler is None:
            return
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.removeHandler(self._handler)
        package_logger.setLevel(self._previous_level)
        self._handler.close()
        self._handler = None
        self._previous_level = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
