"""
Shared pytest fixtures for craftbackup tests.

This module provides fixtures for:
- Flask app and CLI runner
- A fake CraftCMS project tree with .env and composer.json
- Validated settings for that project
- A mocked mysqldump (subprocess.run) that records its credentials file
"""

import os
import stat
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from craftbackup import create_app
from craftbackup.config import load_settings


ENV_CONTENT = """\
CRAFT_APP_ID=CraftCMS--test
CRAFT_ENVIRONMENT=production
CRAFT_SECURITY_KEY=abcdefghijklmnop
CRAFT_DB_DRIVER=mysql
CRAFT_DB_SERVER=127.0.0.1
CRAFT_DB_PORT=3306
CRAFT_DB_DATABASE=craft_test
CRAFT_DB_USER=craft
CRAFT_DB_PASSWORD=Sup3rS3cretPass
"""

COMPOSER_CONTENT = '{"require": {"craftcms/cms": "^5.0"}}\n'


@pytest.fixture(scope='function')
def app():
    """
    Create Flask app with test configuration.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
    })
    yield app


@pytest.fixture(scope='function')
def runner(app):
    """Flask CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def craft_project(tmp_path):
    """
    Create a CraftCMS project tree.

    Creates:
    - .env with all CRAFT_DB_* variables
    - composer.json
    - config/general.php, config/project/project.yaml
    - modules/Module.php
    - web/css/site.css
    (templates/, web/js/ and translations/ are intentionally absent)
    """
    project = tmp_path / 'mysite'
    project.mkdir()

    (project / '.env').write_text(ENV_CONTENT)
    (project / 'composer.json').write_text(COMPOSER_CONTENT)

    (project / 'config' / 'project').mkdir(parents=True)
    (project / 'config' / 'general.php').write_text('<?php return [];\n')
    (project / 'config' / 'project' / 'project.yaml').write_text('system:\n  name: test\n')

    (project / 'modules').mkdir()
    (project / 'modules' / 'Module.php').write_text('<?php namespace modules;\n')

    (project / 'web' / 'css').mkdir(parents=True)
    (project / 'web' / 'css' / 'site.css').write_text('body { margin: 0; }\n')

    return project


@pytest.fixture
def settings(app, craft_project):
    """Validated settings for the craft_project fixture."""
    return load_settings(craft_project, app.config)


class FakeMysqldump:
    """
    Stand-in for subprocess.run as called by DatabaseDumper.

    Records every call together with the credentials file state seen while
    the "process" was running.
    """

    def __init__(self, returncode=0, stderr=b'', output=b'-- MySQL dump 10.13\nCREATE TABLE `users` (id int);\n'):
        self.returncode = returncode
        self.stderr = stderr
        self.output = output
        self.calls = []

    def __call__(self, cmd, stdout=None, stderr=None, timeout=None):
        defaults_file = next(
            arg.split('=', 1)[1] for arg in cmd if arg.startswith('--defaults-extra-file=')
        )
        path = Path(defaults_file)
        self.calls.append({
            'cmd': list(cmd),
            'timeout': timeout,
            'defaults_file': path,
            'defaults_exists': path.exists(),
            'defaults_mode': stat.S_IMODE(os.stat(path).st_mode) if path.exists() else None,
            'defaults_content': path.read_text() if path.exists() else None,
        })
        if stdout is not None:
            stdout.write(self.output)
        return subprocess.CompletedProcess(cmd, self.returncode, stderr=self.stderr)


@pytest.fixture
def fake_mysqldump():
    """Patch subprocess.run in the database module with a successful mysqldump."""
    fake = FakeMysqldump()
    with patch('craftbackup.backup.database.subprocess.run', side_effect=fake):
        yield fake


@pytest.fixture
def failing_mysqldump():
    """Patch subprocess.run with a mysqldump that cannot reach the server."""
    fake = FakeMysqldump(
        returncode=2,
        stderr=b"mysqldump: Got error: 2003: Can't connect to MySQL server on '127.0.0.1:3306' (111)\n",
        output=b'',
    )
    with patch('craftbackup.backup.database.subprocess.run', side_effect=fake):
        yield fake
