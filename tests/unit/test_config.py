"""
Unit tests for configuration loading (craftbackup/config.py).
"""

import os
from dataclasses import FrozenInstanceError
from pathlib import Path
from unittest.mock import patch

import pytest

from craftbackup.config import (
    BackupSettings,
    DEFAULT_BACKUP_DIRECTORIES,
    check_requirements,
    config,
    load_settings,
    resolve_project_path,
    validate_directory,
)
from craftbackup.errors import ConfigurationError


class TestLoadSettings:
    """Test load_settings with a valid and invalid projects."""

    def test_load_settings_valid_project(self, app, craft_project):
        """Test all fields are read from .env and app config."""
        settings = load_settings(craft_project, app.config)

        assert isinstance(settings, BackupSettings)
        assert settings.project_root == craft_project
        assert settings.project_name == 'mysite'
        assert settings.backups_root == craft_project / 'backups'
        assert settings.logs_root == craft_project / 'backups' / 'logs'
        assert settings.database == 'craft_test'
        assert settings.credentials.host == '127.0.0.1'
        assert settings.credentials.port == 3306
        assert settings.credentials.user == 'craft'
        assert settings.credentials.password == 'Sup3rS3cretPass'
        assert settings.directories == DEFAULT_BACKUP_DIRECTORIES
        assert settings.retention_days == 14

    def test_settings_are_immutable(self, settings):
        """Test settings cannot be modified after loading."""
        with pytest.raises(FrozenInstanceError):
            settings.retention_days = 0

    def test_password_not_in_repr(self, settings):
        """Test the password does not leak through repr()."""
        assert 'Sup3rS3cretPass' not in repr(settings)

    def test_env_not_loaded_into_environment(self, app, craft_project):
        """Test reading .env does not touch os.environ."""
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('CRAFT_DB_PASSWORD', None)
            load_settings(craft_project, app.config)
            assert 'CRAFT_DB_PASSWORD' not in os.environ

    def test_retention_override(self, app, craft_project):
        """Test explicit retention days override the config default."""
        settings = load_settings(craft_project, app.config, retention_days=30)

        assert settings.retention_days == 30

    def test_configured_directories(self, app, craft_project):
        """Test BACKUP_DIRECTORIES is normalized and kept in order."""
        app.config['BACKUP_DIRECTORIES'] = ('modules/', 'config', 'web//js')

        settings = load_settings(craft_project, app.config)

        assert settings.directories == ('modules', 'config', 'web/js')

    def test_missing_project_raises_error(self, app, tmp_path):
        """Test nonexistent project root raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Invalid path"):
            load_settings(tmp_path / 'missing', app.config)

    def test_missing_env_raises_error(self, app, craft_project):
        """Test project without .env raises ConfigurationError."""
        (craft_project / '.env').unlink()

        with pytest.raises(ConfigurationError, match=".env file does not exist"):
            load_settings(craft_project, app.config)

    @pytest.mark.parametrize("variable", [
        'CRAFT_DB_DATABASE',
        'CRAFT_DB_SERVER',
        'CRAFT_DB_PORT',
        'CRAFT_DB_USER',
        'CRAFT_DB_PASSWORD',
    ])
    def test_missing_variable_raises_error(self, app, craft_project, variable):
        """Test every required database variable is checked."""
        env = craft_project / '.env'
        lines = [line for line in env.read_text().splitlines() if not line.startswith(f"{variable}=")]
        env.write_text('\n'.join(lines) + '\n')

        with pytest.raises(ConfigurationError, match=variable):
            load_settings(craft_project, app.config)

    def test_empty_variable_raises_error(self, app, craft_project):
        """Test an empty value counts as missing."""
        env = craft_project / '.env'
        env.write_text(env.read_text().replace('CRAFT_DB_USER=craft', 'CRAFT_DB_USER='))

        with pytest.raises(ConfigurationError, match="CRAFT_DB_USER"):
            load_settings(craft_project, app.config)

    @pytest.mark.parametrize("port", ['abc', '0', '70000'])
    def test_invalid_port_raises_error(self, app, craft_project, port):
        """Test non-numeric and out of range ports are rejected."""
        env = craft_project / '.env'
        env.write_text(env.read_text().replace('CRAFT_DB_PORT=3306', f'CRAFT_DB_PORT={port}'))

        with pytest.raises(ConfigurationError, match="CRAFT_DB_PORT"):
            load_settings(craft_project, app.config)

    @pytest.mark.parametrize("days", [0, -1])
    def test_non_positive_retention_raises_error(self, app, craft_project, days):
        """Test zero or negative retention is rejected before any stage runs."""
        with pytest.raises(ConfigurationError, match="at least 1"):
            load_settings(craft_project, app.config, retention_days=days)


class TestValidateDirectory:
    """Test validate_directory normalization."""

    @pytest.mark.parametrize("directory,expected", [
        ("config", "config"),
        ("config/", "config"),
        ("web/css", "web/css"),
        ("./web/js", "web/js"),
        ("web//js/", "web/js"),
    ])
    def test_valid_directories(self, directory, expected):
        assert validate_directory(directory) == expected

    @pytest.mark.parametrize("directory", ["", "/", ".", "/etc", "../other", "web/../../etc"])
    def test_invalid_directories(self, directory):
        with pytest.raises(ConfigurationError):
            validate_directory(directory)


class TestResolveProjectPath:
    """Test resolve_project_path."""

    def test_dot_is_current_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert resolve_project_path('.') == Path.cwd()

    def test_relative_path_is_resolved(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / 'site').mkdir()

        assert resolve_project_path('site') == (tmp_path / 'site').resolve()


class TestCheckRequirements:
    """Test check_requirements."""

    def test_mysqldump_available(self, settings):
        with patch('craftbackup.config.shutil.which', return_value='/usr/bin/mysqldump'):
            check_requirements(settings)

    def test_mysqldump_missing_raises_error(self, settings):
        with patch('craftbackup.config.shutil.which', return_value=None):
            with pytest.raises(ConfigurationError, match="not installed"):
                check_requirements(settings)


class TestConfigClasses:
    """Test configuration class mapping."""

    def test_config_names(self):
        assert set(config) == {'development', 'testing', 'production', 'default'}
        assert config['default'] is config['production']

    def test_testing_config_defaults(self):
        testing = config['testing']

        assert testing.TESTING is True
        assert testing.RETENTION_DAYS == 14
        assert testing.LOGGING_ENABLED is False
        assert testing.BACKUP_DIRECTORIES == DEFAULT_BACKUP_DIRECTORIES
