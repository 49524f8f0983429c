"""
Unit tests for the staging tree (craftbackup/backup/staging.py).
"""

from unittest.mock import patch

import pytest

from craftbackup.backup.staging import StagingManager, StagingTree
from craftbackup.errors import FilesystemError


class TestStagingManager:
    """Test StagingManager.create."""

    def test_create_builds_tree(self, tmp_path):
        """Test root, files/ and db/ are created under the backups root."""
        backups = tmp_path / 'backups'

        tree = StagingManager(backups).create('2025-04-25-13-05-09')

        assert tree.root == backups / '2025-04-25-13-05-09'
        assert tree.files_dir.is_dir()
        assert tree.db_dir.is_dir()
        assert tree.exists()

    def test_create_makes_missing_backups_root(self, tmp_path):
        """Test the backups root is created with parents."""
        backups = tmp_path / 'deep' / 'backups'

        StagingManager(backups).create('ts')

        assert backups.is_dir()

    def test_create_reuses_existing_backups_root(self, tmp_path):
        """Test an existing backups root with other runs is left alone."""
        backups = tmp_path / 'backups'
        backups.mkdir()
        (backups / 'backup-site-old.tar.gz').write_bytes(b'old')

        StagingManager(backups).create('ts')

        assert (backups / 'backup-site-old.tar.gz').exists()

    def test_existing_staging_directory_raises_error(self, tmp_path):
        """Test a leftover tree with the same timestamp is never reused."""
        manager = StagingManager(tmp_path / 'backups')
        manager.create('ts')

        with pytest.raises(FilesystemError, match="already exists"):
            manager.create('ts')

    def test_backups_root_is_a_file_raises_error(self, tmp_path):
        """Test a file in place of the backups root raises FilesystemError."""
        backups = tmp_path / 'backups'
        backups.write_text('not a directory')

        with pytest.raises(FilesystemError):
            StagingManager(backups).create('ts')

    def test_mkdir_failure_raises_error(self, tmp_path):
        """Test an OS error while creating subdirectories raises FilesystemError."""
        manager = StagingManager(tmp_path / 'backups')

        with patch('craftbackup.backup.staging.os.mkdir', side_effect=PermissionError("denied")):
            with pytest.raises(FilesystemError):
                manager.create('ts')

    def test_unverifiable_tree_raises_error(self, tmp_path):
        """Test a tree that cannot be verified after creation raises FilesystemError."""
        manager = StagingManager(tmp_path / 'backups')

        with patch.object(StagingTree, 'exists', return_value=False):
            with pytest.raises(FilesystemError, match="verify"):
                manager.create('ts')


class TestStagingTree:
    """Test StagingTree paths."""

    def test_paths(self, tmp_path):
        tree = StagingTree(tmp_path / 'ts')

        assert tree.files_dir == tmp_path / 'ts' / 'files'
        assert tree.db_dir == tmp_path / 'ts' / 'db'
        assert tree.exists() is False
