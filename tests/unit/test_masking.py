"""
Unit tests for secret masking (craftbackup/utils/masking.py).
"""

import pytest

from craftbackup.utils.masking import display_value, is_secret_name, mask_secret


class TestMaskSecret:
    """Test mask_secret."""

    @pytest.mark.parametrize("value,expected", [
        ('Sup3rS3cretPass', '***********Pass'),
        ('12345', '*2345'),
        ('1234', '****'),
        ('ab', '**'),
        ('', ''),
    ])
    def test_mask(self, value, expected):
        assert mask_secret(value) == expected

    def test_masked_value_keeps_length(self):
        assert len(mask_secret('Sup3rS3cretPass')) == len('Sup3rS3cretPass')


class TestDisplayValue:
    """Test display_value."""

    @pytest.mark.parametrize("name", ['CRAFT_DB_PASSWORD', 'CRAFT_SECURITY_KEY', 'api_token'])
    def test_secret_names(self, name):
        assert is_secret_name(name)

    def test_plain_names_shown(self):
        assert display_value('CRAFT_DB_USER', 'craft') == 'craft'
        assert display_value('CRAFT_DB_PORT', 3306) == '3306'

    def test_secret_masked(self):
        assert display_value('CRAFT_DB_PASSWORD', 'Sup3rS3cretPass') == '***********Pass'

    def test_none(self):
        assert display_value('CRAFT_DB_PASSWORD', None) == ''
