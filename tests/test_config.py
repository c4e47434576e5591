"""Tests for configuration management."""

import pytest
import tempfile
import os

from pds_migrate.config.config import Config, PDSInstanceConfig


class TestPDSInstanceConfig:
    """Test PDS instance configuration."""

    def test_valid_config(self):
        """Test valid configuration creation."""
        config = PDSInstanceConfig(
            url='https://pds.example.com',
            timeout=30,
            rate_limit_per_second=10,
        )

        assert config.url == 'https://pds.example.com'
        assert config.timeout == 30
        assert config.rate_limit_per_second == 10

    def test_url_validation(self):
        """Test URL validation."""
        valid_urls = [
            'https://bsky.social',
            'https://pds.example.com',
            'http://localhost:2583',
        ]

        for url in valid_urls:
            config = PDSInstanceConfig(url=url)
            assert config.url == url

    def test_trailing_slash_removed(self):
        """Trailing slashes are dropped."""
        assert PDSInstanceConfig(url='https://pds.example.com/').url == (
            'https://pds.example.com'
        )

    def test_invalid_url(self):
        """URLs without a scheme are rejected."""
        with pytest.raises(ValueError):
            PDSInstanceConfig(url='pds.example.com')

    def test_invalid_rate_limit(self):
        """Rate limits must be positive."""
        with pytest.raises(ValueError):
            PDSInstanceConfig(url='https://pds.example.com', rate_limit_per_second=0)


class TestConfig:
    """Test main configuration class."""

    def test_config_creation(self):
        """Test configuration creation with defaults."""
        config = Config(destination=PDSInstanceConfig(url='https://pds.example.com'))

        assert config.source.url == 'https://bsky.social'
        assert config.destination.url == 'https://pds.example.com'
        assert config.migration.blob_page_size == 100
        assert config.logging.level == 'INFO'

    def test_config_from_dict(self):
        """Test configuration creation from dictionary."""
        config_dict = {
            'source': {'url': 'https://old.example.com'},
            'destination': {'url': 'https://new.example.com'},
            'migration': {'blob_page_size': 25},
            'logging': {'level': 'debug'},
        }

        config = Config(**config_dict)
        assert config.source.url == 'https://old.example.com'
        assert config.destination.url == 'https://new.example.com'
        assert config.migration.blob_page_size == 25
        assert config.logging.level == 'DEBUG'

    def test_destination_required(self):
        """There is no default destination."""
        with pytest.raises(ValueError):
            Config()

    def test_blob_page_size_bounds(self):
        """listBlobs limits outside 1..1000 are rejected."""
        with pytest.raises(ValueError):
            Config(
                destination={'url': 'https://pds.example.com'},
                migration={'blob_page_size': 1001},
            )

    def test_extra_fields_forbidden(self):
        """Unknown top-level keys are rejected."""
        with pytest.raises(ValueError):
            Config(destination={'url': 'https://pds.example.com'}, git={})

    def test_config_from_file(self):
        """Test configuration loading from YAML file."""
        config_content = """
source:
  url: https://bsky.social

destination:
  url: https://pds.example.com
  timeout: 60

migration:
  blob_page_size: 50
"""

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(config_content)
            f.flush()

            try:
                config = Config.from_file(f.name)
                assert config.source.url == 'https://bsky.social'
                assert config.destination.url == 'https://pds.example.com'
                assert config.destination.timeout == 60
                assert config.migration.blob_page_size == 50
            finally:
                os.unlink(f.name)

    def test_config_from_env(self, monkeypatch):
        """Test configuration loading from environment variables."""
        monkeypatch.setenv('SOURCE_PDS_URL', 'https://old.example.com')
        monkeypatch.setenv('DEST_PDS_URL', 'https://new.example.com')
        monkeypatch.setenv('PDS_TIMEOUT', '45')
        monkeypatch.setenv('MIGRATION_BLOB_PAGE_SIZE', '75')
        monkeypatch.setenv('LOG_LEVEL', 'warning')

        config = Config.from_env()

        assert config.source.url == 'https://old.example.com'
        assert config.destination.url == 'https://new.example.com'
        assert config.source.timeout == 45
        assert config.migration.blob_page_size == 75
        assert config.logging.level == 'WARNING'

    def test_template_round_trip(self):
        """The generated template loads as a valid configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'nested', 'config.yaml')

            Config.create_template(path)
            config = Config.from_file(path)

        assert config.source.url == 'https://bsky.social'
        assert config.destination.url == 'https://pds.example.com'

    def test_to_file(self):
        """Saved configuration loads back unchanged."""
        config = Config(destination={'url': 'https://pds.example.com'})

        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'config.yaml')
            config.to_file(path)

            assert Config.from_file(path) == config

    def test_invalid_config_file(self):
        """Test handling of invalid configuration file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write('invalid: yaml: content:')
            f.flush()

            try:
                with pytest.raises(Exception):
                    Config.from_file(f.name)
            finally:
                os.unlink(f.name)

    def test_missing_config_file(self):
        """Test handling of missing configuration file."""
        with pytest.raises(FileNotFoundError):
            Config.from_file('/nonexistent/config.yaml')
