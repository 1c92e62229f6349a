"""
Unit tests for settings loading.
"""

import pytest
import yaml

from filedock.config import load_settings
from filedock.crypto import ConfigCipher
from filedock.exceptions import StorageConfigurationError

ENV_VARS = (
    "FILEDOCK_DATABASE_URL",
    "FILEDOCK_ENCRYPTION_KEY",
    "FILEDOCK_CONNECTION_TEST_MODE",
    "FILEDOCK_TEST_ON_SAVE",
    "FILEDOCK_DOWNLOAD_CHUNK_SIZE",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def key():
    return ConfigCipher.generate_key()


def write_config(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestLoadSettings:
    """Test cases for load_settings."""

    def test_from_file(self, tmp_path, key):
        config_path = write_config(tmp_path / "filedock.yaml", {
            "filedock": {
                "database": {"url": "sqlite://"},
                "encryption": {"key": key},
                "connection_test": {"mode": "list", "on_save": False},
            }
        })

        settings = load_settings(config_path)

        assert settings.database.url == "sqlite://"
        assert settings.encryption.key == key
        assert settings.connection_test.mode == "list"
        assert settings.connection_test.on_save is False
        assert settings.transfer.download_chunk_size == 64 * 1024

    def test_environment_overrides(self, tmp_path, key, monkeypatch):
        """Test that environment variables win over the file."""
        config_path = write_config(tmp_path / "filedock.yaml", {
            "filedock": {"database": {"url": "sqlite:///file.db"}, "encryption": {"key": "from-file"}}
        })
        monkeypatch.setenv("FILEDOCK_DATABASE_URL", "sqlite://")
        monkeypatch.setenv("FILEDOCK_ENCRYPTION_KEY", key)
        monkeypatch.setenv("FILEDOCK_TEST_ON_SAVE", "false")
        monkeypatch.setenv("FILEDOCK_DOWNLOAD_CHUNK_SIZE", "8192")

        settings = load_settings(config_path)

        assert settings.database.url == "sqlite://"
        assert settings.encryption.key == key
        assert settings.connection_test.on_save is False
        assert settings.transfer.download_chunk_size == 8192

    def test_missing_file_uses_environment(self, tmp_path, key, monkeypatch):
        monkeypatch.setenv("FILEDOCK_ENCRYPTION_KEY", key)

        settings = load_settings(tmp_path / "absent.yaml")

        assert settings.database.url == "sqlite:///filedock.db"
        assert settings.connection_test.mode == "write"

    def test_missing_key(self, tmp_path):
        with pytest.raises(StorageConfigurationError):
            load_settings(tmp_path / "absent.yaml")

    def test_missing_section(self, tmp_path, key):
        config_path = write_config(tmp_path / "filedock.yaml", {"storage": {"key": key}})

        with pytest.raises(StorageConfigurationError) as exc_info:
            load_settings(config_path)

        assert "filedock" in exc_info.value.message

    def test_invalid_yaml(self, tmp_path):
        config_path = tmp_path / "filedock.yaml"
        config_path.write_text("filedock: [unclosed", encoding="utf-8")

        with pytest.raises(StorageConfigurationError):
            load_settings(config_path)

    def test_invalid_mode(self, tmp_path, key, monkeypatch):
        monkeypatch.setenv("FILEDOCK_ENCRYPTION_KEY", key)
        monkeypatch.setenv("FILEDOCK_CONNECTION_TEST_MODE", "ping")

        with pytest.raises(StorageConfigurationError):
            load_settings(tmp_path / "absent.yaml")

    def test_invalid_chunk_size(self, tmp_path, key, monkeypatch):
        monkeypatch.setenv("FILEDOCK_ENCRYPTION_KEY", key)
        monkeypatch.setenv("FILEDOCK_DOWNLOAD_CHUNK_SIZE", "lots")

        with pytest.raises(StorageConfigurationError):
            load_settings(tmp_path / "absent.yaml")
