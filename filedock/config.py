"""
Application settings for filedock.

Settings are loaded from a YAML file and overridden by environment
variables, then validated into a pydantic model.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .exceptions import StorageConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/filedock.yaml")


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(
        "sqlite:///filedock.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(False, description="Log emitted SQL statements")


class EncryptionSettings(BaseModel):
    """Settings for encrypting provider configuration at rest."""

    key: str = Field(
        ...,
        description="URL-safe base64 Fernet key",
        min_length=1
    )


class ConnectionTestSettings(BaseModel):
    """Settings for provider connection tests."""

    mode: Literal["write", "list"] = Field(
        "write",
        description="Round-trip performed by the connection tester"
    )
    on_save: bool = Field(
        True,
        description="Test connections before persisting providers"
    )
    marker_prefix: str = Field(
        ".filedock-connection-test",
        description="Name prefix of the marker object written during a test"
    )


class TransferSettings(BaseModel):
    """Settings for streaming transfers."""

    download_chunk_size: int = Field(
        64 * 1024,
        description="Chunk size in bytes used when draining download streams",
        ge=1024
    )


class Settings(BaseModel):
    """Root settings model."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    encryption: EncryptionSettings
    connection_test: ConnectionTestSettings = Field(default_factory=ConnectionTestSettings)
    transfer: TransferSettings = Field(default_factory=TransferSettings)


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from YAML file with environment variable overrides.

    A missing file is not an error when the environment supplies everything
    required (the encryption key at minimum).

    Args:
        config_path: Path to configuration file (default: config/filedock.yaml)

    Returns:
        Validated Settings

    Raises:
        StorageConfigurationError: If loading or validation fails
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config: Dict[str, Any] = {}
    try:
        if config_path.exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict) or 'filedock' not in loaded:
                raise StorageConfigurationError("Invalid configuration: missing 'filedock' section")
            config = loaded['filedock'] or {}
        else:
            logger.info(f"Configuration file not found, using environment only: {config_path}")
    except yaml.YAMLError as e:
        raise StorageConfigurationError(f"YAML parsing error: {e}") from e
    except OSError as e:
        raise StorageConfigurationError(f"Configuration loading failed: {e}") from e

    config = _apply_environment_overrides(config)

    try:
        return Settings.model_validate(config)
    except PydanticValidationError as e:
        raise StorageConfigurationError(f"Invalid configuration: {e}") from e


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    if not isinstance(config.get(name), dict):
        config[name] = {}
    return config[name]


def _apply_environment_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern: FILEDOCK_<SECTION>_<KEY>
    """
    database_url = os.getenv('FILEDOCK_DATABASE_URL')
    if database_url:
        _section(config, 'database')['url'] = database_url
        logger.info("Database URL overridden by environment")

    encryption_key = os.getenv('FILEDOCK_ENCRYPTION_KEY')
    if encryption_key:
        _section(config, 'encryption')['key'] = encryption_key
        logger.info("Encryption key overridden by environment")

    test_mode = os.getenv('FILEDOCK_CONNECTION_TEST_MODE')
    if test_mode:
        _section(config, 'connection_test')['mode'] = test_mode
        logger.info(f"Connection test mode overridden by environment: {test_mode}")

    test_on_save = os.getenv('FILEDOCK_TEST_ON_SAVE')
    if test_on_save:
        _section(config, 'connection_test')['on_save'] = test_on_save.lower() in ('1', 'true', 'yes')
        logger.info(f"Connection test on save overridden by environment: {test_on_save}")

    chunk_size = os.getenv('FILEDOCK_DOWNLOAD_CHUNK_SIZE')
    if chunk_size:
        try:
            _section(config, 'transfer')['download_chunk_size'] = int(chunk_size)
        except ValueError as e:
            raise StorageConfigurationError(
                f"FILEDOCK_DOWNLOAD_CHUNK_SIZE must be an integer, got {chunk_size!r}"
            ) from e
        logger.info(f"Download chunk size overridden by environment: {chunk_size}")

    return config
