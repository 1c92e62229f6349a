"""
Encryption of provider configuration at rest.

Configurations are serialized as JSON objects and wrapped in Fernet tokens.
Decryption always yields a plain dictionary; no arbitrary object graphs are
ever deserialized.
"""

import json
import logging
from typing import Any, Dict, Mapping, Union

from cryptography.fernet import Fernet, InvalidToken

from .exceptions import EncryptionError, StorageConfigurationError

logger = logging.getLogger(__name__)


class ConfigCipher:
    """Encrypts and decrypts provider configuration dictionaries."""

    def __init__(self, key: Union[str, bytes]):
        """
        Initialize cipher.

        Args:
            key: URL-safe base64-encoded 32-byte Fernet key

        Raises:
            StorageConfigurationError: If the key is malformed
        """
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise StorageConfigurationError(f"Invalid encryption key: {e}") from e

    @staticmethod
    def generate_key() -> str:
        """Generate a fresh key suitable for FILEDOCK_ENCRYPTION_KEY."""
        return Fernet.generate_key().decode('ascii')

    def encrypt(self, configuration: Mapping[str, Any]) -> str:
        """
        Encrypt a configuration dictionary.

        Returns:
            Fernet token as text
        """
        try:
            payload = json.dumps(dict(configuration), sort_keys=True).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Configuration is not serializable: {e}") from e
        return self._fernet.encrypt(payload).decode('ascii')

    def decrypt(self, token: Union[str, bytes]) -> Dict[str, Any]:
        """
        Decrypt a token produced by encrypt().

        Raises:
            EncryptionError: If the token is invalid, tampered with or does
                not hold a JSON object
        """
        if isinstance(token, str):
            token = token.encode('ascii')
        try:
            payload = self._fernet.decrypt(token)
        except InvalidToken as e:
            logger.error("Failed to decrypt provider configuration: invalid token")
            raise EncryptionError("Configuration could not be decrypted") from e

        try:
            configuration = json.loads(payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise EncryptionError(f"Decrypted configuration is not valid JSON: {e}") from e

        if not isinstance(configuration, dict):
            raise EncryptionError("Decrypted configuration is not an object")
        return configuration
