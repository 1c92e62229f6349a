"""
Adapter factory: builds a filesystem adapter from a provider configuration.
"""

import logging
from typing import Any, Mapping

from ..exceptions import AdapterError, StorageError
from .adapters.base import FilesystemAdapter
from .drivers import get_driver, validate_configuration

logger = logging.getLogger(__name__)


def build_adapter(configuration: Mapping[str, Any]) -> FilesystemAdapter:
    """
    Create a filesystem adapter based on configuration.

    Args:
        configuration: Decrypted provider configuration including 'driver'

    Returns:
        FilesystemAdapter bound to the configuration

    Raises:
        UnsupportedDriverError: If the driver is missing or not registered
        ValidationError: If driver-required fields are missing
        AdapterError: If the backend client cannot be constructed
    """
    driver = configuration.get("driver")
    # A missing driver is an unsupported driver here, not a field error
    get_driver(driver)
    spec = validate_configuration(configuration)

    try:
        adapter = spec.builder(configuration)
    except StorageError:
        raise
    except Exception as e:
        logger.error(f"Failed to build {driver} adapter: {e}")
        raise AdapterError(f"Could not create {driver} adapter: {str(e)}") from e

    logger.info(f"Created {driver} filesystem adapter")
    return adapter
