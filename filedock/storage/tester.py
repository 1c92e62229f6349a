"""
Connection tester for storage provider configurations.
"""

import io
import logging
import uuid
from typing import Any, Callable, Literal, Mapping

from ..exceptions import (
    NotFoundError,
    StorageConnectionError,
    StorageError,
    UnsupportedDriverError,
    ValidationError,
)
from ..models.provider import ProviderConfig
from .adapters.base import FilesystemAdapter
from .factory import build_adapter

logger = logging.getLogger(__name__)

MARKER_CONTENT = b"filedock connection test\n"


class ConnectionTester:
    """
    Checks that a configuration reaches its backend with working credentials.

    In 'write' mode a small marker object is written and deleted again; in
    'list' mode the root is listed. Nothing needs to be persisted first.
    """

    def __init__(
        self,
        mode: Literal["write", "list"] = "write",
        marker_prefix: str = ".filedock-connection-test",
        adapter_factory: Callable[[Mapping[str, Any]], FilesystemAdapter] = build_adapter,
    ):
        if mode not in ("write", "list"):
            raise ValueError(f"Unknown connection test mode: {mode}")
        self.mode = mode
        self.marker_prefix = marker_prefix
        self._adapter_factory = adapter_factory

    def test(self, configuration: Mapping[str, Any]) -> None:
        """
        Test a configuration.

        Raises:
            UnsupportedDriverError: If the driver is not registered
            ValidationError: If driver-required fields are missing
            StorageConnectionError: If the backend cannot be reached or the
                round-trip fails
        """
        driver = configuration.get("driver")
        try:
            adapter = self._adapter_factory(configuration)
        except (UnsupportedDriverError, ValidationError):
            raise
        except StorageError as e:
            raise StorageConnectionError(f"Connection test failed: {e.message}") from e

        if self.mode == "list":
            self._list_root(adapter)
        else:
            self._write_and_delete(adapter)

        logger.info(f"Connection test passed for {driver} provider ({self.mode} mode)")

    def test_provider(self, provider: ProviderConfig) -> None:
        """Test an already saved provider."""
        self.test(provider.configuration)

    def _list_root(self, adapter: FilesystemAdapter) -> None:
        try:
            next(iter(adapter.list_contents("", False)), None)
        except Exception as e:
            logger.error(f"Connection test listing failed: {e}")
            raise StorageConnectionError(f"Connection test failed: {str(e)}") from e

    def _write_and_delete(self, adapter: FilesystemAdapter) -> None:
        marker = f"{self.marker_prefix}-{uuid.uuid4().hex}"
        # A failed write may still leave the object behind, so cleanup covers it too
        pending = True
        try:
            with io.BytesIO(MARKER_CONTENT) as stream:
                adapter.write_stream(marker, stream, mime_type="text/plain", visibility="private")
            adapter.delete(marker)
            pending = False
        except Exception as e:
            logger.error(f"Connection test round-trip failed on marker '{marker}': {e}")
            raise StorageConnectionError(f"Connection test failed: {str(e)}") from e
        finally:
            if pending:
                self._cleanup(adapter, marker)

    @staticmethod
    def _cleanup(adapter: FilesystemAdapter, marker: str) -> None:
        try:
            adapter.delete(marker)
        except NotFoundError:
            logger.debug(f"Connection test marker '{marker}' was never created")
        except Exception as e:
            logger.error(f"Could not remove connection test marker '{marker}': {e}")
