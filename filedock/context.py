"""
Application context: wires settings, database, cipher and storage services.

This is the entry point for callers (web handlers, CLI commands, workers).
Create one context per process; create stores and file managers per request.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from .config import Settings, load_settings
from .crypto import ConfigCipher
from .database import create_db_engine, create_session_factory, init_db
from .exceptions import StorageConfigurationError, StorageError
from .models.provider import ProviderConfig
from .storage.service import FileManagerService
from .storage.store import ProviderStore
from .storage.tester import ConnectionTester

logger = logging.getLogger(__name__)


class FiledockContext:
    """Process-wide wiring of filedock's collaborators."""

    def __init__(self, settings: Settings, create_tables: bool = True):
        """
        Initialize context.

        Args:
            settings: Validated settings
            create_tables: Create missing tables on startup
        """
        self.settings = settings
        self.cipher = ConfigCipher(settings.encryption.key)
        self.engine = create_db_engine(settings.database.url, echo=settings.database.echo)
        self.session_factory = create_session_factory(self.engine, cipher=self.cipher)
        self.connection_tester = ConnectionTester(
            mode=settings.connection_test.mode,
            marker_prefix=settings.connection_test.marker_prefix,
        )
        if create_tables:
            init_db(self.engine)

    def session(self) -> Session:
        """Open a new session carrying the configuration cipher."""
        return self.session_factory()

    def provider_store(self, session: Session) -> ProviderStore:
        tester = self.connection_tester if self.settings.connection_test.on_save else None
        return ProviderStore(session, connection_tester=tester)

    def file_manager(self, provider: Optional[ProviderConfig] = None) -> FileManagerService:
        """Create a file manager for one request, bound to provider if given."""
        return FileManagerService(
            provider,
            download_chunk_size=self.settings.transfer.download_chunk_size,
        )

    def dispose(self) -> None:
        self.engine.dispose()


def create_default_context(config_path: Optional[Path] = None) -> FiledockContext:
    """
    Create a context with configuration loaded from file and environment.

    Args:
        config_path: Optional path to configuration file

    Returns:
        FiledockContext ready for use

    Raises:
        StorageConfigurationError: If configuration or creation fails
    """
    load_dotenv()
    try:
        settings = load_settings(config_path)
        context = FiledockContext(settings)
    except StorageError as e:
        logger.error(f"Failed to create filedock context: {e}")
        raise StorageConfigurationError(f"Context creation failed: {e.message}") from e

    logger.info("filedock context initialized successfully")
    return context
