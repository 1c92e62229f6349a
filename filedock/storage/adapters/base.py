"""
Abstract base class for filesystem adapters.

This module defines the FilesystemAdapter interface that every storage
backend (local directory, S3, Google Cloud Storage, ...) implements, and the
error translation shared by all of them.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Dict, Iterator, Literal, Optional

from ...exceptions import BackendError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

EntryType = Literal["file", "dir"]


@dataclass(frozen=True)
class StorageEntry:
    """A listing entry as reported by the backend."""

    path: str
    type: EntryType

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


class FilesystemAdapter(ABC):
    """
    Abstract base class for filesystem adapters.

    Paths are backend-relative strings using '/' separators. Adapters raise
    only StorageError subclasses: NotFoundError for missing objects and
    BackendError for everything else.
    """

    driver: str = ""

    @abstractmethod
    def list_contents(self, path: str = "", recursive: bool = False) -> Iterator[StorageEntry]:
        """
        List entries under a directory.

        Args:
            path: Directory path ('' for the root)
            recursive: Include descendants at every depth

        Returns:
            Iterator of StorageEntry in backend order. A missing directory
            yields nothing.
        """
        pass

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Check if a file exists at path."""
        pass

    @abstractmethod
    def directory_exists(self, path: str) -> bool:
        """Check if a directory (or any object under it) exists at path."""
        pass

    @abstractmethod
    def file_size(self, path: str) -> int:
        """Get file size in bytes."""
        pass

    @abstractmethod
    def mime_type(self, path: str) -> Optional[str]:
        """
        Get the MIME type of a file.

        Returns:
            MIME type, or None when the backend cannot determine one
        """
        pass

    @abstractmethod
    def last_modified(self, path: str) -> Optional[datetime]:
        """Get the last-modified time as a timezone-aware datetime."""
        pass

    @abstractmethod
    def visibility(self, path: str) -> str:
        """Get file visibility: 'public' or 'private'."""
        pass

    @abstractmethod
    def write_stream(
        self,
        path: str,
        stream: BinaryIO,
        *,
        mime_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        visibility: str = "private",
    ) -> None:
        """
        Write a stream to path, reading it in chunks.

        The adapter never closes the source stream; that is the caller's job.
        """
        pass

    @abstractmethod
    def read_stream(self, path: str) -> BinaryIO:
        """Open a read stream. The caller must close it."""
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a file."""
        pass

    @abstractmethod
    def delete_directory(self, path: str) -> None:
        """Delete a directory and all of its descendants."""
        pass

    def is_not_found(self, error: Exception) -> bool:
        """Whether a backend exception means the object does not exist."""
        return isinstance(error, FileNotFoundError)

    @contextmanager
    def translate_errors(self, operation: str, path: str) -> Iterator[None]:
        """
        Translate backend exceptions raised inside the block.

        StorageError passes through; not-found errors become NotFoundError;
        anything else becomes BackendError.
        """
        try:
            yield
        except StorageError:
            raise
        except Exception as e:
            if self.is_not_found(e):
                raise NotFoundError(f"Path not found: {path}") from e
            logger.error(f"{self.driver} adapter failed to {operation} '{path}': {e}")
            raise BackendError(f"Failed to {operation} '{path}': {str(e)}") from e


def normalize_path(path: Optional[str]) -> str:
    """Strip surrounding slashes and collapse empty segments."""
    if not path:
        return ""
    return "/".join(part for part in path.replace("\\", "/").split("/") if part)
