"""
File manager service: uniform file operations against one provider.

This module provides the FileManagerService class that sits between callers
and a filesystem adapter, normalizing backend results into the result models
in filedock.models.entries.
"""

import io
import logging
import mimetypes
import posixpath
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Tuple

from ..exceptions import (
    NotFoundError,
    ProviderNotSelectedError,
    StorageError,
    ValidationError,
)
from ..models.entries import (
    DEFAULT_CHUNK_SIZE,
    DirectoryListing,
    DownloadResult,
    FileEntry,
    FileMetadata,
    FolderEntry,
    UploadResult,
)
from ..models.provider import ProviderConfig
from .adapters.base import FilesystemAdapter, normalize_path
from .factory import build_adapter

logger = logging.getLogger(__name__)

VISIBILITIES = ("public", "private")
UNKNOWN_FORMAT = "unknown"
DEFAULT_UPLOAD_MIME_TYPE = "application/octet-stream"

AdapterFactory = Callable[[Mapping[str, Any]], FilesystemAdapter]


def file_format(path: str) -> str:
    """Lower-case extension of path, or 'unknown' when it has none."""
    extension = posixpath.splitext(posixpath.basename(path))[1]
    return extension[1:].lower() if len(extension) > 1 else UNKNOWN_FORMAT


class FileManagerService:
    """
    File operations against the currently selected storage provider.

    Construct one per request. set_provider() is the only way to change the
    bound provider and replaces provider and adapter together.
    """

    def __init__(
        self,
        provider: Optional[ProviderConfig] = None,
        adapter_factory: AdapterFactory = build_adapter,
        download_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize file manager service.

        Args:
            provider: Provider to bind immediately (optional)
            adapter_factory: Builds an adapter from a configuration
            download_chunk_size: Chunk size of returned download streams
        """
        self._adapter_factory = adapter_factory
        self.download_chunk_size = download_chunk_size
        self._binding: Optional[Tuple[ProviderConfig, FilesystemAdapter]] = None
        if provider is not None:
            self.set_provider(provider)

    @property
    def provider(self) -> Optional[ProviderConfig]:
        return self._binding[0] if self._binding else None

    @property
    def adapter(self) -> Optional[FilesystemAdapter]:
        return self._binding[1] if self._binding else None

    def set_provider(self, provider: ProviderConfig) -> None:
        """
        Bind a provider, building a fresh adapter for it.

        If the adapter cannot be built the previous binding is kept.

        Raises:
            UnsupportedDriverError, ValidationError, AdapterError
        """
        adapter = self._adapter_factory(provider.configuration)
        self._binding = (provider, adapter)
        logger.info(f"File manager bound to provider '{provider.name}' ({provider.driver})")

    def _require_adapter(self) -> FilesystemAdapter:
        if self._binding is None:
            raise ProviderNotSelectedError()
        return self._binding[1]

    def _detect_mime_type(self, adapter: FilesystemAdapter, path: str) -> str:
        """Backend detection, then an extension guess, then the format label."""
        mime_type = adapter.mime_type(path)
        if not mime_type:
            mime_type, _ = mimetypes.guess_type(path)
        return mime_type or file_format(path)

    def list_contents(self, path: str = "", recursive: bool = False) -> DirectoryListing:
        """
        List files and folders under path.

        An empty or missing location yields an empty listing.

        Args:
            path: Directory to list ('' for the provider root)
            recursive: Include descendants at every depth

        Returns:
            DirectoryListing with files and folders in backend order

        Raises:
            ProviderNotSelectedError: If no provider is bound
            BackendError: If the backend fails
        """
        adapter = self._require_adapter()
        files = []
        folders = []

        try:
            for entry in adapter.list_contents(path, recursive):
                if entry.is_file:
                    files.append(FileEntry(
                        path=entry.path,
                        size=adapter.file_size(entry.path),
                        mime_type=self._detect_mime_type(adapter, entry.path),
                        format=file_format(entry.path),
                        last_modified=adapter.last_modified(entry.path),
                        visibility=adapter.visibility(entry.path)
                    ))
                else:
                    folders.append(FolderEntry(path=entry.path))
        except StorageError as e:
            logger.error(f"Failed to list contents of '{path}': {e}")
            raise

        logger.debug(f"Listed '{path}': {len(files)} files, {len(folders)} folders")
        return DirectoryListing(files=files, folders=folders, path=path)

    def upload_file(
        self,
        upload,
        path: str,
        filename: Optional[str] = None,
        visibility: str = "private",
    ) -> UploadResult:
        """
        Upload a file under path.

        The destination is path (slashes trimmed) joined with filename, or
        with the upload's original name when no filename is given. The
        upload handle is closed on every exit path.

        Args:
            upload: Object with file, filename and content_type attributes
            path: Destination directory
            filename: Name to store the file under (optional)
            visibility: 'private' (default) or 'public'

        Returns:
            UploadResult

        Raises:
            ValidationError: If the handle or options are invalid
            ProviderNotSelectedError: If no provider is bound
            BackendError: If the write fails
        """
        source = getattr(upload, "file", None)
        try:
            adapter = self._require_adapter()
            self._validate_upload(upload, source, filename, visibility)

            original_name = upload.filename
            name = posixpath.basename(normalize_path(filename or original_name))
            directory = normalize_path(path)
            full_path = f"{directory}/{name}" if directory else name

            size = self._stream_size(source)
            mime_type = (
                getattr(upload, "content_type", None)
                or mimetypes.guess_type(original_name)[0]
                or DEFAULT_UPLOAD_MIME_TYPE
            )
            uploaded_at = datetime.now(timezone.utc)
            metadata = {
                "mime_type": mime_type,
                "size": str(size),
                "original_name": original_name,
                "uploaded_at": uploaded_at.isoformat(),
            }

            adapter.write_stream(
                full_path,
                source,
                mime_type=mime_type,
                metadata=metadata,
                visibility=visibility,
            )
        finally:
            if source is not None and hasattr(source, "close"):
                source.close()

        logger.info(f"Uploaded '{original_name}' to '{full_path}' ({size} bytes, {visibility})")
        return UploadResult(
            path=full_path,
            size=size,
            original_name=original_name,
            mime_type=mime_type,
            uploaded_at=uploaded_at,
            visibility=visibility
        )

    @staticmethod
    def _validate_upload(upload, source, filename: Optional[str], visibility: str) -> None:
        errors = {}
        original_name = getattr(upload, "filename", None)
        if not isinstance(original_name, str) or not posixpath.basename(normalize_path(original_name)):
            errors["filename"] = "upload has no original filename"
        if source is None or not hasattr(source, "read") or getattr(source, "closed", False):
            errors["file"] = "upload is not an open, readable stream"
        elif hasattr(source, "readable") and not source.readable():
            errors["file"] = "upload is not readable"
        elif not hasattr(source, "seek") or (hasattr(source, "seekable") and not source.seekable()):
            errors["file"] = "upload is not seekable"
        if filename is not None and not posixpath.basename(normalize_path(filename)):
            errors["name"] = "must not be empty"
        if visibility not in VISIBILITIES:
            errors["visibility"] = f"must be one of {', '.join(VISIBILITIES)}"
        if errors:
            raise ValidationError(errors, message="Invalid file upload: " + ", ".join(errors))

    @staticmethod
    def _stream_size(source) -> int:
        """Size of a seekable stream, leaving it positioned at the start."""
        source.seek(0, io.SEEK_END)
        size = source.tell()
        source.seek(0)
        return size

    def download_file(self, path: str) -> DownloadResult:
        """
        Open a file for download.

        Existence is checked before any read stream is opened.

        Returns:
            DownloadResult; the caller drains and closes its stream

        Raises:
            NotFoundError: If no file exists at path
        """
        adapter = self._require_adapter()
        if not adapter.file_exists(path):
            logger.error(f"File not found for download: {path}")
            raise NotFoundError(f"File not found: {path}")

        mime_type = self._detect_mime_type(adapter, path)
        size = adapter.file_size(path)
        stream = adapter.read_stream(path)

        logger.info(f"Opened '{path}' for download ({size} bytes)")
        return DownloadResult(
            stream=stream,
            mime_type=mime_type,
            size=size,
            chunk_size=self.download_chunk_size
        )

    def delete(self, path: str) -> None:
        """
        Delete a file, or a directory with all of its descendants.

        Raises:
            NotFoundError: If path is neither a file nor a directory
        """
        adapter = self._require_adapter()
        if adapter.file_exists(path):
            adapter.delete(path)
            logger.info(f"Deleted file '{path}'")
        elif normalize_path(path) and adapter.directory_exists(path):
            adapter.delete_directory(path)
            logger.info(f"Deleted directory '{path}'")
        else:
            raise NotFoundError(f"Path not found: {path}")

    def get_metadata(self, path: str) -> FileMetadata:
        """
        Get metadata of a file.

        Raises:
            NotFoundError: If no file exists at path
        """
        adapter = self._require_adapter()
        if not adapter.file_exists(path):
            raise NotFoundError(f"File not found: {path}")

        return FileMetadata(
            mime_type=self._detect_mime_type(adapter, path),
            size=adapter.file_size(path),
            last_modified=adapter.last_modified(path),
            visibility=adapter.visibility(path)
        )
