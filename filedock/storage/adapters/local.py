"""
Local filesystem adapter implementation.

This module contains the LocalFilesystemAdapter that serves a directory on
the local disk through the FilesystemAdapter interface.
"""

import logging
import mimetypes
import os
import shutil
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional

from .base import FilesystemAdapter, StorageEntry, normalize_path
from ...exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PUBLIC_FILE_MODE = 0o644
PRIVATE_FILE_MODE = 0o600
COPY_CHUNK_SIZE = 64 * 1024


class LocalFilesystemAdapter(FilesystemAdapter):
    """
    Local directory implementation of FilesystemAdapter.

    Visibility maps onto permission bits: public files are world-readable
    (0644), private files are owner-only (0600).
    """

    driver = "local"

    def __init__(self, root: Path):
        """
        Initialize local filesystem adapter.

        Args:
            root: Directory that all paths are relative to
        """
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, configuration: Mapping[str, Any]) -> 'LocalFilesystemAdapter':
        return cls(Path(configuration["root"]))

    def _full_path(self, path: str) -> Path:
        """Resolve path under root, refusing anything that escapes it."""
        full_path = (self.root / normalize_path(path)).resolve()
        if full_path != self.root and self.root not in full_path.parents:
            raise ValidationError({"path": f"escapes the storage root: {path}"})
        return full_path

    def _relative(self, full_path: Path) -> str:
        return full_path.relative_to(self.root).as_posix()

    def _require_file(self, path: str) -> Path:
        full_path = self._full_path(path)
        if not full_path.is_file():
            raise NotFoundError(f"File not found: {path}")
        return full_path

    def list_contents(self, path: str = "", recursive: bool = False) -> Iterator[StorageEntry]:
        directory = self._full_path(path)
        if not directory.is_dir():
            logger.debug(f"Directory not found, nothing to list: {directory}")
            return

        with self.translate_errors("list", path):
            items = directory.rglob("*") if recursive else directory.iterdir()
            for item in sorted(items):
                if item.is_dir():
                    yield StorageEntry(self._relative(item), "dir")
                elif item.is_file():
                    yield StorageEntry(self._relative(item), "file")

    def file_exists(self, path: str) -> bool:
        return self._full_path(path).is_file()

    def directory_exists(self, path: str) -> bool:
        return self._full_path(path).is_dir()

    def file_size(self, path: str) -> int:
        full_path = self._require_file(path)
        with self.translate_errors("read size of", path):
            return full_path.stat().st_size

    def mime_type(self, path: str) -> Optional[str]:
        self._require_file(path)
        mime_type, _ = mimetypes.guess_type(path)
        return mime_type

    def last_modified(self, path: str) -> Optional[datetime]:
        full_path = self._require_file(path)
        with self.translate_errors("read modification time of", path):
            return datetime.fromtimestamp(full_path.stat().st_mtime, tz=timezone.utc)

    def visibility(self, path: str) -> str:
        full_path = self._require_file(path)
        with self.translate_errors("read visibility of", path):
            mode = stat.S_IMODE(full_path.stat().st_mode)
        return "public" if mode & stat.S_IROTH else "private"

    def write_stream(
        self,
        path: str,
        stream: BinaryIO,
        *,
        mime_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        visibility: str = "private",
    ) -> None:
        full_path = self._full_path(path)
        with self.translate_errors("write", path):
            full_path.parent.mkdir(parents=True, exist_ok=True)
            with open(full_path, 'wb') as f:
                shutil.copyfileobj(stream, f, COPY_CHUNK_SIZE)
            os.chmod(full_path, PUBLIC_FILE_MODE if visibility == "public" else PRIVATE_FILE_MODE)
        logger.debug(f"Wrote {full_path} (visibility={visibility})")

    def read_stream(self, path: str) -> BinaryIO:
        full_path = self._require_file(path)
        with self.translate_errors("open", path):
            return open(full_path, 'rb')

    def delete(self, path: str) -> None:
        full_path = self._require_file(path)
        with self.translate_errors("delete", path):
            full_path.unlink()

    def delete_directory(self, path: str) -> None:
        full_path = self._full_path(path)
        if full_path == self.root:
            raise ValidationError({"path": "refusing to delete the storage root"})
        if not full_path.is_dir():
            raise NotFoundError(f"Directory not found: {path}")
        with self.translate_errors("delete directory", path):
            shutil.rmtree(full_path)
