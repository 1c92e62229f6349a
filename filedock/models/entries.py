"""
Result models produced by the file manager.

None of these are persisted; the backend object is the source of truth.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Visibility = Literal["public", "private"]

DEFAULT_CHUNK_SIZE = 64 * 1024


class FolderEntry(BaseModel):
    """A directory found by a listing call."""

    path: str = Field(..., description="Backend-relative path")
    type: Literal["dir"] = "dir"


class FileEntry(BaseModel):
    """A file found by a listing call."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "path": "folder1/example.txt",
                "type": "file",
                "size": 12,
                "mime_type": "text/plain",
                "format": "txt",
                "last_modified": "2024-07-09T07:43:18Z",
                "visibility": "private"
            }
        }
    )

    path: str = Field(..., description="Backend-relative path")
    type: Literal["file"] = "file"
    size: int = Field(..., ge=0, description="Size in bytes")
    mime_type: str = Field(..., description="Detected MIME type or extension-derived label")
    format: str = Field(..., description="Lower-case file extension, or 'unknown'")
    last_modified: Optional[datetime] = None
    visibility: Visibility = "private"


class DirectoryListing(BaseModel):
    """Files and folders under one path, in backend order."""

    files: List[FileEntry] = Field(default_factory=list)
    folders: List[FolderEntry] = Field(default_factory=list)
    path: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.folders


class FileMetadata(BaseModel):
    """Metadata of a single file."""

    mime_type: str
    size: int = Field(..., ge=0)
    last_modified: Optional[datetime] = None
    visibility: Visibility = "private"


class UploadResult(BaseModel):
    """Outcome of one upload call."""

    path: str = Field(..., description="Path written, relative to the provider root")
    size: int = Field(..., ge=0)
    original_name: str
    mime_type: str
    uploaded_at: datetime
    visibility: Visibility


@dataclass
class UploadedFile:
    """
    An upload handle.

    Any object exposing the same three attributes (for example a Starlette
    UploadFile) is accepted by FileManagerService.upload_file.
    """

    file: BinaryIO
    filename: str
    content_type: Optional[str] = None


@dataclass
class DownloadResult:
    """
    An open read stream plus its metadata.

    The caller must drain and close the stream; iter_chunks() does both.
    """

    stream: BinaryIO
    mime_type: str
    size: int
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def iter_chunks(self, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        """Yield the content in chunks, closing the stream afterwards."""
        chunk_size = chunk_size or self.chunk_size
        try:
            while True:
                chunk = self.stream.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def read(self) -> bytes:
        """Read everything and close the stream. Only for small objects."""
        return b"".join(self.iter_chunks())

    def close(self) -> None:
        self.stream.close()
