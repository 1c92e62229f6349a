"""
Data models for filedock

This module provides the persisted provider record, its pydantic views and
the transient result models returned by the file manager.
"""

from .provider import ProviderConfig, ProviderCreate, ProviderUpdate, StorageProviderRecord
from .entries import (
    DirectoryListing,
    DownloadResult,
    FileEntry,
    FileMetadata,
    FolderEntry,
    UploadedFile,
    UploadResult,
)
from .responses import ErrorDetail, OperationResult

__all__ = [
    "ProviderConfig",
    "ProviderCreate",
    "ProviderUpdate",
    "StorageProviderRecord",
    "DirectoryListing",
    "DownloadResult",
    "FileEntry",
    "FileMetadata",
    "FolderEntry",
    "UploadedFile",
    "UploadResult",
    "ErrorDetail",
    "OperationResult",
]
