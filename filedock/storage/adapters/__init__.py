"""
Filesystem adapters package for filedock.

This package contains the adapter implementations for the different
storage backends (local directory, S3, Google Cloud Storage).
"""

from .base import FilesystemAdapter, StorageEntry
from .gcs import GoogleCloudStorageAdapter
from .local import LocalFilesystemAdapter
from .s3 import S3FilesystemAdapter

__all__ = [
    "FilesystemAdapter",
    "StorageEntry",
    "GoogleCloudStorageAdapter",
    "LocalFilesystemAdapter",
    "S3FilesystemAdapter",
]
