"""
Storage module for filedock

This module provides the driver registry, adapter factory, provider store,
file manager service and connection tester.
"""

from .adapters import FilesystemAdapter, StorageEntry
from .drivers import DriverSpec, register_driver, supported_drivers, validate_configuration
from .factory import build_adapter
from .service import FileManagerService
from .store import ProviderStore
from .tester import ConnectionTester

__all__ = [
    "FilesystemAdapter",
    "StorageEntry",
    "DriverSpec",
    "register_driver",
    "supported_drivers",
    "validate_configuration",
    "build_adapter",
    "FileManagerService",
    "ProviderStore",
    "ConnectionTester",
]
