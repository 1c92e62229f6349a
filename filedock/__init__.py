"""
filedock: named storage providers behind one file management interface.
"""

from .context import FiledockContext, create_default_context
from .exceptions import (
    AdapterError,
    BackendError,
    EncryptionError,
    NotFoundError,
    ProviderNotSelectedError,
    StorageConfigurationError,
    StorageConnectionError,
    StorageError,
    UnauthorizedError,
    UnsupportedDriverError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    "FiledockContext",
    "create_default_context",
    "AdapterError",
    "BackendError",
    "EncryptionError",
    "NotFoundError",
    "ProviderNotSelectedError",
    "StorageConfigurationError",
    "StorageConnectionError",
    "StorageError",
    "UnauthorizedError",
    "UnsupportedDriverError",
    "ValidationError",
]
