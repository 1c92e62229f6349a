"""
Exception hierarchy for the filedock storage core.

Every error raised across the core's public surface derives from
StorageError, so callers never depend on a backend SDK's exception types.
Each class carries an HTTP-equivalent status code that callers can use when
mapping errors to their own presentation.
"""

from typing import Dict, Iterable, List, Optional


class StorageError(Exception):
    """Base exception for storage-related errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StorageConfigurationError(StorageError):
    """Exception raised for application settings or bootstrap errors."""
    pass


class ValidationError(StorageError):
    """
    Exception raised when provider data fails validation.

    Collects every violation instead of stopping at the first one.
    """

    status_code = 422

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        if message is None:
            message = "Validation failed: " + "; ".join(
                f"{field} {reason}" for field, reason in self.errors.items()
            )
        super().__init__(message)

    @property
    def fields(self) -> List[str]:
        """Names of the offending fields."""
        return list(self.errors)

    @classmethod
    def missing(cls, fields: Iterable[str]) -> "ValidationError":
        return cls({field: "is required" for field in fields})


class UnsupportedDriverError(StorageError):
    """Exception raised for a driver name that is not registered."""

    status_code = 400

    def __init__(self, driver: Optional[str]):
        self.driver = driver
        super().__init__(f"Unsupported storage driver: {driver!r}")


class NotFoundError(StorageError):
    """Exception raised when a provider record or a path does not exist."""

    status_code = 404


class BackendError(StorageError):
    """Exception raised for backend I/O, reachability or credential failures."""
    pass


class AdapterError(BackendError):
    """Exception raised when an adapter cannot be constructed."""
    pass


class StorageConnectionError(BackendError):
    """Exception raised when a connection test fails."""

    status_code = 502


class UnauthorizedError(StorageError):
    """Exception raised when no owner context is supplied."""

    status_code = 401


class ProviderNotSelectedError(StorageError):
    """Exception raised when a file operation runs without a bound provider."""

    status_code = 409

    def __init__(self, message: str = "No storage provider selected"):
        super().__init__(message)


class EncryptionError(StorageError):
    """Exception raised when a configuration blob cannot be encrypted or decrypted."""
    pass
