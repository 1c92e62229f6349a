"""
Result envelope for callers that present core results to users.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import StorageError, ValidationError


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(
        None,
        description="Field name that caused the error (if applicable)"
    )

    message: str = Field(
        ...,
        description="Human-readable error message"
    )

    code: Optional[str] = Field(
        None,
        description="Machine-readable error code"
    )


class OperationResult(BaseModel):
    """
    Uniform envelope around a core operation's outcome.

    success is true exactly when error is None.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        json_schema_extra={
            "example": {
                "success": False,
                "error": "ValidationError",
                "message": "Validation failed: secret is required",
                "status_code": 422,
                "details": [
                    {
                        "field": "secret",
                        "message": "is required",
                        "code": "invalid"
                    }
                ]
            }
        }
    )

    success: bool = Field(..., description="Whether the operation succeeded")
    data: Optional[Any] = Field(None, description="Operation result on success")
    error: Optional[str] = Field(None, description="Error type on failure")
    message: Optional[str] = Field(None, description="Human-readable message")
    status_code: int = Field(200, description="HTTP-equivalent status code")
    details: Optional[List[ErrorDetail]] = Field(
        None,
        description="Field-level errors for validation failures"
    )

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> 'OperationResult':
        return cls(success=True, data=data, message=message)

    @classmethod
    def from_error(cls, exc: StorageError) -> 'OperationResult':
        """
        Build a failure envelope from a core exception.

        Args:
            exc: Any StorageError subclass

        Returns:
            OperationResult with success=False
        """
        details = None
        if isinstance(exc, ValidationError):
            details = [
                ErrorDetail(field=field, message=reason, code="invalid")
                for field, reason in exc.errors.items()
            ]

        return cls(
            success=False,
            error=type(exc).__name__,
            message=exc.message,
            status_code=exc.status_code,
            details=details
        )
