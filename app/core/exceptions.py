"""
Custom exceptions for the Testimonial Moderation API.

Moderation itself never fails a submission: AI outages are absorbed by the
classifier client and configuration conflicts are resolved by precedence.
The exceptions below cover the remaining boundaries (input validation,
storage, bulk actions, lookups) and map onto HTTP status codes.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class ModerationServiceException(Exception):
    """Base exception for all moderation service errors."""
    
    def __init__(
        self, 
        message: str, 
        error_code: str = "MODERATION_SERVICE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseException(ModerationServiceException):
    """Exception raised when database operations fail."""
    
    def __init__(
        self, 
        message: str, 
        operation: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            details={**(details or {}), "operation": operation}
        )


class ValidationException(ModerationServiceException):
    """Exception raised when input validation fails."""
    
    def __init__(
        self, 
        message: str, 
        field: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={**(details or {}), "field": field}
        )


class NotFoundException(ModerationServiceException):
    """Exception raised when a project, testimonial or history entry is missing."""

    def __init__(
        self,
        message: str,
        resource: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            details={**(details or {}), "resource": resource}
        )


class BulkActionException(ModerationServiceException):
    """Exception raised when a bulk action cannot be applied to the whole batch."""

    def __init__(
        self,
        message: str,
        action: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="BULK_ACTION_FAILED",
            details={**(details or {}), "action": action}
        )


class RateLimitException(ModerationServiceException):
    """Exception raised when rate limit is exceeded."""
    
    def __init__(
        self, 
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            details={**(details or {}), "retry_after": retry_after}
        )


class ContentTooLargeException(ModerationServiceException):
    """Exception raised when content exceeds size limits."""
    
    def __init__(
        self, 
        message: str = "Content size exceeds limit",
        max_size: int = 0,
        actual_size: int = 0,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="CONTENT_TOO_LARGE",
            details={
                **(details or {}), 
                "max_size": max_size,
                "actual_size": actual_size
            }
        )


def create_http_exception(
    exception: ModerationServiceException,
    status_code: Optional[int] = None
) -> HTTPException:
    """
    Convert custom exception to FastAPI HTTPException.
    
    Args:
        exception: Custom exception instance
        status_code: HTTP status code to return; looked up from
            EXCEPTION_STATUS_MAPPING when omitted
    
    Returns:
        HTTPException instance
    """
    if status_code is None:
        status_code = EXCEPTION_STATUS_MAPPING.get(exception.__class__, 500)
    return HTTPException(
        status_code=status_code,
        detail={
            "error_code": exception.error_code,
            "message": exception.message,
            "details": exception.details
        }
    )


# Exception to HTTP status code mapping
EXCEPTION_STATUS_MAPPING = {
    DatabaseException: 500,  # Internal Server Error
    ValidationException: 400,  # Bad Request
    NotFoundException: 404,  # Not Found
    BulkActionException: 409,  # Conflict
    RateLimitException: 429,  # Too Many Requests
    ContentTooLargeException: 413,  # Payload Too Large
}
