"""Standardized error responses with suggested actions.

Failures produced by the reconciliation core and the Xero client are
converted into ``ErrorResponse`` objects before they reach a tool caller or
an HTTP client, so the agent always receives a machine-readable code plus
a hint on how to recover.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Reconciliation errors
    SECTION_NOT_FOUND = "SECTION_NOT_FOUND"
    UPSTREAM_FETCH_ERROR = "UPSTREAM_FETCH_ERROR"

    # Xero API errors
    XERO_CONNECTION_ERROR = "XERO_CONNECTION_ERROR"
    XERO_AUTH_ERROR = "XERO_AUTH_ERROR"
    XERO_FORBIDDEN = "XERO_FORBIDDEN"
    XERO_NOT_FOUND = "XERO_NOT_FOUND"
    XERO_VALIDATION_ERROR = "XERO_VALIDATION_ERROR"
    XERO_RATE_LIMITED = "XERO_RATE_LIMITED"
    XERO_SERVER_ERROR = "XERO_SERVER_ERROR"

    # Tool errors
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    TOOL_CONTEXT_MISSING = "TOOL_CONTEXT_MISSING"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"


class ErrorResponse(BaseModel):
    """Standardized error response format.

    Attributes:
        error: Short error description
        error_code: Machine-readable error code
        message: Human-readable error message
        details: Additional error details
        retry_after: Seconds to wait before retrying (for rate limits)
        suggested_action: Actionable suggestion for the caller
        is_retryable: Whether the operation can be retried
    """
    error: str
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    retry_after: Optional[int] = None
    suggested_action: Optional[str] = None
    is_retryable: bool = False


SUGGESTED_ACTIONS = {
    ErrorCode.SECTION_NOT_FOUND: "No report section matches the metric. Retry with one of the available section titles.",
    ErrorCode.UPSTREAM_FETCH_ERROR: "Xero could not return the report. Check the date range and try again.",

    ErrorCode.XERO_CONNECTION_ERROR: "Cannot connect to Xero. Please check network access and try again.",
    ErrorCode.XERO_AUTH_ERROR: "Xero authentication failed. Verify the bearer token or client credentials.",
    ErrorCode.XERO_FORBIDDEN: "The Xero connection lacks the scopes required for this request.",
    ErrorCode.XERO_NOT_FOUND: "The requested resource was not found in Xero.",
    ErrorCode.XERO_VALIDATION_ERROR: "Xero rejected the request parameters. Review dates and filters.",
    ErrorCode.XERO_RATE_LIMITED: "Too many requests to Xero. Please wait a moment and try again.",
    ErrorCode.XERO_SERVER_ERROR: "Xero server error. Please try again later.",

    ErrorCode.TOOL_NOT_FOUND: "The requested tool does not exist. List the available tools first.",
    ErrorCode.TOOL_CONTEXT_MISSING: "The Xero connection is not configured. Set the Xero credentials and restart.",

    ErrorCode.VALIDATION_ERROR: "The submitted data is invalid. Please check the arguments and try again.",

    ErrorCode.INTERNAL_ERROR: "An internal error occurred. Please try again or contact support.",
    ErrorCode.NOT_FOUND: "The requested resource was not found.",
}

RETRYABLE_ERRORS = {
    ErrorCode.UPSTREAM_FETCH_ERROR,
    ErrorCode.XERO_CONNECTION_ERROR,
    ErrorCode.XERO_RATE_LIMITED,
    ErrorCode.XERO_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR,
}


def create_error_response(
    error_code: ErrorCode,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    retry_after: Optional[int] = None,
) -> ErrorResponse:
    """Create a standardized error response.

    Args:
        error_code: The error code
        message: Optional custom message (uses default if not provided)
        details: Optional additional details
        retry_after: Optional retry delay in seconds

    Returns:
        ErrorResponse with suggested action
    """
    suggested_action = SUGGESTED_ACTIONS.get(error_code)
    is_retryable = error_code in RETRYABLE_ERRORS

    return ErrorResponse(
        error=error_code.value,
        error_code=error_code.value,
        message=message or suggested_action or "An error occurred",
        details=details,
        retry_after=retry_after,
        suggested_action=suggested_action,
        is_retryable=is_retryable,
    )


class AppException(HTTPException):
    """Application exception with standardized error response."""

    def __init__(
        self,
        error_code: ErrorCode,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        self.error_code = error_code
        self.error_response = create_error_response(
            error_code=error_code,
            message=message,
            details=details,
            retry_after=retry_after,
        )

        super().__init__(
            status_code=status_code,
            detail=self.error_response.model_dump(),
        )

    @classmethod
    def from_response(
        cls,
        response: ErrorResponse,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ) -> "AppException":
        """Wrap an already-built ErrorResponse."""
        return cls(
            error_code=ErrorCode(response.error_code),
            status_code=status_code,
            message=response.message,
            details=response.details,
            retry_after=response.retry_after,
        )


class NotFoundError(AppException):
    """Resource not found errors."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCode.NOT_FOUND,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            message=message,
            details=details,
        )


class ValidationError(AppException):
    """Validation errors."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            message=message,
            details=details,
        )


class ServiceUnavailableError(AppException):
    """Service unavailable errors (Xero, missing configuration)."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(
            error_code=error_code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message=message,
            details=details,
            retry_after=retry_after,
        )
