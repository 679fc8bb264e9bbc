"""
Shared error handling for the Confidential Eligibility layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class EligibilityLayerException(Exception):
    """Base exception for Confidential Eligibility components."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Error body for the caller, tagged with the active trace id if any."""
        span_context = trace.get_current_span().get_span_context()
        return ErrorResponse(
            trace_id=f"{span_context.trace_id:032x}" if span_context.is_valid else None,
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(EligibilityLayerException):
    """Caller identity could not be established."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class AuthorizationError(EligibilityLayerException):
    """Caller is not permitted to perform the operation."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class ValidationError(EligibilityLayerException):
    """Malformed proof, input/proof mismatch or out-of-range value."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidOwnerError(ValidationError, AuthorizationError):
    """Ownership transfer target is null or empty."""

    status_code = 400

    def __init__(self, message: str = "New owner must not be empty", details: Optional[Dict[str, Any]] = None):
        EligibilityLayerException.__init__(self, "INVALID_OWNER", message, details)


class BackendRejection(EligibilityLayerException):
    """The confidential-computation backend refused to materialize or operate on a handle."""

    status_code = 502

    def __init__(self, message: str = "Backend rejected the operation", details: Optional[Dict[str, Any]] = None):
        super().__init__("BACKEND_REJECTION", message, details)
