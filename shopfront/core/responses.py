"""
Standardized error bodies.

Domain errors raised below the route layer are rendered as:

    {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Subdomain must be at least 3 characters",
            "details": {"field": "subdomain"}
        },
        "status": "error"
    }

Route-level HTTPExceptions keep FastAPI's default {"detail": ...} body.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error information."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


class ErrorCodes:
    """Error codes used in error bodies."""

    # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # 503
    ALLOCATION_EXHAUSTED = "ALLOCATION_EXHAUSTED"


def error_response(
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """Create a standardized error response dict."""
    error = ErrorDetail(code=code, message=message, details=details or None)
    return {
        "error": error.model_dump(exclude_none=True),
        "status": "error",
    }
