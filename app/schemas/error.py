"""
Error response schemas for API documentation.
Mirrors the envelope produced by ErrorHandlerService so OpenAPI shows real error bodies.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Any, Dict


class ErrorDetail(BaseModel):
    """Schema for individual error detail."""

    field: Optional[str] = Field(None, description="Field name that caused the error")
    message: str = Field(..., description="Human-readable error message")
    type: Optional[str] = Field(None, description="Error type identifier")


class ErrorResponse(BaseModel):
    """Schema for standardized error responses."""

    code: str = Field(..., description="Error code identifier")
    message: str = Field(..., description="Human-readable error message")
    timestamp: str = Field(..., description="Error timestamp in ISO format")
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
    details: Optional[List[ErrorDetail]] = Field(None, description="Per-field validation errors")


class APIErrorResponse(BaseModel):
    """Schema for API error response wrapper."""

    error: ErrorResponse


_ERROR_EXAMPLES = {
    400: ("Bad Request", "BAD_REQUEST", "Invalid request parameters"),
    401: ("Unauthorized", "UNAUTHORIZED", "Authentication token required"),
    403: ("Forbidden", "FORBIDDEN", "Insufficient permissions to manage this property"),
    404: ("Not Found", "NOT_FOUND", "Lease not found with ID: 123e4567-e89b-12d3-a456-426614174000"),
    409: ("Conflict", "CONFLICT", "Unit already has an active tenant"),
    422: ("Validation Error", "VALIDATION_ERROR", "Request validation failed"),
    429: ("Too Many Requests", "RATE_LIMIT_EXCEEDED", "Rate limit exceeded"),
    500: ("Internal Server Error", "INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again later."),
    502: ("Bad Gateway", "EXTERNAL_SERVICE_ERROR", "Stripe error: No such customer"),
    503: ("Service Unavailable", "SERVICE_NOT_CONFIGURED", "Stripe is not configured"),
}


def _build_response(status_code: int) -> Dict[str, Any]:
    description, code, message = _ERROR_EXAMPLES[status_code]
    return {
        "description": description,
        "model": APIErrorResponse,
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": code,
                        "message": message,
                        "timestamp": "2024-01-01T00:00:00Z",
                        "request_id": "abc12345"
                    }
                }
            }
        }
    }


COMMON_ERROR_RESPONSES = {code: _build_response(code) for code in _ERROR_EXAMPLES}


def get_error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """
    Get error response schemas for specific status codes.

    Args:
        status_codes: HTTP status codes to include

    Returns:
        Dictionary of error response schemas
    """
    return {
        code: COMMON_ERROR_RESPONSES[code]
        for code in status_codes
        if code in COMMON_ERROR_RESPONSES
    }


def get_auth_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get authentication and authorization error response schemas."""
    return get_error_responses(401, 403)


def get_crud_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get error response schemas for CRUD operations."""
    return get_error_responses(400, 401, 403, 404, 409, 422, 500)


def get_payment_error_responses() -> Dict[int, Dict[str, Any]]:
    """Error responses for endpoints that call a payment provider."""
    return get_error_responses(400, 401, 403, 404, 429, 502, 503)
