"""
SiteCMS Backend — Pydantic Response Schemas
=============================================

What:  Pydantic models describing the response envelopes of the API.
How:   Route handlers declare MessageResponse as response_model; error
       models feed the OpenAPI `responses=` tables.
Who:   Every router; the frontend relies on the {message, data} envelope.

Records are free-form documents (one field table per entity), so `data`
is not typed further. `_id` is always a string.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """
    Success envelope.

    Example:
        {
            "message": "Box created successfully",
            "data": {"_id": "65a1...", "boxNo": "1", "count": "120+", ...}
        }
    """
    message: str = Field(description="Human-readable success message")
    data: Any = Field(default=None, description="Record, list of records, or null")


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (validation_error, not_found, ...)
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which fields were missing)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    blob_storage: str = Field(description="Blob host status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")


ERROR_RESPONSES = {
    400: {"description": "Missing or invalid input", "model": ErrorResponse},
    404: {"description": "Record not found", "model": ErrorResponse},
    500: {"description": "Store or blob host failure", "model": ErrorResponse},
}
