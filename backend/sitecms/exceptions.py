"""
SiteCMS Backend — Custom Exception Hierarchy
==============================================

What:  Defines application-specific exceptions for different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services, the merge engine and blob clients; caught by
       global handlers.
When:  During request processing.

Exception Hierarchy:
    SiteCMSError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    │   └── InvalidPatchError    → 400 Bad Request (malformed patch descriptor)
    ├── NotFoundError            → 404 Not Found
    └── UpstreamError            → 500 Internal Server Error (never retried)
        ├── DatabaseError        → document store failure
        └── BlobStorageError     → blob host failure
"""

from typing import Any, Dict, Optional


class SiteCMSError(Exception):
    """
    Base exception for all SiteCMS application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 400s)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SiteCMSError):
    """
    Raised when client input fails validation.

    When:    Missing required field, bad number, undecodable JSON array,
             empty or oversized upload.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Missing required fields: title, count",
            "details": {"fields": ["title", "count"]}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidPatchError(ValidationError):
    """
    Raised by the merge engine when a patch descriptor cannot be applied.

    The document is left untouched: descriptors are fully validated before
    any upload or mutation happens.
    """

    def __init__(
        self,
        message: str = "Invalid patch descriptor",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field="patch", context=context)


class NotFoundError(SiteCMSError):
    """
    Raised when a requested resource does not exist.

    When:    GET/PUT/PATCH/DELETE with an id that does not resolve, including
             ids that are not valid ObjectIds.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class UpstreamError(SiteCMSError):
    """
    Raised when an external collaborator (store or blob host) fails.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. Details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "An upstream service failed. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(UpstreamError):
    """Raised when a MongoDB operation fails (connection lost, timeout, write error)."""

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BlobStorageError(UpstreamError):
    """
    Raised when the blob host rejects or fails an upload/delete.

    Recovery:
        None. Any upload failure aborts the whole request before the record
        is persisted; uploads that already completed are not cleaned up.
    """

    def __init__(
        self,
        message: str = "File upload failed. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
