"""
RepairDesk Backend - Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the different failure scenarios.
How:   Each exception carries a human-readable message and an optional context
       dict. Global exception handlers (registered in main.py) catch these and
       return the JSON error envelope with the matching HTTP status code.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    RepairDeskError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── InvalidStateTransition   → 409 Conflict
    ├── DuplicateEmailError      → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    └── TransportError           → never surfaced (caught by the dispatcher)
"""

from typing import Any, Dict, Optional


class RepairDeskError(Exception):
    """
    Base exception for all RepairDesk application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RepairDeskError):
    """
    Raised when client input fails validation.

    When:    Missing application groups, malformed nested records, empty
             rejection notes, unsupported document types, unknown status.
    HTTP:    400 Bad Request
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


class AuthenticationError(RepairDeskError):
    """Missing, invalid or expired credentials. HTTP 401."""

    def __init__(
        self,
        message: str = "Invalid credentials",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(RepairDeskError):
    """Authenticated, but the role may not perform this action. HTTP 403."""

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(RepairDeskError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; the service layer converts
    that into NotFoundError so the handler can answer 404.
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


class InvalidStateTransition(RepairDeskError):
    """
    Raised when a status change violates the application lifecycle.

    When:    Approving/rejecting a terminal application, or any transition not
             in the allowed table (e.g. reviewing → pending).
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        current_status: str,
        requested_status: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Cannot change application status from '{current_status}' "
            f"to '{requested_status}'"
        )
        ctx = context or {}
        ctx["current_status"] = current_status
        ctx["requested_status"] = requested_status
        super().__init__(message=message, context=ctx)
        self.current_status = current_status
        self.requested_status = requested_status


class DuplicateEmailError(RepairDeskError):
    """
    Raised when a technician or client with the same email already exists.

    When:    Technician creation/update, including provisioning on approval,
             and client creation/update.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        email: str,
        resource: str = "technician",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["email"] = email
        super().__init__(
            message=f"A {resource} with email '{email}' already exists",
            context=ctx,
        )
        self.email = email


class TransportError(RepairDeskError):
    """
    Raised by push transports when delivery fails.

    Never reaches the API caller: the NotificationDispatcher catches it,
    logs it, and reports "no notification sent".
    """

    def __init__(
        self,
        message: str = "Push notification delivery failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(RepairDeskError):
    """
    Raised when file system operations fail.

    When:    Disk full, permission denied, directory not writable, I/O error.
    HTTP:    500 Internal Server Error (generic message, details logged)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(RepairDeskError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. SQL details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(RepairDeskError):
    """Client exceeded the per-IP request rate limit. HTTP 429."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
