"""
ClassJournal Backend - Custom Exception Hierarchy
==================================================

What:  Application-specific exceptions for every failure the API reports.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers (registered in main.py) turn them into the
       `{success: false, message, error, details, request_id}` envelope with
       the right HTTP status.
Who:   Raised by services and auth dependencies; caught by global handlers.

Exception Hierarchy:
    ClassJournalError (base)
    ├── ValidationError          → 400 Bad Request
    ├── ConflictError            → 400 Bad Request (duplicate email)
    ├── InvalidCredentialsError  → 400 Bad Request (login failure)
    ├── AuthenticationError      → 401 Unauthorized
    ├── AuthorizationError       → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Iterable, Optional


class ClassJournalError(Exception):
    """
    Base exception for all ClassJournal application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional detail; only some handlers expose it as `details`
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ClassJournalError):
    """
    Raised when client input fails validation.

    Missing fields, unknown roles or media types, malformed tag lists,
    a `publish_at` that is not strict ISO 8601, unsupported upload types.
    """

    status_code = 400
    error_code = "validation_error"

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


class ConflictError(ClassJournalError):
    """
    Raised when a record would violate a uniqueness rule.

    Reported as 400 (not 409) to keep the register contract of the API.
    """

    status_code = 400
    error_code = "conflict"

    def __init__(
        self,
        message: str = "User already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentialsError(ClassJournalError):
    """Raised by login for an unknown email or a password mismatch."""

    status_code = 400
    error_code = "invalid_credentials"

    def __init__(
        self,
        message: str = "Invalid credentials",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthenticationError(ClassJournalError):
    """
    Raised when a request carries no usable bearer token.

    Covers a missing or malformed Authorization header, a bad signature,
    an expired token, and an identity that no longer exists.
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Invalid Token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(ClassJournalError):
    """Raised when an authenticated user's role is not permitted on a route."""

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        required_roles: Iterable[str],
        user_role: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.required_roles = list(required_roles)
        message = (
            "You do not have permission to perform this action. "
            f"Required role: {' or '.join(self.required_roles)}"
        )
        ctx = context or {}
        ctx["required_roles"] = self.required_roles
        if user_role:
            ctx["userRole"] = user_role
        super().__init__(message=message, context=ctx)


class NotFoundError(ClassJournalError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that None
    into this exception so HTTP concerns stay out of service logic.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(ClassJournalError):
    """Raised when writing an uploaded media file fails (disk full, permissions)."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(ClassJournalError):
    """
    Raised when a database operation fails unexpectedly.

    The client always receives a generic message; the driver error is kept
    in `context` and logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
