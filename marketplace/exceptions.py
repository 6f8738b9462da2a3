"""
Marketplace Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every error category the API reports.
Why:   Services raise typed conditions; a single set of handlers (main.py)
       turns them into the `{"error": ...}` envelope with the right status.
How:   Each exception carries a client-safe `message` (a string or a
       field→message mapping) and a `context` dict that is logged but
       never returned to the client.
Who:   Raised by services, decoders and dependencies; caught by global handlers.

Exception Hierarchy:
    MarketplaceError (base)
    ├── BadRequestError          → 400 Bad Request
    ├── FailedValidationError    → 422 Unprocessable Entity (field map)
    ├── ReferenceNotFoundError   → 422 Unprocessable Entity (field map)
    ├── AuthenticationError      → 401 Unauthorized
    │   └── InvalidCredentialsError
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── DuplicateRecordError     → 409 Conflict (field map)
    ├── StorageError             → 500 Internal Server Error
    ├── MailDeliveryError        → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Mapping, Optional, Union

ErrorMessage = Union[str, Dict[str, str]]


class MarketplaceError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  Client-facing description (string or field map).
        context:  Debug info for the server log only.
    """

    status_code = 500

    def __init__(
        self,
        message: ErrorMessage = "the server encountered a problem and could not process your request",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(str(message))


class BadRequestError(MarketplaceError):
    """The request could not be decoded (bad JSON, oversized form, wrong content type)."""

    status_code = 400

    def __init__(self, message: str = "bad request", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class FailedValidationError(MarketplaceError):
    """
    Raised with the errors collected by a Validator.

    The body is the field map itself, e.g. {"price": "must be greater than zero"}.
    """

    status_code = 422

    def __init__(self, errors: Mapping[str, str], context: Optional[Dict[str, Any]] = None):
        self.errors = dict(errors)
        super().__init__(message=self.errors, context=context)


class ReferenceNotFoundError(MarketplaceError):
    """
    A foreign-key violation inside a multi-insert transaction.

    Raised when a submitted category, staff or service ID does not exist in
    the provider's scope. The transaction has already been rolled back.
    """

    status_code = 422

    def __init__(self, field: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.field = field
        super().__init__(message={field: message}, context=context)


class AuthenticationError(MarketplaceError):
    """Missing, malformed, unknown or expired bearer token."""

    status_code = 401

    def __init__(
        self,
        message: str = "invalid or missing authentication token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="invalid authentication credentials", context=context)


class PermissionDeniedError(MarketplaceError):
    """Role mismatch or missing provider profile."""

    status_code = 403

    def __init__(
        self,
        message: str = "your user account doesn't have the necessary permissions to access this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(MarketplaceError):
    """
    Raised when a requested row does not exist.

    SQLAlchemy returns None for missing rows; services convert that into this
    exception so "not found" stays distinct from every other failure.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        self.resource = resource
        super().__init__(message="the requested resource could not be found", context=ctx)


class DuplicateRecordError(MarketplaceError):
    """A unique constraint was violated (duplicate email, category, provider profile...)."""

    status_code = 409

    def __init__(self, field: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.field = field
        super().__init__(message={field: message}, context=context)


class StorageError(MarketplaceError):
    """
    Raised when the object store rejects an upload or delete.

    The client only ever sees the generic server error; bucket names and keys
    stay in the log.
    """

    def __init__(
        self,
        message: str = "failed to store uploaded file",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MailDeliveryError(MarketplaceError):
    def __init__(
        self,
        message: str = "failed to deliver email",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(MarketplaceError):
    """
    Raised when a database operation fails for reasons other than a
    recognised constraint violation (timeouts, lost connections).
    """

    def __init__(
        self,
        message: str = "a database error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
