"""
Centralized Exception Handling Module
=====================================

Defines the exception taxonomy for the status page backend.

Every error raised by the mutation engine, the auth collaborator or the
real-time gateway derives from ``StatusPageError`` and carries an HTTP
status code, a human readable message, structured details and a
``retryable`` flag. FastAPI exception handlers in ``statuspage.main``
turn them into JSON responses.

Usage:
    raise IncidentNotFoundError(incident_id)
    raise ValidationError("Title is required", details={"field": "title"})
"""

from typing import Any, Dict, Optional
from fastapi import status


class StatusPageError(Exception):
    """
    Base exception class for the status page application.

    All custom exceptions should inherit from this class.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if retryable is not None:
            self.retryable = retryable
        super().__init__(self.message)


# ==========================
# Authentication Exceptions
# ==========================

class AuthenticationError(StatusPageError):
    """Raised when a credential cannot be verified."""

    def __init__(
        self,
        message: str = "Could not validate credentials",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self):
        super().__init__(message="Invalid email or password")


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    def __init__(self, token_type: str = "access"):
        super().__init__(
            message=f"{token_type.capitalize()} token has expired",
            details={"token_type": token_type}
        )


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT token is invalid."""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(
            message="Invalid token",
            details={"reason": reason}
        )


class TokenVersionMismatchError(AuthenticationError):
    """Raised when token version doesn't match user's current version."""

    def __init__(self):
        super().__init__(
            message="Token has been invalidated. Please log in again."
        )


class AccountDisabledError(AuthenticationError):
    """Raised when the account behind a credential is disabled."""

    def __init__(self):
        super().__init__(
            message="Account has been disabled. Please contact your administrator."
        )


# ==========================
# Authorization Exceptions
# ==========================

class AuthorizationError(StatusPageError):
    """Raised when the caller lacks required permissions."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class RoleNotAuthorizedError(AuthorizationError):
    """Raised when user's role is not authorized for the action."""

    def __init__(self, required_roles: list):
        super().__init__(
            message="Your role is not authorized for this action",
            details={"required_roles": required_roles}
        )


class CrossTenantTopicError(AuthorizationError):
    """Raised when a staff connection asks to join another organization's topic."""

    def __init__(self, topic: str):
        super().__init__(
            message="Staff connections may only subscribe to their own organization",
            details={"topic": topic}
        )


# ==========================
# Resource Exceptions
# ==========================

class NotFoundError(StatusPageError):
    """
    Raised when a resource is not found.

    Used identically for rows that do not exist and rows owned by another
    organization, so callers cannot discover foreign ids.
    """

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None):
        message = f"{resource} not found"
        details = {"resource": resource}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class IncidentNotFoundError(NotFoundError):
    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="Incident", identifier=identifier)


class ServiceNotFoundError(NotFoundError):
    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="Service", identifier=identifier)


class OrganizationNotFoundError(NotFoundError):
    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="Organization", identifier=identifier)


# ==========================
# Validation Exceptions
# ==========================

class ValidationError(StatusPageError):
    """Raised when a mutation request is missing or has malformed fields."""

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class MissingFieldError(ValidationError):
    def __init__(self, *fields: str):
        super().__init__(
            message=f"Missing required field(s): {', '.join(fields)}",
            details={"fields": list(fields)}
        )


class UnknownServiceError(ValidationError):
    """Raised when an affected service id does not belong to the organization."""

    def __init__(self, service_ids: list):
        super().__init__(
            message="One or more affected services do not exist in this organization",
            details={"service_ids": [str(s) for s in service_ids]}
        )


# ==========================
# Concurrency / Storage Exceptions
# ==========================

class ConflictError(StatusPageError):
    """Raised when a write conflicts with existing state."""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            retryable=retryable,
        )


class StaleWriteError(ConflictError):
    """Raised when a concurrent writer committed first."""

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            message=f"{resource} was modified concurrently. Reload and retry.",
            details={"resource": resource},
            retryable=True,
        )


class StorageError(StatusPageError):
    """Raised when the persistence store is unavailable. Always after rollback."""

    retryable = True

    def __init__(
        self,
        message: str = "Storage temporarily unavailable",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )


class StorageTimeoutError(StorageError):
    def __init__(self):
        super().__init__(message="Storage operation timed out")
