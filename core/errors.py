"""
core/errors.py — Error Taxonomy
================================
Every failure the API reports is one of these. They are HTTPExceptions, so
a route or module can raise them directly; main.py renders them into the
standard {"success": false, "message": ...} envelope.
"""

from typing import List, Optional
from fastapi import HTTPException, status


class RegistryError(HTTPException):
    """Base class — carries the HTTP status and a human readable message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)
        self.errors = errors or []

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(RegistryError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class ConflictError(RegistryError):
    """Uniqueness violation or an illegal state transition."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict with current state"


class AuthenticationError(RegistryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Access token required"


class InvalidTokenError(RegistryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Invalid or expired token"


class AuthorizationError(RegistryError):
    """Authenticated, but the role or ownership does not allow this."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(RegistryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalError(RegistryError):
    """A dependency (database, ledger) failed while serving the request."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
