"""Typed errors surfaced by the core.

Every error carries the HTTP status and machine-readable code it renders as.
The API layer installs a single handler for :class:`AppError`.
"""

from __future__ import annotations

from fastapi import status

HTTP_CLIENT_CLOSED_REQUEST = 499


class AppError(RuntimeError):
    """Base exception for failures that reach the API boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    """Raised when a post, comment, hashtag or user is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class UnauthorizedError(AppError):
    """Raised when the actor does not own the entity it tries to mutate."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class ValidationFailedError(AppError):
    """Raised when a payload fails a field constraint."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation"


class ConflictError(AppError):
    """Raised on a unique-constraint collision reported by the store."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StoreUnavailableError(AppError):
    """Raised when the store returns a transport error or a 5xx."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "store_unavailable"


class RequestCancelledError(AppError):
    """Raised when the request context is cancelled mid-flight."""

    status_code = HTTP_CLIENT_CLOSED_REQUEST
    code = "cancelled"


class DuplicateKeyError(ConflictError):
    """Conflict caused specifically by a unique-constraint violation."""
