"""
Application Error Taxonomy

Every failure a service can report to a client is an AppError subclass
carrying its HTTP status. Services raise them; the exception handlers in
tablehub.main turn them into the standard response envelope:

    {"success": false, "message": "...", "errors": [...]}
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[str]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


# =============================================================================
# 400 - BAD INPUT
# =============================================================================

class ValidationFailed(AppError):
    status_code = 400
    default_message = "Validation failed"


class InvalidTransition(AppError):
    status_code = 400
    default_message = "Invalid status transition"


class ItemUnavailable(AppError):
    status_code = 400
    default_message = "Menu item is not available"


class GrantExpired(AppError):
    status_code = 400
    default_message = "Access token has expired"


# =============================================================================
# 401 - AUTHENTICATION
# =============================================================================

class Unauthorized(AppError):
    status_code = 401
    default_message = "Access token is required"


class InvalidCredentials(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class TokenInvalid(AppError):
    status_code = 401
    default_message = "Invalid token"


class TokenExpired(AppError):
    status_code = 401
    default_message = "Token expired"


class TokenRevoked(AppError):
    status_code = 401
    default_message = "Token has been invalidated"


# =============================================================================
# 403 / 404 - AUTHORIZATION AND LOOKUP
# =============================================================================

class Forbidden(AppError):
    status_code = 403
    default_message = "Access denied"


class EmailMismatch(AppError):
    status_code = 403
    default_message = "Email does not match invitation"


class GrantRevoked(AppError):
    status_code = 403
    default_message = "Access has been revoked"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


# =============================================================================
# 409 / 423 / 429 / 500
# =============================================================================

class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class DuplicateEmail(ConflictError):
    default_message = "An account with this email already exists"


class AccountLocked(AppError):
    status_code = 423
    default_message = "Account is temporarily locked due to too many failed login attempts"


class RateLimited(AppError):
    status_code = 429
    default_message = "Too many requests. Please try again later."


class ServiceError(AppError):
    status_code = 500
    default_message = "Internal server error"
