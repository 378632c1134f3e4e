"""
Application error taxonomy.

Every error carries the HTTP status and the human-readable message that ends up
in the ``{"success": false, "message": ...}`` envelope.
"""

from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Access token required"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class RateLimitError(AppError):
    status_code = 429
    default_message = "Too many requests. Please wait a moment."


class StoreError(AppError):
    # Never carries driver or SQL detail
    status_code = 500
    default_message = "Server error"
