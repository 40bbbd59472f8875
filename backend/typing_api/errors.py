"""Typed API errors.

Every failure a route can report is one of the variants below. Services and
dependencies raise them; the handler registered in ``main.py`` turns them into
the ``{"success": false, "error", "code", ...}`` envelope.
"""
from typing import Any, Dict, List, Optional


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[List[Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.message
        self.details = details
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------

class ValidationFailed(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Validation failed"


class IncorrectPassword(ApiError):
    status_code = 400
    code = "PASSWORD_INCORRECT"
    message = "Current password is incorrect"


class NoProfilePicture(ApiError):
    status_code = 400
    code = "NO_PROFILE_PICTURE"
    message = "No profile picture to delete"


class PasswordNotSet(ApiError):
    status_code = 400
    code = "OAUTH_PASSWORD_CHANGE_NOT_ALLOWED"
    message = "Cannot change password for Google OAuth accounts"


class OAuthInvalidToken(ApiError):
    status_code = 400
    code = "OAUTH_INVALID_TOKEN"
    message = "Invalid Google token"


# ---------------------------------------------------------------------------
# 401
# ---------------------------------------------------------------------------

class TokenMissing(ApiError):
    status_code = 401
    code = "AUTH_TOKEN_MISSING"
    message = "Authentication required"


class TokenInvalid(ApiError):
    status_code = 401
    code = "AUTH_TOKEN_INVALID"
    message = "Invalid authentication token"


class TokenExpired(ApiError):
    status_code = 401
    code = "AUTH_TOKEN_EXPIRED"
    message = "Authentication token has expired"


class TokenVerificationFailed(ApiError):
    status_code = 401
    code = "AUTH_TOKEN_INVALID"
    message = "Failed to verify authentication token"


class UserNotFound(ApiError):
    status_code = 401
    code = "AUTH_USER_NOT_FOUND"
    message = "User not found"


class InvalidCredentials(ApiError):
    status_code = 401
    code = "AUTH_INVALID_CREDENTIALS"
    message = "Invalid username or password"


# ---------------------------------------------------------------------------
# 403 / 404 / 409
# ---------------------------------------------------------------------------

class InsufficientPrivileges(ApiError):
    status_code = 403
    code = "AUTH_INSUFFICIENT_PRIVILEGES"
    message = "Admin privileges required"


class Forbidden(ApiError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class ResourceNotFound(ApiError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class UsernameTaken(ApiError):
    status_code = 409
    code = "USERNAME_TAKEN"
    message = "Username already exists"


class GoogleAccountExists(ApiError):
    status_code = 409
    code = "GOOGLE_ACCOUNT_EXISTS"
    message = "Google account already registered"


# ---------------------------------------------------------------------------
# 429
# ---------------------------------------------------------------------------

class RateLimitExceeded(ApiError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many requests"

    def __init__(self, message: Optional[str] = None, *, retry_after: int, headers: Optional[Dict[str, str]] = None):
        super().__init__(message, headers=headers)
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["retryAfter"] = self.retry_after
        return payload


# ---------------------------------------------------------------------------
# 5xx
# ---------------------------------------------------------------------------

class UsernameGenerationFailed(ApiError):
    status_code = 500
    code = "USERNAME_GENERATION_FAILED"
    message = "Unable to generate unique username"


class AuthInternalError(ApiError):
    status_code = 500
    code = "AUTH_INTERNAL_ERROR"
    message = "Internal authentication error"


class OAuthNotConfigured(ApiError):
    status_code = 503
    code = "OAUTH_NOT_CONFIGURED"
    message = "Google OAuth not configured"
