"""Custom exception classes for the application"""

import logging
from typing import Optional, Dict, Any, NoReturn

from wordle_identity.core.result import AuthErrorKind, Err

logger = logging.getLogger(__name__)


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        code: str = "internal_error",
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.code = code
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed", code: str = "authentication_failed"):
        super().__init__(message, status_code=401, code=code)


class InvalidCredentialsError(AuthenticationError):
    """Unknown user, deactivated account or wrong password - deliberately indistinguishable"""
    def __init__(self):
        super().__init__("Invalid credentials or account deactivated", code="invalid_credentials")


class OAuthOnlyAccountError(AuthenticationError):
    """Account has no local password"""
    def __init__(self):
        super().__init__("This account uses OAuth login only", code="oauth_only")


class TokenRefreshError(AuthenticationError):
    """Refresh token rejected for any reason"""
    def __init__(self):
        super().__init__("Token refresh failed", code="token_refresh_failed")


class TokenInvalidError(AuthenticationError):
    """Access token rejected for any reason"""
    def __init__(self):
        super().__init__("Invalid or expired token", code="token_invalid")


# OAuth Errors
class OAuthCallbackError(BaseAPIException):
    """OAuth callback could not be completed"""

    MESSAGES = {
        "invalid_state": "OAuth state is invalid",
        "expired_state": "OAuth state has expired",
        "exchange_failed": "OAuth exchange failed",
        "user_info_failed": "Failed to retrieve user info from identity provider",
    }

    def __init__(self, reason: str):
        super().__init__(
            self.MESSAGES.get(reason, "OAuth login failed"),
            status_code=400,
            details={"reason": reason},
            code=reason,
        )


class OAuthNotConfiguredError(BaseAPIException):
    """Identity provider credentials missing"""
    def __init__(self):
        super().__init__("OAuth login is not available", status_code=503, code="oauth_not_configured")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404, code="not_found")


class ConflictError(BaseAPIException):
    """Unique value already in use"""
    def __init__(self, message: str, code: str):
        super().__init__(message, status_code=409, code=code)


class UsernameTakenError(ConflictError):
    def __init__(self, username: str = ""):
        super().__init__("Username already exists", code="username_taken")
        self.username = username


class EmailTakenError(ConflictError):
    def __init__(self, email: str = ""):
        super().__init__("Email already exists", code="email_taken")
        self.email = email


class ExternalIdLinkedError(ConflictError):
    def __init__(self):
        super().__init__("Identity provider account is already linked", code="external_id_linked")


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details, code="validation_error")


# System Errors
class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429, code="rate_limited")


_TOKEN_KINDS = {
    AuthErrorKind.TOKEN_EXPIRED,
    AuthErrorKind.TOKEN_INVALID,
    AuthErrorKind.TOKEN_WRONG_KIND,
    AuthErrorKind.SESSION_NOT_FOUND,
}

_OAUTH_REASONS = {
    AuthErrorKind.INVALID_STATE,
    AuthErrorKind.EXPIRED_STATE,
    AuthErrorKind.EXCHANGE_FAILED,
    AuthErrorKind.USER_INFO_FAILED,
}


def raise_for_error(err: Err, context: str = "auth") -> NoReturn:
    """
    Convert a failed result into the API exception shown to the caller.

    Credential and token failures collapse into coarse messages; the precise
    kind only reaches the log.

    Args:
        err: Failed result
        context: flow name for the log line. "auth" (bearer-protected call) and
            "refresh" pick their token messages; "login", "register", "password"
            and "oauth" report credential failures as invalid credentials
    """
    logger.info("Auth failure context=%s kind=%s detail=%s", context, err.kind.value, err.detail)
    kind = err.kind

    if kind == AuthErrorKind.VALIDATION:
        details = {"field": err.field} if err.field else None
        raise ValidationError(err.detail or "Validation failed", details=details)
    if kind == AuthErrorKind.USERNAME_TAKEN:
        raise UsernameTakenError()
    if kind == AuthErrorKind.EMAIL_TAKEN:
        raise EmailTakenError()
    if kind == AuthErrorKind.EXTERNAL_ID_LINKED:
        raise ExternalIdLinkedError()
    if kind == AuthErrorKind.USERNAME_UNAVAILABLE:
        raise ConflictError("Could not allocate a unique username", code="username_unavailable")
    if kind == AuthErrorKind.OAUTH_ONLY:
        raise OAuthOnlyAccountError()
    if kind == AuthErrorKind.OAUTH_NOT_CONFIGURED:
        raise OAuthNotConfiguredError()
    if kind in _OAUTH_REASONS:
        raise OAuthCallbackError(kind.value)
    if kind == AuthErrorKind.NOT_FOUND:
        raise ResourceNotFoundError("Account")
    if kind in (AuthErrorKind.INVALID_CREDENTIALS, AuthErrorKind.ACCOUNT_INACTIVE):
        if context == "refresh":
            raise TokenRefreshError()
        if context == "auth":
            raise TokenInvalidError()
        raise InvalidCredentialsError()
    if kind in _TOKEN_KINDS:
        if context == "refresh":
            raise TokenRefreshError()
        raise TokenInvalidError()

    raise BaseAPIException("Authentication failed", status_code=401, code="authentication_failed")
