"""Pydantic schemas for API validation"""

from wordle_identity.schemas.account import (
    AccountResponse,
    AccountEnvelope,
    AccountUpdate,
    PasswordChangeRequest,
)
from wordle_identity.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    OAuthCallbackRequest,
    TokenPairResponse,
    AuthResponse,
    AuthorizationUrlResponse,
    RevokedResponse,
)
from wordle_identity.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "AccountResponse", "AccountEnvelope", "AccountUpdate", "PasswordChangeRequest",
    "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "LogoutRequest", "OAuthCallbackRequest",
    "TokenPairResponse", "AuthResponse", "AuthorizationUrlResponse", "RevokedResponse",
    "ErrorResponse", "HealthResponse",
]
