"""Authentication routes"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from wordle_identity.core.database import get_db
from wordle_identity.config import settings
from wordle_identity.schemas.account import AccountEnvelope, AccountResponse
from wordle_identity.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    OAuthCallbackRequest,
    AuthResponse,
    TokenPairResponse,
    AuthorizationUrlResponse,
    RevokedResponse,
)
from wordle_identity.services.auth_service import AuthService, AuthenticatedAccount
from wordle_identity.services.rate_limiter import rate_limiter
from wordle_identity.api.deps import client_ip, get_auth_service, get_current_account
from wordle_identity.models.account import Account
from wordle_identity.core.exceptions import OAuthCallbackError, raise_for_error

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(outcome: AuthenticatedAccount, service: AuthService) -> AuthResponse:
    return AuthResponse(
        access_token=outcome.tokens.access_token,
        refresh_token=outcome.tokens.refresh_token,
        token_type="bearer",
        expires_in=int(service.tokens.access_ttl.total_seconds()),
        account=AccountResponse.model_validate(outcome.account),
    )


def _login_limits():
    return (
        (settings.LOGIN_RATE_LIMIT_PER_MINUTE, 60),
        (settings.LOGIN_RATE_LIMIT_PER_HOUR, 3600),
    )


def _general_limits():
    return (
        (settings.RATE_LIMIT_PER_MINUTE, 60),
        (settings.RATE_LIMIT_PER_HOUR, 3600),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Create a local account and sign it in

    Returns:
        Account plus a fresh token pair
    """
    rate_limiter.enforce(
        "register", client_ip(request), _login_limits(),
        "Too many registration attempts. Please try again later.",
    )

    result = service.register(db, body.username, body.email, body.password)
    if not result.ok:
        raise_for_error(result, context="register")
    return _auth_response(result.value, service)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Login endpoint - verify username and password and issue a token pair

    Existing sessions on other devices stay valid.
    """
    user_key = credentials.username.strip().lower()
    rate_limiter.enforce(
        "login", f"{client_ip(request)}:{user_key}", _login_limits(),
        "Too many login attempts. Please wait a minute.",
    )

    result = service.login(db, credentials.username, credentials.password)
    if not result.ok:
        raise_for_error(result, context="login")
    return _auth_response(result.value, service)


@router.get("/oauth/login", response_model=AuthorizationUrlResponse)
def oauth_login(
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Start the provider login: persist a state token and return the authorization URL"""
    result = service.authorization_url(db)
    if not result.ok:
        raise_for_error(result, context="oauth")
    return AuthorizationUrlResponse(authorization_url=result.value.url)


def _complete_oauth(
    request: Request,
    db: Session,
    service: AuthService,
    code: Optional[str],
    state: Optional[str],
    redirect_uri: Optional[str] = None,
) -> AuthResponse:
    rate_limiter.enforce(
        "oauth", client_ip(request), _login_limits(),
        "Too many login attempts. Please try again later.",
    )
    result = service.oauth_login(db, code or "", state or "", redirect_uri)
    if not result.ok:
        raise_for_error(result, context="oauth")
    return _auth_response(result.value, service)


@router.get("/oauth/callback", response_model=AuthResponse)
def oauth_callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Provider redirect target"""
    if error:
        logger.info("Identity provider returned error=%s", error)
        raise OAuthCallbackError("exchange_failed")
    return _complete_oauth(request, db, service, code, state)


@router.post("/oauth/callback", response_model=AuthResponse)
def oauth_callback_post(
    body: OAuthCallbackRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Client-forwarded callback; ``redirect_uri`` must match the authorization request"""
    return _complete_oauth(request, db, service, body.code, body.state, body.redirect_uri)


@router.post("/refresh", response_model=TokenPairResponse)
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Rotate a refresh token

    The presented token is revoked; replaying it afterwards fails with 401.
    """
    rate_limiter.enforce(
        "refresh", client_ip(request), _general_limits(),
        "Too many refresh attempts. Slow down.",
    )

    result = service.refresh(db, req.refresh_token)
    if not result.ok:
        raise_for_error(result, context="refresh")

    tokens = result.value.tokens
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type="bearer",
        expires_in=int(service.tokens.access_ttl.total_seconds()),
    )


@router.post("/logout", response_model=RevokedResponse, status_code=status.HTTP_200_OK)
def logout(
    body: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Revoke one refresh token. Unknown or missing tokens still succeed."""
    revoked = service.logout(db, body.refresh_token if body else None)
    return RevokedResponse(message="Logged out successfully", revoked=revoked)


@router.post("/logout-all", response_model=RevokedResponse)
def logout_all(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Revoke every session of the caller"""
    revoked = service.logout_all(db, current_account.id)
    return RevokedResponse(message="Logged out from all devices", revoked=revoked)


@router.get("/me", response_model=AccountEnvelope)
def get_current_account_info(
    current_account: Account = Depends(get_current_account),
):
    return AccountEnvelope(account=AccountResponse.model_validate(current_account))
