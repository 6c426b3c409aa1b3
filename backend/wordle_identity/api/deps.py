"""API dependencies - service wiring and bearer authentication"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from wordle_identity.config import settings
from wordle_identity.core.database import get_db
from wordle_identity.core.exceptions import AuthenticationError, raise_for_error
from wordle_identity.models.account import Account
from wordle_identity.services.auth_service import AuthService

# HTTP Bearer token scheme; missing headers are reported as 401 below
security = HTTPBearer(auto_error=False)


@lru_cache()
def get_auth_service() -> AuthService:
    """Process-wide orchestrator built from settings. Tests override this dependency."""
    return AuthService.from_settings(settings)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> Account:
    """
    Resolve the bearer access token to an active account

    Raises:
        AuthenticationError: missing header, bad or expired token, wrong token
            kind, or deactivated account
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required", code="authentication_required")

    result = service.authenticate(db, credentials.credentials)
    if not result.ok:
        raise_for_error(result, context="auth")
    return result.value
