"""Account self-service routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from wordle_identity.core.database import get_db
from wordle_identity.core.exceptions import raise_for_error
from wordle_identity.schemas.account import (
    AccountEnvelope,
    AccountResponse,
    AccountUpdate,
    PasswordChangeRequest,
)
from wordle_identity.schemas.auth import AuthResponse, RevokedResponse
from wordle_identity.services.auth_service import AuthService
from wordle_identity.api.deps import get_auth_service, get_current_account
from wordle_identity.models.account import Account

router = APIRouter()


@router.get("/me", response_model=AccountEnvelope)
def get_my_profile(
    current_account: Account = Depends(get_current_account)
):
    """
    Get current account profile

    Args:
        current_account: Current authenticated account

    Returns:
        Account profile
    """
    return AccountEnvelope(account=AccountResponse.model_validate(current_account))


@router.put("/me", response_model=AccountEnvelope)
def update_my_profile(
    body: AccountUpdate,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Update display name, avatar or email

    Args:
        body: Fields to change
        current_account: Current authenticated account
        db: Database session

    Returns:
        Updated account
    """
    result = service.update_profile(
        db,
        current_account.id,
        display_name=body.display_name,
        avatar_url=body.avatar_url,
        email=body.email,
    )
    if not result.ok:
        raise_for_error(result, context="auth")
    return AccountEnvelope(account=AccountResponse.model_validate(result.value))


@router.post("/me/password", response_model=AuthResponse)
def change_my_password(
    body: PasswordChangeRequest,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Replace the password; every existing session is revoked and a new pair issued"""
    result = service.change_password(
        db,
        current_account.id,
        body.new_password,
        current_password=body.current_password,
    )
    if not result.ok:
        raise_for_error(result, context="password")

    outcome = result.value
    return AuthResponse(
        access_token=outcome.tokens.access_token,
        refresh_token=outcome.tokens.refresh_token,
        token_type="bearer",
        expires_in=int(service.tokens.access_ttl.total_seconds()),
        account=AccountResponse.model_validate(outcome.account),
    )


@router.delete("/me", response_model=RevokedResponse, status_code=status.HTTP_200_OK)
def deactivate_my_account(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Deactivate the caller's account

    Accounts are never hard-deleted; all sessions are revoked and the
    username and email stay reserved.
    """
    result = service.deactivate(db, current_account.id)
    if not result.ok:
        raise_for_error(result, context="auth")
    return RevokedResponse(message="Account deactivated", revoked=result.value)
