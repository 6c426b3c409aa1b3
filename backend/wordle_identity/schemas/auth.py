"""Authentication schemas"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional

from wordle_identity.schemas.account import AccountResponse


class RegisterRequest(BaseModel):
    """Local account registration"""
    username: str = Field(..., min_length=3, max_length=30, pattern=r'^[A-Za-z0-9_]+$')
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    """Username/password login"""
    username: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenRequest(BaseModel):
    """Refresh token rotation request"""
    refresh_token: str = Field(..., min_length=1, validation_alias=AliasChoices("refresh_token", "refreshToken"))


class LogoutRequest(BaseModel):
    """Logout request; an absent token is accepted"""
    refresh_token: Optional[str] = Field(default=None, validation_alias=AliasChoices("refresh_token", "refreshToken"))


class OAuthCallbackRequest(BaseModel):
    """Provider redirect parameters posted by a client"""
    code: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    redirect_uri: Optional[str] = Field(default=None, validation_alias=AliasChoices("redirect_uri", "redirectUri"))


class TokenPairResponse(BaseModel):
    """Fresh access/refresh pair, serialized as accessToken/refreshToken"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenPairResponse):
    """Token pair plus the authenticated account"""
    account: AccountResponse


class AuthorizationUrlResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    authorization_url: str


class RevokedResponse(BaseModel):
    success: bool = True
    message: str
    revoked: int
