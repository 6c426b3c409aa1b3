"""Access/refresh JWT issuance and verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from wordle_identity.config import Settings
from wordle_identity.core.database import utcnow
from wordle_identity.core.result import AuthErrorKind, Err, Ok, Result
from wordle_identity.core.security import generate_token_id

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """The only identity shape a decoded token may carry."""

    model_config = ConfigDict(frozen=True)

    account_id: int
    username: str
    email: str
    kind: TokenKind


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class TokenService:
    """
    Sign and verify time-bounded tokens.

    Access and refresh tokens are signed with different secrets and carry
    their kind in the signed payload; ``verify`` checks both.
    """

    def __init__(
        self,
        *,
        secret_key: str,
        refresh_secret_key: str,
        algorithm: str = "HS256",
        issuer: str = "wordle-user-service",
        audience: str = "wordle-app",
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._keys = {TokenKind.ACCESS: secret_key, TokenKind.REFRESH: refresh_secret_key}
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret_key=settings.SECRET_KEY,
            refresh_secret_key=settings.REFRESH_SECRET_KEY,
            algorithm=settings.ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    def _encode(
        self,
        kind: TokenKind,
        *,
        account_id: int,
        username: str,
        email: str,
        now: datetime,
    ) -> tuple[str, datetime]:
        ttl = self.access_ttl if kind == TokenKind.ACCESS else self.refresh_ttl
        # JWT timestamps have whole-second resolution.
        expires_at = (now + ttl).replace(microsecond=0)
        claims: Dict[str, Any] = {
            "sub": str(account_id),
            "username": username,
            "email": email,
            "kind": kind.value,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": expires_at,
            "jti": generate_token_id(),
        }
        token = jwt.encode(claims, self._keys[kind], algorithm=self.algorithm)
        return token, expires_at

    def issue_pair(self, account_id: int, username: str, email: str) -> TokenPair:
        now = utcnow()
        access_token, access_exp = self._encode(
            TokenKind.ACCESS, account_id=account_id, username=username, email=email, now=now
        )
        refresh_token, refresh_exp = self._encode(
            TokenKind.REFRESH, account_id=account_id, username=username, email=email, now=now
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
        )

    @staticmethod
    def _unverified_kind(token: str) -> Optional[str]:
        try:
            return jwt.get_unverified_claims(token).get("kind")
        except JWTError:
            return None

    def verify(self, token: str, expected_kind: TokenKind) -> Result[TokenPayload]:
        """
        Check signature, expiry, issuer/audience and kind.

        Returns:
            Ok(TokenPayload), or Err with TOKEN_EXPIRED, TOKEN_WRONG_KIND or
            TOKEN_INVALID.
        """
        if not token:
            return Err(AuthErrorKind.TOKEN_INVALID, "empty token")

        try:
            claims = jwt.decode(
                token,
                self._keys[expected_kind],
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError:
            return Err(AuthErrorKind.TOKEN_EXPIRED, f"{expected_kind.value} token expired")
        except JWTError as exc:
            presented = self._unverified_kind(token)
            if presented and presented != expected_kind.value:
                return Err(
                    AuthErrorKind.TOKEN_WRONG_KIND,
                    f"expected {expected_kind.value} token, got {presented}",
                )
            return Err(AuthErrorKind.TOKEN_INVALID, str(exc))

        if claims.get("kind") != expected_kind.value:
            return Err(
                AuthErrorKind.TOKEN_WRONG_KIND,
                f"expected {expected_kind.value} token, got {claims.get('kind')}",
            )

        try:
            payload = TokenPayload(
                account_id=claims.get("sub"),
                username=claims.get("username"),
                email=claims.get("email"),
                kind=claims.get("kind"),
            )
        except ValidationError:
            logger.warning("Signed %s token is missing identity claims", expected_kind.value)
            return Err(AuthErrorKind.TOKEN_INVALID, "malformed payload")

        return Ok(payload)
