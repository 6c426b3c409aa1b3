"""Typed outcomes for authentication flows.

Credential and token checks return ``Ok`` or ``Err`` instead of raising, so
every caller has to look at the error kind. The HTTP layer turns an ``Err``
into an API exception with :func:`wordle_identity.core.exceptions.raise_for_error`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class AuthErrorKind(str, Enum):
    """Precise failure kinds. Only some of them are shown to end users."""

    VALIDATION = "validation_error"
    USERNAME_TAKEN = "username_taken"
    EMAIL_TAKEN = "email_taken"
    EXTERNAL_ID_LINKED = "external_id_linked"
    INVALID_CREDENTIALS = "invalid_credentials"
    OAUTH_ONLY = "oauth_only"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    TOKEN_WRONG_KIND = "token_wrong_kind"
    SESSION_NOT_FOUND = "session_not_found"
    ACCOUNT_INACTIVE = "account_inactive"
    INVALID_STATE = "invalid_state"
    EXPIRED_STATE = "expired_state"
    EXCHANGE_FAILED = "exchange_failed"
    USER_INFO_FAILED = "user_info_failed"
    USERNAME_UNAVAILABLE = "username_unavailable"
    OAUTH_NOT_CONFIGURED = "oauth_not_configured"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: AuthErrorKind
    detail: str = ""
    field: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
