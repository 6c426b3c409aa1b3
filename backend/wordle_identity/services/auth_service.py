"""Authentication orchestration - register, login, OAuth login, refresh, logout."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

import httpx
from prometheus_client import Counter
from sqlalchemy.orm import Session

from wordle_identity.config import Settings
from wordle_identity.core.exceptions import (
    ConflictError,
    EmailTakenError,
    ExternalIdLinkedError,
    ResourceNotFoundError,
    UsernameTakenError,
)
from wordle_identity.core.result import AuthErrorKind, Err, Ok, Result
from wordle_identity.core.security import PasswordHasher, generate_state_token
from wordle_identity.models.account import Account
from wordle_identity.services.credential_store import AccountStore, NewAccount
from wordle_identity.services.oauth_client import AuthorizationRequest, OAuthClient, ProviderIdentity
from wordle_identity.services.oauth_state_store import OAuthStateStore
from wordle_identity.services.session_store import SessionStore
from wordle_identity.services.token_service import TokenKind, TokenPair, TokenService

logger = logging.getLogger(__name__)

AUTH_EVENTS = Counter(
    "wordle_identity_auth_events_total",
    "Authentication flow outcomes",
    ["flow", "outcome"],
)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
DISPLAY_NAME_MAX_LENGTH = 100

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class AuthenticatedAccount:
    account: Account
    tokens: TokenPair


def validate_username(username: str) -> Optional[Err]:
    if not username or not _USERNAME_RE.match(username):
        return Err(
            AuthErrorKind.VALIDATION,
            "Username must be 3-30 characters of letters, digits or underscore",
            field="username",
        )
    return None


def validate_email(email: str) -> Optional[Err]:
    if not email or len(email) > 255 or not _EMAIL_RE.match(email):
        return Err(AuthErrorKind.VALIDATION, "Please provide a valid email address", field="email")
    return None


def validate_password(password: str) -> Optional[Err]:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        return Err(
            AuthErrorKind.VALIDATION,
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            field="password",
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        return Err(
            AuthErrorKind.VALIDATION,
            f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters",
            field="password",
        )
    return None


def sanitize_username(raw: str, external_id: str) -> str:
    """Fold a provider username into the local username alphabet and length."""
    cleaned = _USERNAME_INVALID_CHARS.sub("_", raw or "").strip("_")[:USERNAME_MAX_LENGTH]
    if len(cleaned) < USERNAME_MIN_LENGTH:
        cleaned = f"user_{external_id}"[:USERNAME_MAX_LENGTH]
    return cleaned


def _fit(base: str, suffix: str) -> str:
    head = base[: max(USERNAME_MIN_LENGTH, USERNAME_MAX_LENGTH - len(suffix))]
    return (head + suffix)[:USERNAME_MAX_LENGTH]


def username_candidates(base: str, external_id: str, max_attempts: int) -> Iterator[str]:
    """``base``, ``base_<id>``, ``base_<id>_1``, ... - at most ``max_attempts`` names."""
    yield base
    for attempt in range(1, max_attempts):
        suffix = f"_{external_id}" if attempt == 1 else f"_{external_id}_{attempt - 1}"
        yield _fit(base, suffix)


def _conflict_err(exc: ConflictError) -> Err:
    if isinstance(exc, UsernameTakenError):
        return Err(AuthErrorKind.USERNAME_TAKEN, exc.message, field="username")
    if isinstance(exc, EmailTakenError):
        return Err(AuthErrorKind.EMAIL_TAKEN, exc.message, field="email")
    if isinstance(exc, ExternalIdLinkedError):
        return Err(AuthErrorKind.EXTERNAL_ID_LINKED, exc.message)
    return Err(AuthErrorKind.VALIDATION, exc.message)


def _record(flow: str, result: Result) -> Result:
    outcome = "success" if result.ok else result.kind.value
    AUTH_EVENTS.labels(flow, outcome).inc()
    if not result.ok:
        logger.info("%s failed: %s (%s)", flow, result.kind.value, result.detail)
    return result


class AuthService:
    """
    Composes the stores, hasher, token service and OAuth client.

    Every public flow returns ``Ok`` or ``Err``; nothing here raises for a
    credential, token or conflict failure. Database errors propagate.
    """

    def __init__(
        self,
        *,
        accounts: AccountStore,
        sessions: SessionStore,
        tokens: TokenService,
        hasher: PasswordHasher,
        oauth: OAuthClient,
        username_max_attempts: int = 5,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self.tokens = tokens
        self.hasher = hasher
        self.oauth = oauth
        self.username_max_attempts = max(1, username_max_attempts)
        self._dummy_hash: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "AuthService":
        """Wire the production collaborators; ``transport`` swaps the provider HTTP layer."""
        return cls(
            accounts=AccountStore(),
            sessions=SessionStore(),
            tokens=TokenService.from_settings(settings),
            hasher=PasswordHasher(rounds=settings.BCRYPT_ROUNDS),
            oauth=OAuthClient.from_settings(settings, OAuthStateStore(), transport=transport),
            username_max_attempts=settings.OAUTH_USERNAME_MAX_ATTEMPTS,
        )

    # Sessions

    def _start_session(self, db: Session, account: Account) -> AuthenticatedAccount:
        """Mint a pair and persist its refresh token. Caller commits."""
        pair = self.tokens.issue_pair(account.id, account.username, account.email)
        self.sessions.create(db, account.id, pair.refresh_token, pair.refresh_expires_at)
        return AuthenticatedAccount(account=account, tokens=pair)

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise

    # Local credentials

    def register(self, db: Session, username: str, email: str, password: str) -> Result[AuthenticatedAccount]:
        username = (username or "").strip()
        email = (email or "").strip()
        for error in (validate_username(username), validate_email(email), validate_password(password)):
            if error:
                return _record("register", error)

        if self.accounts.find_by_username(db, username, include_inactive=True):
            return _record("register", Err(AuthErrorKind.USERNAME_TAKEN, "username exists", field="username"))
        if self.accounts.find_by_email(db, email, include_inactive=True):
            return _record("register", Err(AuthErrorKind.EMAIL_TAKEN, "email exists", field="email"))

        password_hash = self.hasher.hash(password)
        try:
            account = self.accounts.create(
                db,
                NewAccount(
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    display_name=username,
                ),
            )
        except ConflictError as exc:
            return _record("register", _conflict_err(exc))

        outcome = self._start_session(db, account)
        self._commit(db)
        logger.info("Registered account id=%s username=%s", account.id, account.username)
        return _record("register", Ok(outcome))

    def login(self, db: Session, username: str, password: str) -> Result[AuthenticatedAccount]:
        if not username or not password:
            return _record("login", Err(AuthErrorKind.INVALID_CREDENTIALS, "missing credentials"))

        account = self.accounts.find_by_username(db, username.strip())
        if account is None:
            # Same bcrypt cost as a real check; timing must not reveal whether the username exists.
            self.hasher.verify(password, self._timing_hash())
            return _record("login", Err(AuthErrorKind.INVALID_CREDENTIALS, "unknown or inactive account"))
        if account.password_hash is None:
            return _record("login", Err(AuthErrorKind.OAUTH_ONLY, f"account id={account.id}"))
        if not self.hasher.verify(password, account.password_hash):
            return _record("login", Err(AuthErrorKind.INVALID_CREDENTIALS, f"wrong password id={account.id}"))

        # Additive policy: sessions on other devices stay valid.
        outcome = self._start_session(db, account)
        self._commit(db)
        logger.info("Account logged in id=%s", account.id)
        return _record("login", Ok(outcome))

    def _timing_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(generate_state_token())
        return self._dummy_hash

    # OAuth

    def authorization_url(self, db: Session) -> Result[AuthorizationRequest]:
        return self.oauth.build_authorization_url(db)

    def oauth_login(
        self,
        db: Session,
        code: str,
        state: str,
        redirect_uri: Optional[str] = None,
    ) -> Result[AuthenticatedAccount]:
        if not self.oauth.is_configured():
            return _record("oauth_login", Err(AuthErrorKind.OAUTH_NOT_CONFIGURED, "missing client credentials"))

        consumed = self.oauth.state_store.consume(db, state)
        if not consumed.ok:
            return _record("oauth_login", consumed)

        exchanged = self.oauth.exchange_code(code, redirect_uri)
        if not exchanged.ok:
            return _record("oauth_login", exchanged)

        identity = self.oauth.fetch_user_info(exchanged.value)
        if not identity.ok:
            return _record("oauth_login", identity)

        resolved = self._resolve_oauth_account(db, identity.value)
        if not resolved.ok:
            return _record("oauth_login", resolved)

        outcome = self._start_session(db, resolved.value)
        self._commit(db)
        logger.info("OAuth login id=%s external_id=%s", resolved.value.id, identity.value.external_id)
        return _record("oauth_login", Ok(outcome))

    def _resolve_oauth_account(self, db: Session, identity: ProviderIdentity) -> Result[Account]:
        account = self.accounts.find_by_external_id(db, identity.external_id, include_inactive=True)
        if account is not None:
            if not account.is_active:
                return Err(AuthErrorKind.ACCOUNT_INACTIVE, f"account id={account.id}")
            return Ok(account)

        account = self.accounts.find_by_email(db, identity.email, include_inactive=True)
        if account is not None:
            return self._link_account(db, account, identity)

        return self._create_oauth_account(db, identity)

    def _link_account(self, db: Session, account: Account, identity: ProviderIdentity) -> Result[Account]:
        """Attach the provider id to the local account with the same email; password is kept."""
        if not account.is_active:
            return Err(AuthErrorKind.ACCOUNT_INACTIVE, f"account id={account.id}")
        if account.external_provider_id and account.external_provider_id != identity.external_id:
            return Err(AuthErrorKind.EXTERNAL_ID_LINKED, f"account id={account.id} linked elsewhere")

        updates = {"external_provider_id": identity.external_id}
        if not account.display_name and identity.display_name:
            updates["display_name"] = identity.display_name[:DISPLAY_NAME_MAX_LENGTH]
        if not account.avatar_url and identity.avatar_url:
            updates["avatar_url"] = identity.avatar_url
        try:
            linked = self.accounts.update(db, account.id, **updates)
        except ConflictError as exc:
            return _conflict_err(exc)
        logger.info("Linked provider id=%s to account id=%s", identity.external_id, account.id)
        return Ok(linked)

    def _create_oauth_account(self, db: Session, identity: ProviderIdentity) -> Result[Account]:
        base = sanitize_username(identity.username, identity.external_id)
        display_name = (identity.display_name or base)[:DISPLAY_NAME_MAX_LENGTH]

        for candidate in username_candidates(base, identity.external_id, self.username_max_attempts):
            if self.accounts.find_by_username(db, candidate, include_inactive=True):
                logger.info("OAuth username candidate %s is taken", candidate)
                continue
            try:
                account = self.accounts.create(
                    db,
                    NewAccount(
                        username=candidate,
                        email=identity.email,
                        password_hash=None,
                        external_provider_id=identity.external_id,
                        display_name=display_name,
                        avatar_url=identity.avatar_url,
                    ),
                )
            except UsernameTakenError:
                logger.info("OAuth username candidate %s lost an insert race", candidate)
                continue
            except ConflictError as exc:
                return _conflict_err(exc)
            logger.info("Created OAuth account id=%s username=%s", account.id, account.username)
            return Ok(account)

        logger.error(
            "No free username for provider id=%s after %d attempts",
            identity.external_id,
            self.username_max_attempts,
        )
        return Err(AuthErrorKind.USERNAME_UNAVAILABLE, f"base={base}")

    # Tokens

    def refresh(self, db: Session, refresh_token: str) -> Result[AuthenticatedAccount]:
        """Rotate: the presented refresh token is single-use."""
        verified = self.tokens.verify(refresh_token, TokenKind.REFRESH)
        if not verified.ok:
            return _record("refresh", verified)

        session = self.sessions.find_live_by_token(db, refresh_token)
        if session is None:
            return _record("refresh", Err(AuthErrorKind.SESSION_NOT_FOUND, "expired, revoked or never issued"))
        if session.account_id != verified.value.account_id:
            return _record("refresh", Err(AuthErrorKind.TOKEN_INVALID, "session owner mismatch"))

        account = self.accounts.find_by_id(db, session.account_id)
        if account is None:
            return _record("refresh", Err(AuthErrorKind.ACCOUNT_INACTIVE, f"account id={session.account_id}"))

        if self.sessions.delete_by_token(db, refresh_token) != 1:
            db.rollback()
            return _record("refresh", Err(AuthErrorKind.SESSION_NOT_FOUND, "rotated concurrently"))

        outcome = self._start_session(db, account)
        self._commit(db)
        return _record("refresh", Ok(outcome))

    def logout(self, db: Session, refresh_token: Optional[str]) -> int:
        """Revoke one session. Unknown or empty tokens are a no-op."""
        if not refresh_token:
            return 0
        removed = self.sessions.delete_by_token(db, refresh_token)
        self._commit(db)
        AUTH_EVENTS.labels("logout", "success").inc()
        return removed

    def logout_all(self, db: Session, account_id: int) -> int:
        removed = self.sessions.delete_all_for_account(db, account_id)
        self._commit(db)
        logger.info("Revoked %d sessions for account id=%s", removed, account_id)
        AUTH_EVENTS.labels("logout_all", "success").inc()
        return removed

    def authenticate(self, db: Session, access_token: str) -> Result[Account]:
        """Resolve a bearer access token to its active account."""
        verified = self.tokens.verify(access_token, TokenKind.ACCESS)
        if not verified.ok:
            return verified
        account = self.accounts.find_by_id(db, verified.value.account_id)
        if account is None:
            return Err(AuthErrorKind.ACCOUNT_INACTIVE, f"account id={verified.value.account_id}")
        return Ok(account)

    # Account management

    def update_profile(
        self,
        db: Session,
        account_id: int,
        *,
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Result[Account]:
        updates: Dict[str, str] = {}
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name or len(display_name) > DISPLAY_NAME_MAX_LENGTH:
                return Err(
                    AuthErrorKind.VALIDATION,
                    f"Display name must be 1-{DISPLAY_NAME_MAX_LENGTH} characters",
                    field="display_name",
                )
            updates["display_name"] = display_name
        if avatar_url is not None:
            if len(avatar_url) > 500:
                return Err(AuthErrorKind.VALIDATION, "Avatar URL is too long", field="avatar_url")
            updates["avatar_url"] = avatar_url
        if email is not None:
            email = email.strip()
            error = validate_email(email)
            if error:
                return error
            existing = self.accounts.find_by_email(db, email, include_inactive=True)
            if existing is not None and existing.id != account_id:
                return Err(AuthErrorKind.EMAIL_TAKEN, "email exists", field="email")
            updates["email"] = email

        try:
            account = self.accounts.update(db, account_id, **updates)
        except ResourceNotFoundError:
            return Err(AuthErrorKind.NOT_FOUND, f"account id={account_id}")
        except ConflictError as exc:
            return _conflict_err(exc)
        self._commit(db)
        return Ok(account)

    def change_password(
        self,
        db: Session,
        account_id: int,
        new_password: str,
        current_password: Optional[str] = None,
    ) -> Result[AuthenticatedAccount]:
        """
        Replace the password and revoke every session, returning a fresh pair.

        OAuth-only accounts may set a first password without ``current_password``.
        """
        account = self.accounts.find_by_id(db, account_id)
        if account is None:
            return _record("change_password", Err(AuthErrorKind.NOT_FOUND, f"account id={account_id}"))

        error = validate_password(new_password)
        if error:
            return _record("change_password", error)

        if account.password_hash is not None:
            if not current_password or not self.hasher.verify(current_password, account.password_hash):
                return _record("change_password", Err(AuthErrorKind.INVALID_CREDENTIALS, "wrong current password"))

        account = self.accounts.update(db, account_id, password_hash=self.hasher.hash(new_password))
        revoked = self.sessions.delete_all_for_account(db, account_id)
        outcome = self._start_session(db, account)
        self._commit(db)
        logger.info("Password changed for account id=%s, %d sessions revoked", account_id, revoked)
        return _record("change_password", Ok(outcome))

    def deactivate(self, db: Session, account_id: int) -> Result[int]:
        try:
            self.accounts.deactivate(db, account_id)
        except ResourceNotFoundError:
            return Err(AuthErrorKind.NOT_FOUND, f"account id={account_id}")
        revoked = self.sessions.delete_all_for_account(db, account_id)
        self._commit(db)
        logger.info("Deactivated account id=%s, %d sessions revoked", account_id, revoked)
        return Ok(revoked)

    # Maintenance

    def cleanup(self, db: Session) -> Dict[str, int]:
        """Sweep expired sessions and OAuth states; a failing sweep is logged, not raised."""
        swept = {"sessions": 0, "oauth_states": 0}
        try:
            swept["sessions"] = self.sessions.sweep_expired(db)
        except Exception:
            db.rollback()
            logger.exception("Expired session sweep failed")
        try:
            swept["oauth_states"] = self.oauth.state_store.sweep_expired(db)
        except Exception:
            db.rollback()
            logger.exception("Expired OAuth state sweep failed")
        return swept
