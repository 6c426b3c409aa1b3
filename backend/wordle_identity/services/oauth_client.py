"""OAuth2 authorization-code client for the GitLab-compatible identity provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from wordle_identity.config import Settings
from wordle_identity.core.result import AuthErrorKind, Err, Ok, Result
from wordle_identity.core.security import generate_state_token
from wordle_identity.services.oauth_state_store import OAuthStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationRequest:
    url: str
    state: str


@dataclass(frozen=True)
class ProviderIdentity:
    external_id: str
    username: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class OAuthClient:
    """
    Builds authorization URLs, exchanges codes and reads the user-info endpoint.

    Every request is bounded by ``timeout``. Provider response bodies are only
    logged at debug level and never returned to callers.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        base_url: str,
        redirect_uri: str,
        state_store: OAuthStateStore,
        scope: str = "read_user",
        state_ttl: timedelta = timedelta(minutes=10),
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.redirect_uri = redirect_uri
        self.state_store = state_store
        self.scope = scope
        self.state_ttl = state_ttl
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        state_store: OAuthStateStore,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "OAuthClient":
        return cls(
            client_id=settings.OAUTH_CLIENT_ID,
            client_secret=settings.OAUTH_CLIENT_SECRET,
            base_url=settings.OAUTH_BASE_URL,
            redirect_uri=settings.OAUTH_REDIRECT_URI,
            state_store=state_store,
            scope=settings.OAUTH_SCOPE,
            state_ttl=timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES),
            timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.base_url}/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/oauth/token"

    @property
    def user_info_endpoint(self) -> str:
        return f"{self.base_url}/api/v4/user"

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport, follow_redirects=False)

    def build_authorization_url(self, db: Session) -> Result[AuthorizationRequest]:
        """Persist a fresh state token and return the provider URL embedding it."""
        if not self.is_configured():
            logger.warning("OAuth login requested but client credentials are not configured")
            return Err(AuthErrorKind.OAUTH_NOT_CONFIGURED, "missing client credentials")

        state = generate_state_token()
        self.state_store.create(db, state, self.state_ttl)
        query = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
        }
        return Ok(AuthorizationRequest(url=f"{self.authorize_endpoint}?{urlencode(query)}", state=state))

    def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> Result[str]:
        """
        Trade an authorization code for a provider access token.

        ``redirect_uri`` must equal the one used for the authorization URL or
        the provider rejects the exchange.
        """
        if not code:
            return Err(AuthErrorKind.EXCHANGE_FAILED, "missing authorization code")

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri or self.redirect_uri,
        }
        try:
            with self._client() as client:
                response = client.post(
                    self.token_endpoint,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException:
            logger.error("OAuth token exchange timed out after %.1fs", self.timeout)
            return Err(AuthErrorKind.EXCHANGE_FAILED, "timeout")
        except httpx.HTTPError as exc:
            logger.error("OAuth token exchange network failure: %s", exc.__class__.__name__)
            return Err(AuthErrorKind.EXCHANGE_FAILED, "network failure")

        if not response.is_success:
            logger.error("OAuth token exchange rejected with status %s", response.status_code)
            logger.debug("OAuth token exchange response body: %s", response.text)
            return Err(AuthErrorKind.EXCHANGE_FAILED, f"status {response.status_code}")

        payload = self._json(response)
        if payload is None:
            logger.error("OAuth token exchange returned malformed JSON")
            return Err(AuthErrorKind.EXCHANGE_FAILED, "malformed json")

        access_token = payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            logger.error("OAuth token exchange response has no access_token")
            return Err(AuthErrorKind.EXCHANGE_FAILED, "missing access_token")

        return Ok(access_token)

    def fetch_user_info(self, access_token: str) -> Result[ProviderIdentity]:
        """Read the provider's user-info endpoint. Missing id or email is a hard failure."""
        try:
            with self._client() as client:
                response = client.get(
                    self.user_info_endpoint,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.TimeoutException:
            logger.error("OAuth user-info request timed out after %.1fs", self.timeout)
            return Err(AuthErrorKind.USER_INFO_FAILED, "timeout")
        except httpx.HTTPError as exc:
            logger.error("OAuth user-info network failure: %s", exc.__class__.__name__)
            return Err(AuthErrorKind.USER_INFO_FAILED, "network failure")

        if not response.is_success:
            logger.error("OAuth user-info rejected with status %s", response.status_code)
            return Err(AuthErrorKind.USER_INFO_FAILED, f"status {response.status_code}")

        payload = self._json(response)
        if payload is None:
            logger.error("OAuth user-info returned malformed JSON")
            return Err(AuthErrorKind.USER_INFO_FAILED, "malformed json")

        external_id = payload.get("id")
        email = payload.get("email")
        if external_id in (None, "") or not email:
            logger.error("OAuth user-info is missing id or email")
            return Err(AuthErrorKind.USER_INFO_FAILED, "missing required fields")

        username = payload.get("username") or str(email).split("@", 1)[0]
        return Ok(
            ProviderIdentity(
                external_id=str(external_id),
                username=str(username),
                email=str(email),
                display_name=payload.get("name") or username,
                avatar_url=payload.get("avatar_url"),
            )
        )

    @staticmethod
    def _json(response: httpx.Response) -> Optional[Dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None
