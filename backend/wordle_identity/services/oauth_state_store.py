"""OAuth state store - single-use CSRF correlators with a TTL"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from wordle_identity.core.database import utcnow
from wordle_identity.core.result import AuthErrorKind, Err, Ok, Result
from wordle_identity.models.oauth_state import OAuthState

logger = logging.getLogger(__name__)


class OAuthStateStore:
    """Persisted state tokens; survive restarts and work across replicas."""

    def create(self, db: Session, state: str, ttl: timedelta) -> OAuthState:
        record = OAuthState(state_token=state, expires_at=utcnow() + ttl)
        db.add(record)
        db.commit()
        return record

    def consume(self, db: Session, state: str) -> Result[str]:
        """
        Delete a live state token in a single statement. Only the caller whose
        DELETE removes the row may use it. Commits.

        Returns:
            Ok(state) for a live token, Err(INVALID_STATE) for an unknown or
            already consumed token, Err(EXPIRED_STATE) for an expired one
            (which is removed as well).
        """
        if not state:
            return Err(AuthErrorKind.INVALID_STATE, "missing state")

        consumed = (
            db.query(OAuthState)
            .filter(OAuthState.state_token == state, OAuthState.expires_at > utcnow())
            .delete(synchronize_session=False)
        )
        if consumed == 1:
            db.commit()
            return Ok(state)

        stale = (
            db.query(OAuthState)
            .filter(OAuthState.state_token == state)
            .delete(synchronize_session=False)
        )
        db.commit()
        if stale:
            return Err(AuthErrorKind.EXPIRED_STATE, "state expired")
        return Err(AuthErrorKind.INVALID_STATE, "unknown or already consumed state")

    def sweep_expired(self, db: Session) -> int:
        removed = (
            db.query(OAuthState)
            .filter(OAuthState.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        if removed:
            logger.info("Swept %d expired OAuth states", removed)
        return removed
