"""Session store - outstanding refresh tokens"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from wordle_identity.core.database import utcnow
from wordle_identity.models.session import UserSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Refresh-token records. Deletes are single bulk statements so the affected
    row count tells a caller whether *it* removed the row.
    """

    @staticmethod
    def _naive_utc(dt: datetime) -> datetime:
        return dt.replace(tzinfo=None) if dt and dt.tzinfo else dt

    def create(self, db: Session, account_id: int, token: str, expires_at: datetime) -> UserSession:
        record = UserSession(
            account_id=account_id,
            refresh_token=token,
            expires_at=self._naive_utc(expires_at),
        )
        db.add(record)
        db.flush()
        return record

    def find_live_by_token(self, db: Session, token: str) -> Optional[UserSession]:
        if not token:
            return None
        return (
            db.query(UserSession)
            .filter(UserSession.refresh_token == token, UserSession.expires_at > utcnow())
            .first()
        )

    def delete_by_token(self, db: Session, token: str) -> int:
        if not token:
            return 0
        return (
            db.query(UserSession)
            .filter(UserSession.refresh_token == token)
            .delete(synchronize_session=False)
        )

    def delete_all_for_account(self, db: Session, account_id: int) -> int:
        return (
            db.query(UserSession)
            .filter(UserSession.account_id == account_id)
            .delete(synchronize_session=False)
        )

    def count_live_for_account(self, db: Session, account_id: int) -> int:
        return (
            db.query(UserSession)
            .filter(UserSession.account_id == account_id, UserSession.expires_at > utcnow())
            .count()
        )

    def sweep_expired(self, db: Session) -> int:
        removed = (
            db.query(UserSession)
            .filter(UserSession.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        if removed:
            logger.info("Swept %d expired sessions", removed)
        return removed
