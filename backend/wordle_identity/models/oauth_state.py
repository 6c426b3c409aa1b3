"""OAuth CSRF state model"""

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.sql import func

from wordle_identity.core.database import Base


class OAuthState(Base):
    """Short-lived, single-use state token correlating an authorization request with its callback."""

    __tablename__ = "oauth_states"

    id = Column(Integer, primary_key=True, index=True)
    state_token = Column(String(128), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_oauth_states_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<OAuthState(id={self.id}, token='{self.state_token[:8]}...')>"
