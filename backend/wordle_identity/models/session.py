"""Refresh-token session model"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from wordle_identity.core.database import Base


class UserSession(Base):
    """Outstanding refresh token. The literal token string is the lookup key."""

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    refresh_token = Column(String(1024), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    account = relationship("Account", back_populates="sessions")

    __table_args__ = (
        Index("idx_user_sessions_account_id", "account_id"),
        Index("idx_user_sessions_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<UserSession(id={self.id}, account_id={self.account_id}, expires_at={self.expires_at})>"
