"""Account model"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from wordle_identity.core.database import Base


class Account(Base):
    """User account for local and OAuth authentication"""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=True)  # NULL means OAuth-only
    external_provider_id = Column(String(64), nullable=True)
    display_name = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    sessions = relationship("UserSession", back_populates="account", cascade="all, delete-orphan")

    __table_args__ = (
        Index("uq_accounts_username", "username", unique=True),
        Index("uq_accounts_email", "email", unique=True),
        Index("uq_accounts_external_provider_id", "external_provider_id", unique=True),
        CheckConstraint(
            "password_hash IS NOT NULL OR external_provider_id IS NOT NULL",
            name="chk_accounts_has_credential",
        ),
    )

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    @property
    def oauth_linked(self) -> bool:
        return self.external_provider_id is not None

    def __repr__(self):
        return f"<Account(id={self.id}, username='{self.username}', active={self.is_active})>"
