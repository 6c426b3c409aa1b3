"""identity schema: accounts, user_sessions, oauth_states

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:00:01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("external_provider_id", sa.String(length=64), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "password_hash IS NOT NULL OR external_provider_id IS NOT NULL",
            name="chk_accounts_has_credential",
        ),
    )
    op.create_index("ix_accounts_id", "accounts", ["id"])
    op.create_index("uq_accounts_username", "accounts", ["username"], unique=True)
    op.create_index("uq_accounts_email", "accounts", ["email"], unique=True)
    op.create_index(
        "uq_accounts_external_provider_id", "accounts", ["external_provider_id"], unique=True
    )

    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("refresh_token", sa.String(length=1024), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("refresh_token"),
    )
    op.create_index("ix_user_sessions_id", "user_sessions", ["id"])
    op.create_index("idx_user_sessions_account_id", "user_sessions", ["account_id"])
    op.create_index("idx_user_sessions_expires_at", "user_sessions", ["expires_at"])

    op.create_table(
        "oauth_states",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("state_token", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("state_token"),
    )
    op.create_index("ix_oauth_states_id", "oauth_states", ["id"])
    op.create_index("idx_oauth_states_expires_at", "oauth_states", ["expires_at"])


def downgrade() -> None:
    op.drop_index("idx_oauth_states_expires_at", table_name="oauth_states")
    op.drop_index("ix_oauth_states_id", table_name="oauth_states")
    op.drop_table("oauth_states")

    op.drop_index("idx_user_sessions_expires_at", table_name="user_sessions")
    op.drop_index("idx_user_sessions_account_id", table_name="user_sessions")
    op.drop_index("ix_user_sessions_id", table_name="user_sessions")
    op.drop_table("user_sessions")

    op.drop_index("uq_accounts_external_provider_id", table_name="accounts")
    op.drop_index("uq_accounts_email", table_name="accounts")
    op.drop_index("uq_accounts_username", table_name="accounts")
    op.drop_index("ix_accounts_id", table_name="accounts")
    op.drop_table("accounts")
