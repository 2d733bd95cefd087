"""create users and social_accounts tables

Revision ID: 0001_users_and_social_accounts
Revises:
Create Date: 2026-10-12 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_users_and_social_accounts"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "social_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("profile_url", sa.String(length=512), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=True),
        sa.Column("verification_code", sa.String(length=16), nullable=False),
        sa.Column("verification_status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("snapshot_id", sa.String(length=128), nullable=True),
        sa.Column("webhook_status", sa.String(length=16), nullable=True),
        sa.Column("profile_data", sa.JSON(), nullable=True),
        sa.Column("verification_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_verification_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("platform", "profile_url", name="uq_social_accounts_platform_profile_url"),
    )
    op.create_index("ix_social_accounts_user_id", "social_accounts", ["user_id"])
    op.create_index("ix_social_accounts_username", "social_accounts", ["username"])
    op.create_index("ix_social_accounts_snapshot_id", "social_accounts", ["snapshot_id"])


def downgrade() -> None:
    op.drop_index("ix_social_accounts_snapshot_id", table_name="social_accounts")
    op.drop_index("ix_social_accounts_username", table_name="social_accounts")
    op.drop_index("ix_social_accounts_user_id", table_name="social_accounts")
    op.drop_table("social_accounts")
    op.drop_table("users")
