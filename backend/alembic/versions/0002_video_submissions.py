"""create video_submissions table

Revision ID: 0002_video_submissions
Revises: 0001_users_and_social_accounts
Create Date: 2026-10-12 10:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_video_submissions"
down_revision = "0001_users_and_social_accounts"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "video_submissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("video_url", sa.String(length=512), nullable=False, unique=True),
        sa.Column("snapshot_id", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("skip_validation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_edit", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hashtags", sa.JSON(), nullable=True),
        sa.Column("total_views", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("share_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("save_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("raw_payload", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_video_submissions_user_id", "video_submissions", ["user_id"])
    op.create_index("ix_video_submissions_snapshot_id", "video_submissions", ["snapshot_id"])


def downgrade() -> None:
    op.drop_index("ix_video_submissions_snapshot_id", table_name="video_submissions")
    op.drop_index("ix_video_submissions_user_id", table_name="video_submissions")
    op.drop_table("video_submissions")
