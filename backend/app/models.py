from __future__ import annotations

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


class SocialPlatform(str, Enum):
    tiktok = "tiktok"
    instagram = "instagram"
    youtube = "youtube"


class VerificationStatus(str, Enum):
    pending = "PENDING"
    verified = "VERIFIED"
    failed = "FAILED"


class WebhookStatus(str, Enum):
    pending = "PENDING"
    completed = "COMPLETED"
    failed = "FAILED"


class SubmissionStatus(str, Enum):
    pending = "PENDING"
    completed = "COMPLETED"
    rejected = "REJECTED"
    failed = "FAILED"


class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(sa.String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(sa.String(16), nullable=False, server_default=UserRole.user.value)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    social_accounts: Mapped[list["SocialAccount"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    submissions: Mapped[list["VideoSubmission"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    campaigns: Mapped[list["Campaign"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class SocialAccount(Base):
    __tablename__ = "social_accounts"
    __table_args__ = (
        sa.UniqueConstraint("platform", "profile_url", name="uq_social_accounts_platform_profile_url"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    platform: Mapped[SocialPlatform] = mapped_column(sa.String(32), nullable=False)
    profile_url: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    username: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, index=True)
    verification_code: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    verification_status: Mapped[VerificationStatus] = mapped_column(
        sa.String(16), nullable=False, server_default=VerificationStatus.pending.value
    )
    snapshot_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True, index=True)
    webhook_status: Mapped[WebhookStatus | None] = mapped_column(sa.String(16), nullable=True)
    profile_data: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    verification_attempts: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="0", default=0)
    last_verification_attempt_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="social_accounts")


class VideoSubmission(Base):
    __tablename__ = "video_submissions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    platform: Mapped[SocialPlatform] = mapped_column(sa.String(32), nullable=False)
    video_url: Mapped[str] = mapped_column(sa.String(512), nullable=False, unique=True)
    snapshot_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True, index=True)
    status: Mapped[SubmissionStatus] = mapped_column(
        sa.String(16), nullable=False, server_default=SubmissionStatus.pending.value
    )
    skip_validation: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, server_default=sa.false(), default=False)
    is_edit: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, server_default=sa.false(), default=False)
    hashtags: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    total_views: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, server_default="0", default=0)
    like_count: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, server_default="0", default=0)
    comment_count: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, server_default="0", default=0)
    share_count: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, server_default="0", default=0)
    save_count: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, server_default="0", default=0)
    raw_payload: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    error: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="submissions")


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    input_text: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    ai_payload: Mapped[dict] = mapped_column(sa.JSON(), nullable=False)
    hashtags: Mapped[list] = mapped_column(sa.JSON(), nullable=False)
    video_ids: Mapped[list] = mapped_column(sa.JSON(), nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True
    )

    user: Mapped[User] = relationship(back_populates="campaigns")
