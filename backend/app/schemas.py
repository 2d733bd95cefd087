from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .models import SocialPlatform


# ── Auth ─────────────────────────────────────────────────────

class SignupRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    invite_code: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("invalid email")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class TokenResponse(BaseModel):
    token: str
    expires_at: str


class UserRead(BaseModel):
    id: int
    email: str
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


# ── Connected accounts ───────────────────────────────────────

class ConnectedAccountCreate(BaseModel):
    profile_url: str
    platform: SocialPlatform | None = None
    username: str | None = None

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().removeprefix("@").lower() or None

    @field_validator("profile_url")
    @classmethod
    def strip_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("profile_url is required")
        return value


class ConnectedAccountRead(BaseModel):
    id: int
    platform: SocialPlatform
    profile_url: str
    username: str | None = None
    verification_code: str
    verification_status: str
    webhook_status: str | None = None
    snapshot_id: str | None = None
    verification_attempts: int = 0
    last_verification_attempt_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class VerifyRequest(BaseModel):
    account_id: int
    regenerate_code: bool = False


class VerifyWaitRequest(BaseModel):
    account_id: int
    timeout_sec: float | None = Field(default=None, gt=0, le=600)


class VerificationStatusRead(BaseModel):
    account_id: int
    verification_status: str
    webhook_status: str | None = None
    verification_code: str
    snapshot_id: str | None = None
    verification_attempts: int = 0
    last_verification_attempt_at: datetime | None = None


class SweepResult(BaseModel):
    processed: int
    verified: int
    failed: int
    still_pending: int


# ── Videos ───────────────────────────────────────────────────

class VideoSubmitRequest(BaseModel):
    urls: list[str] = Field(min_length=1)
    skip_validation: bool = False


class VideoSubmissionRead(BaseModel):
    id: int
    platform: SocialPlatform
    video_url: str
    snapshot_id: str | None = None
    status: str
    skip_validation: bool
    is_edit: bool
    hashtags: list[str] | None = None
    total_views: int
    like_count: int
    comment_count: int
    share_count: int
    save_count: int
    error: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ── Campaigns ────────────────────────────────────────────────

class Team(BaseModel):
    team_name: str
    team_hashtags: list[str] = Field(default_factory=list)


class Character(BaseModel):
    character_name: str
    character_hashtags: list[str] = Field(default_factory=list)


class DemographicsLocation(BaseModel):
    name: str
    percentage: float


class Demographics(BaseModel):
    type: Literal["country", "city"]
    locations: list[DemographicsLocation]


class CampaignSuggestion(BaseModel):
    category: Literal["sports", "media"]
    sport: str | None = None
    league: str | None = None
    teams: list[Team] | None = None
    franchise: str | None = None
    series: str | None = None
    characters: list[Character] | None = None
    global_hashtags: list[str] = Field(default_factory=list)
    demographics: Demographics | None = None


class CampaignGenerateRequest(BaseModel):
    input_text: str

    @field_validator("input_text")
    @classmethod
    def strip_input(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("input_text is required and must be a non-empty string")
        return value


class CampaignGenerateResponse(BaseModel):
    suggestions: list[CampaignSuggestion]


class CampaignCreate(BaseModel):
    input_text: str
    ai_payload: CampaignSuggestion

    @field_validator("input_text")
    @classmethod
    def strip_input(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("input_text is required")
        return value


class CampaignRead(BaseModel):
    id: int
    name: str
    input_text: str
    ai_payload: CampaignSuggestion
    hashtags: list[str]
    video_ids: list[int]
    created_at: datetime

    class Config:
        from_attributes = True


class CampaignList(BaseModel):
    data: list[CampaignRead]
    total: int
    limit: int
    offset: int
