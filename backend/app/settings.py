from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "fan-activation"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "FAN_ACTIVATION_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/fan_activation",
        validation_alias=AliasChoices("DATABASE_URL", "FAN_ACTIVATION_DATABASE_URL"),
    )
    app_url: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("APP_URL", "NEXT_PUBLIC_APP_URL", "FAN_ACTIVATION_APP_URL"),
    )

    # BrightData
    brightdata_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_API_KEY", "BRIGHTDATA_API_KEY", "FAN_ACTIVATION_BRIGHTDATA_API_KEY"),
    )
    brightdata_base_url: str = Field(
        default="https://api.brightdata.com",
        validation_alias=AliasChoices("BRIGHT_DATA_BASE_URL", "FAN_ACTIVATION_BRIGHTDATA_BASE_URL"),
    )
    brightdata_webhook_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_WEBHOOK_SECRET", "FAN_ACTIVATION_BRIGHTDATA_WEBHOOK_SECRET"),
    )
    brightdata_tiktok_profile_dataset_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_TIKTOK_PROFILE_SCRAPER_ID", "FAN_ACTIVATION_TIKTOK_PROFILE_DATASET_ID"),
    )
    brightdata_instagram_profile_dataset_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_INSTAGRAM_PROFILE_SCRAPER_ID", "FAN_ACTIVATION_INSTAGRAM_PROFILE_DATASET_ID"),
    )
    brightdata_youtube_profile_dataset_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_YOUTUBE_PROFILE_SCRAPER_ID", "FAN_ACTIVATION_YOUTUBE_PROFILE_DATASET_ID"),
    )
    brightdata_tiktok_post_dataset_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_TIKTOK_POST_SCRAPER_ID", "FAN_ACTIVATION_TIKTOK_POST_DATASET_ID"),
    )
    brightdata_instagram_post_dataset_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_INSTAGRAM_POST_SCRAPER_ID", "FAN_ACTIVATION_INSTAGRAM_POST_DATASET_ID"),
    )
    brightdata_youtube_shorts_dataset_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BRIGHT_DATA_YOUTUBE_SHORTS_SCRAPER_ID", "FAN_ACTIVATION_YOUTUBE_SHORTS_DATASET_ID"),
    )
    brightdata_timeout_sec: int = Field(default=30, validation_alias=AliasChoices("BRIGHT_DATA_TIMEOUT_SEC", "FAN_ACTIVATION_BRIGHTDATA_TIMEOUT_SEC"))

    # Verification polling
    verification_poll_interval_sec: float = Field(
        default=10.0,
        validation_alias=AliasChoices("VERIFICATION_POLL_INTERVAL_SEC", "FAN_ACTIVATION_VERIFICATION_POLL_INTERVAL_SEC"),
    )
    verification_timeout_sec: float = Field(
        default=180.0,
        validation_alias=AliasChoices("VERIFICATION_TIMEOUT_SEC", "FAN_ACTIVATION_VERIFICATION_TIMEOUT_SEC"),
    )
    verification_sweep_batch_size: int = Field(
        default=50,
        validation_alias=AliasChoices("VERIFICATION_SWEEP_BATCH_SIZE", "FAN_ACTIVATION_VERIFICATION_SWEEP_BATCH_SIZE"),
    )
    verification_sweep_interval_minutes: int = Field(
        default=2,
        validation_alias=AliasChoices("VERIFICATION_SWEEP_INTERVAL_MINUTES", "FAN_ACTIVATION_VERIFICATION_SWEEP_INTERVAL_MINUTES"),
    )

    # Campaign generation
    llm_provider: str = Field(default="stub", validation_alias=AliasChoices("LLM_PROVIDER", "FAN_ACTIVATION_LLM_PROVIDER"))
    anthropic_api_key: str | None = Field(default=None, validation_alias=AliasChoices("ANTHROPIC_API_KEY", "FAN_ACTIVATION_ANTHROPIC_API_KEY"))
    llm_model: str = Field(default="claude-sonnet-4-20250514", validation_alias=AliasChoices("LLM_MODEL", "FAN_ACTIVATION_LLM_MODEL"))
    llm_temperature: float = Field(default=0.7, validation_alias=AliasChoices("LLM_TEMPERATURE", "FAN_ACTIVATION_LLM_TEMPERATURE"))

    # Auth / ops
    signup_invite_code: str = Field(
        default="CHANGE_ME_IN_PRODUCTION",
        validation_alias=AliasChoices("SIGNUP_INVITE_CODE", "FAN_ACTIVATION_SIGNUP_INVITE_CODE"),
    )
    cron_secret: str | None = Field(default=None, validation_alias=AliasChoices("CRON_SECRET", "FAN_ACTIVATION_CRON_SECRET"))
    token_expiry_hours: int = Field(default=24, validation_alias=AliasChoices("TOKEN_EXPIRY_HOURS", "FAN_ACTIVATION_TOKEN_EXPIRY_HOURS"))

    # Background work
    scheduler_enabled: bool = Field(default=True, validation_alias=AliasChoices("SCHEDULER_ENABLED", "FAN_ACTIVATION_SCHEDULER_ENABLED"))
    redis_url: str = Field(default="redis://redis:6379/0", validation_alias=AliasChoices("REDIS_URL", "FAN_ACTIVATION_REDIS_URL"))
    celery_enabled: bool = Field(default=True, validation_alias=AliasChoices("CELERY_ENABLED", "FAN_ACTIVATION_CELERY_ENABLED"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def is_postgres(self) -> bool:
        return self.async_database_url.startswith("postgresql")

    def profile_dataset_id(self, platform: str) -> str | None:
        return {
            "tiktok": self.brightdata_tiktok_profile_dataset_id,
            "instagram": self.brightdata_instagram_profile_dataset_id,
            "youtube": self.brightdata_youtube_profile_dataset_id,
        }.get(platform)

    def post_dataset_id(self, platform: str) -> str | None:
        return {
            "tiktok": self.brightdata_tiktok_post_dataset_id,
            "instagram": self.brightdata_instagram_post_dataset_id,
            "youtube": self.brightdata_youtube_shorts_dataset_id,
        }.get(platform)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
