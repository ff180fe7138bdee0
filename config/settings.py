"""
Settings configuration for Devotional Studio.
"""
import os
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    # App settings
    APP_ENV: str = Field("development", env="APP_ENV")
    APP_VERSION: str = Field("1.0.0", env="APP_VERSION")
    DEBUG: bool = Field(True, env="DEBUG")
    LOG_LEVEL: str = Field("DEBUG", env="LOG_LEVEL")

    # API settings
    API_ENABLED: bool = Field(True, env="API_ENABLED")
    API_HOST: str = Field("0.0.0.0", env="API_HOST")
    API_PORT: int = Field(8000, env="PORT")

    # Supabase settings
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_KEY")

    # Tables
    AUDIOS_TABLE: str = Field("audios", env="AUDIOS_TABLE")
    PLAYLISTS_TABLE: str = Field("playlists", env="PLAYLISTS_TABLE")
    PLAYLIST_AUDIOS_TABLE: str = Field("playlist_audios", env="PLAYLIST_AUDIOS_TABLE")
    SETTINGS_TABLE: str = Field("app_settings", env="SETTINGS_TABLE")

    # Durable asset storage (Supabase Storage)
    MEDIA_BUCKET: str = Field("media", env="MEDIA_BUCKET")
    MEDIA_PREFIX: str = Field("app-26", env="MEDIA_PREFIX")

    # Logging
    LOGFIRE_TOKEN: Optional[str] = Field(None, env="LOGFIRE_TOKEN")

    # Text generation backend (one request per named field)
    TEXT_GENERATION_ENABLED: bool = Field(True, env="TEXT_GENERATION_ENABLED")
    TEXT_GENERATION_URL: str = Field(
        "http://localhost:8601/v1/fields/generate",
        env="TEXT_GENERATION_URL"
    )
    TEXT_GENERATION_TIMEOUT: int = Field(90, env="TEXT_GENERATION_TIMEOUT")

    # Speech synthesis backend
    SPEECH_SYNTHESIS_URL: str = Field(
        "http://localhost:8602/v1/speech/synthesize",
        env="SPEECH_SYNTHESIS_URL"
    )
    SPEECH_SYNTHESIS_TIMEOUT: int = Field(180, env="SPEECH_SYNTHESIS_TIMEOUT")
    DEFAULT_VOICE_ID: str = Field("7i7dgyCkKt4c16dLtwT3", env="DEFAULT_VOICE_ID")

    # Local playback-duration measurement (seconds)
    SPEECH_DURATION_TIMEOUT: float = Field(
        7.0,
        env="SPEECH_DURATION_TIMEOUT",
        description="Upper bound for fetching and measuring a speech asset locally"
    )

    # Image synthesis backend
    IMAGE_SYNTHESIS_URL: str = Field(
        "http://localhost:8603/v1/images/generate",
        env="IMAGE_SYNTHESIS_URL"
    )
    IMAGE_SYNTHESIS_TIMEOUT: int = Field(120, env="IMAGE_SYNTHESIS_TIMEOUT")
    IMAGE_MIN_DESCRIPTION_LENGTH: int = Field(20, env="IMAGE_MIN_DESCRIPTION_LENGTH")
    IMAGE_DOWNLOAD_TIMEOUT: int = Field(30, env="IMAGE_DOWNLOAD_TIMEOUT")

    # Auto-pacing backend (delegated pause annotation)
    AUTO_PACING_URL: str = Field(
        "http://localhost:8601/v1/pacing/apply",
        env="AUTO_PACING_URL"
    )
    AUTO_PACING_TIMEOUT: int = Field(60, env="AUTO_PACING_TIMEOUT")

    # Rate limiting & 429 retries (text backend)
    MAX_BACKEND_RETRIES: int = Field(3, env="MAX_BACKEND_RETRIES")
    BACKEND_RETRY_BASE_DELAY: float = Field(2.0, env="BACKEND_RETRY_BASE_DELAY")

    # Persist coordinator bounded waits (seconds)
    PERSIST_SPEECH_WAIT_SECONDS: float = Field(
        90.0,
        env="PERSIST_SPEECH_WAIT_SECONDS",
        description="How long persist waits for an in-flight speech asset URL"
    )
    PERSIST_IMAGE_WAIT_SECONDS: float = Field(
        15.0,
        env="PERSIST_IMAGE_WAIT_SECONDS",
        description="Shorter best-effort wait for an in-flight image URL"
    )
    FOLLOW_UP_IMAGE_WAIT_SECONDS: float = Field(
        90.0,
        env="FOLLOW_UP_IMAGE_WAIT_SECONDS",
        description="How long the post-write follow-up waits for a late image"
    )

    # Prompt version history
    VERSION_HISTORY_LIMIT: int = Field(20, ge=1, env="VERSION_HISTORY_LIMIT")

    # Stored on every record as the engine that produced it
    AI_ENGINE: str = Field("gmanual", env="AI_ENGINE")

    # Batch generation
    BATCH_GENERATION_RETRIES: int = Field(1, ge=0, env="BATCH_GENERATION_RETRIES")
    BATCH_SPEECH_WAIT_SECONDS: float = Field(90.0, env="BATCH_SPEECH_WAIT_SECONDS")
    BATCH_SPEECH_GRACE_SECONDS: float = Field(30.0, env="BATCH_SPEECH_GRACE_SECONDS")
    BATCH_IMAGE_WAIT_SECONDS: float = Field(90.0, env="BATCH_IMAGE_WAIT_SECONDS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env

    @property
    def has_storage(self) -> bool:
        """Check if Supabase is configured."""
        return bool(self.SUPABASE_URL and (self.SUPABASE_SERVICE_KEY or self.SUPABASE_ANON_KEY))

    @property
    def is_production(self) -> bool:
        """Check if running in production environment (Railway)."""
        return os.environ.get('RAILWAY_PROJECT_ID') is not None

    def validate_settings(self) -> None:
        """Validate that essential settings are configured."""
        if not self.has_storage:
            raise ValueError(
                "Supabase is not configured. Please set:\n"
                "  SUPABASE_URL=https://your-project.supabase.co\n"
                "  SUPABASE_SERVICE_KEY (or SUPABASE_ANON_KEY) in your .env file"
            )

        if self.is_production and not self.SUPABASE_SERVICE_KEY:
            raise ValueError(
                "PRODUCTION SECURITY ERROR:\n"
                "SUPABASE_SERVICE_KEY is not set.\n"
                "Persisting generated content and uploading media requires the service key."
            )


def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
