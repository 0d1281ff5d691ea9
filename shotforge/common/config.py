"""Configuration management."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "shotforge"
    app_env: str = "development"
    log_level: str = "INFO"
    json_logs: bool = False

    # Generation backend (Imagen + Veo)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    imagen_model: str = "imagen-4.0-generate-001"
    veo_model: str = "veo-2.0-generate-001"

    # Object Storage
    blob_store_url: str = ""
    blob_store_key: str = ""
    blob_bucket: str = "generation-outputs"

    # Outbound HTTP
    http_timeout_seconds: float = 60.0
    http_max_retries: int = 3
    http_base_delay_seconds: float = 1.0

    # Long-running video jobs (~3 minutes)
    poll_interval_seconds: float = 5.0
    max_poll_attempts: int = 36

    # Generation defaults
    default_anchor_count: int = 4
    max_anchor_samples: int = 4
    default_duration_seconds: int = 5
    max_video_duration_seconds: int = 8
    default_fps: int = 24
    default_resolution: str = "4K"

    # Routing
    preferred_engine: str = "veo_3.1"
    fallback_engine: str = "kling_3"
    target_tier: str = "commercial_heavyweight"

    # Credits per operation
    compile_credits: int = 1
    anchor_credits: int = 1
    targeted_edit_credits: int = 2
    animate_credits: int = 5

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"

    @property
    def has_engine_credentials(self) -> bool:
        """True when a real generation backend can be used."""
        return bool(self.gemini_api_key)

    @property
    def has_blob_store(self) -> bool:
        return bool(self.blob_store_url and self.blob_store_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
