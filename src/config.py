"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Roster Reconciler"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Reserved group labels
    cancel_label: str = Field(
        default="キャンセル", description="Group label meaning 'cancelled'"
    )
    relocate_label: str = Field(
        default="別日", description="Group label meaning 'moved to another session'"
    )

    # Identity
    record_id_min_width: int = Field(
        default=3,
        ge=1,
        description="Minimum zero-pad width for synthesized record IDs",
    )
    share_token_length: int = Field(
        default=32,
        ge=12,
        description="Length of generated participant share tokens",
    )

    # Duplicate hints
    near_miss_threshold: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Phonetic similarity cutoff for near-miss hints (0 disables)",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
