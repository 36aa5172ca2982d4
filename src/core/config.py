"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.

The settings object is frozen: it is built once at startup and handed to the
components that need it.
"""

from functools import lru_cache
from typing import Optional, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Sticker Batch Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD

    # ==========================================================================
    # OpenAI Images / Batch API
    # ==========================================================================
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com"
    OPENAI_IMAGE_MODEL: str = "gpt-image-1.5"
    OPENAI_IMAGE_QUALITY: str = "low"  # low, medium, high, auto
    OPENAI_HTTP_TIMEOUT_SECONDS: float = 120.0

    # Batch mode is the default; set OPENAI_USE_BATCH=false for direct generations
    OPENAI_USE_BATCH: bool = True
    OPENAI_BATCH_POLL_TIMEOUT_MS: int = 25_000
    OPENAI_BATCH_POLL_INTERVAL_MS: int = 2_000
    BATCH_COMPLETION_WINDOW: str = "24h"

    # ==========================================================================
    # Sticker Post-Processing
    # ==========================================================================
    OUTPUT_WIDTH: int = 370
    OUTPUT_HEIGHT: int = 320
    KEEP_EDGE_PX: int = 2
    FILL_ENCLOSED_HOLES: bool = True
    HOLE_FILL_RGBA: Tuple[int, int, int, int] = (255, 255, 255, 255)

    # ==========================================================================
    # Storage Settings
    # ==========================================================================
    LOCAL_STORAGE_PATH: str = "./data/storage"

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost:8000"

    @field_validator("HOLE_FILL_RGBA")
    @classmethod
    def _rgba_channels_in_range(cls, value: Tuple[int, int, int, int]) -> Tuple[int, int, int, int]:
        if any(channel < 0 or channel > 255 for channel in value):
            raise ValueError("HOLE_FILL_RGBA channels must be within 0..255")
        return value

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        frozen=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Build the settings once per process."""
    return Settings()
