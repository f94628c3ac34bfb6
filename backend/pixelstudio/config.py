from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pixel Studio application settings.

    Loaded from environment variables or .env file. Constructed once at
    startup and handed to every provider adapter, so tests can inject a
    fake instance instead of touching the process environment.
    """

    # --- Application ---
    APP_NAME: str = "Pixel Studio"
    DEBUG: bool = False
    USE_MOCK_API: bool = False

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "pixelstudio"
    DB_URL: str = ""  # full SQLAlchemy URL, overrides the DB_* parts

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        if self.DB_URL:
            return self.DB_URL
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (Celery broker) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Object storage ---
    MEDIA_VOLUME: str = "media_volume"
    ASSET_BASE_URL: str = "http://localhost:8000/media"
    THUMBNAIL_BASE_URL: str = "http://localhost:8000/media/thumbnails"

    # --- Black Forest Labs (Flux) ---
    BLACK_FOREST_LABS_API_KEY: str = ""
    BLACK_FOREST_LABS_API_URL: str = "https://api.bfl.ml"

    # --- OpenAI (DALL-E) ---
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"

    # --- Replicate ---
    REPLICATE_API_TOKEN: str = ""
    REPLICATE_API_URL: str = "https://api.replicate.com/v1"

    # --- Fal.ai ---
    FAL_API_KEY: str = ""
    FAL_QUEUE_URL: str = "https://queue.fal.run"

    # --- Ideogram ---
    IDEOGRAM_API_KEY: str = ""
    IDEOGRAM_API_URL: str = "https://api.ideogram.ai"

    # --- Together AI ---
    TOGETHER_API_KEY: str = ""
    TOGETHER_API_URL: str = "https://api.together.xyz/v1"

    # --- Stability AI (image + video) ---
    STABILITY_API_KEY: str = ""
    STABILITY_API_URL: str = "https://api.stability.ai/v2beta"

    # --- Runway (video) ---
    RUNWAY_API_KEY: str = ""
    RUNWAY_API_URL: str = "https://api.dev.runwayml.com/v1"
    RUNWAY_API_VERSION: str = "2024-11-06"

    # --- Luma Dream Machine (video) ---
    LUMA_API_KEY: str = ""
    LUMA_API_URL: str = "https://api.lumalabs.ai/dream-machine/v1"

    # --- Timeouts (seconds) ---
    PROVIDER_REQUEST_TIMEOUT: float = 45.0
    DOWNLOAD_TIMEOUT: float = 120.0
    REQUEST_TIMEOUT: float = 1800.0

    # --- Credits ---
    REFUND_ON_FAILURE: bool = True
    PARTIAL_BATCH_BILLING: str = "full"  # "full" or "proportional"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
