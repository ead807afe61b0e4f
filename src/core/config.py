"""
Bayanihan Map - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./bayanihan.db"

    # Photo storage: "local" or "supabase"
    photo_store: str = "local"
    photo_dir: str = "./photos"
    photo_base_url: str = "http://localhost:8000/photos"

    # Supabase Storage
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_bucket: str = "bayanihan-photos"

    placeholder_photo_url: str = "https://placehold.co/600x400?text=No+Photo+Provided"

    # Geolocation (seconds)
    gps_high_accuracy_timeout_s: float = 10.0
    gps_standard_accuracy_timeout_s: float = 15.0

    # Photo compression
    photo_max_size_bytes: int = 838_860  # ~0.8 MiB
    photo_max_dimension_px: int = 1280

    # Ingestion client
    api_base_url: str = "http://localhost:8000"
    ingest_timeout_s: Optional[float] = None

    # Report feed cache
    feed_cache_ttl_seconds: int = 300

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
