"""
Application configuration using Pydantic settings.
Loads from environment variables (FORMOVERLAY_*) or a .env file.
"""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FORMOVERLAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Fill settings
    font_name: str = "Helvetica"
    max_font_size: float = 12.0

    # Editing surface
    default_zoom: float = 1.0
    zoom_step: float = 0.1
    handle_tolerance: float = 6.0

    # Persistence
    templates_path: Path = Path("~/.formoverlay/templates.json")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
