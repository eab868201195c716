"""Configuration management for beatcut."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage configuration (filesystem only)
    storage_path: str = "./data"
    max_export_size: int = 50 * 1024 * 1024  # 50MB

    # Timeline defaults
    default_frame_rate: float = 30.0
    default_resolution: str = "1920x1080"
    default_project_name: str = "Beat Synced Edit"

    # Export formats
    fcpxml_version: str = "1.9"
    premiere_xmeml_version: int = 4

    # Edit decision engine
    cancellation_check_interval: int = 256

    # Audio analysis
    audio_sample_rate: Optional[int] = 22050
    energy_window_seconds: float = 1.0

    # Video analysis
    scene_sample_fps: float = 4.0
    scene_cut_threshold: float = 0.6

    # Development
    debug: bool = False
    log_level: str = "INFO"

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )


# Global settings instance
settings = Settings()
