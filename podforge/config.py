#!/usr/bin/env python3
"""
Centralized configuration management for podforge.

Every policy knob of the batch pipeline (rate limit quota, rolling window,
retention, cooldown between new generations) lives here with its default.
Components receive these values by injection; only the CLI reads the
global instance.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PodforgeConfig(BaseSettings):
    """Main configuration for the podforge pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", validation_alias="PODFORGE_LOG_LEVEL")
    log_format: str = Field(default="console", validation_alias="PODFORGE_LOG_FORMAT")

    # Network Configuration
    max_retries: int = Field(default=3, validation_alias="PODFORGE_MAX_RETRIES")
    http_timeout: float = Field(default=30.0, validation_alias="PODFORGE_HTTP_TIMEOUT")

    # Rate Limit Configuration
    rate_limit_count: int = Field(default=3, validation_alias="PODFORGE_RATE_LIMIT_COUNT")
    rate_limit_window_hours: float = Field(
        default=24.0, validation_alias="PODFORGE_RATE_LIMIT_WINDOW_HOURS"
    )
    rate_log_retention_days: float = Field(
        default=7.0, validation_alias="PODFORGE_RATE_LOG_RETENTION_DAYS"
    )
    rate_log_path: Path = Field(
        default=Path("logs") / "audio-generation.json",
        validation_alias="PODFORGE_RATE_LOG_PATH",
    )

    # Batch Configuration
    new_generation_delay: float = Field(
        default=10.0, validation_alias="PODFORGE_NEW_GENERATION_DELAY"
    )
    max_candidates: int = Field(default=3, validation_alias="PODFORGE_MAX_CANDIDATES")
    downloads_dir: Path = Field(
        default=Path("downloads"), validation_alias="PODFORGE_DOWNLOADS_DIR"
    )
    temp_dir: Path = Field(default=Path("temp"), validation_alias="PODFORGE_TEMP_DIR")

    # Audio Configuration
    mp3_bitrate: str = Field(default="320k", validation_alias="PODFORGE_MP3_BITRATE")
    mp3_quality: int = Field(default=0, validation_alias="PODFORGE_MP3_QUALITY")
    mp3_sample_rate: int = Field(default=44100, validation_alias="PODFORGE_MP3_SAMPLE_RATE")

    # NotebookLM Configuration
    notebooklm_bin: str = Field(default="notebooklm", validation_alias="NOTEBOOKLM_BIN")
    notebooklm_language: str = Field(default="en", validation_alias="NOTEBOOKLM_LANGUAGE")
    generation_start_attempts: int = Field(
        default=3, validation_alias="NOTEBOOKLM_START_ATTEMPTS"
    )
    generation_start_timeout: float = Field(
        default=60.0, validation_alias="NOTEBOOKLM_START_TIMEOUT"
    )
    generation_start_pause: float = Field(
        default=5.0, validation_alias="NOTEBOOKLM_START_PAUSE"
    )
    podcast_instructions_path: Path = Field(
        default=Path("podcast-instructions.md"),
        validation_alias="PODFORGE_INSTRUCTIONS_PATH",
    )

    # Monday.com Configuration
    monday_api_token: Optional[str] = Field(default=None, validation_alias="MONDAY_API_TOKEN")
    monday_board_url: Optional[str] = Field(default=None, validation_alias="MONDAY_BOARD_URL")
    monday_excluded_groups: str = Field(
        default="", validation_alias="MONDAY_EXCLUDED_GROUPS"
    )
    monday_source_url_column: str = Field(
        default="link", validation_alias="MONDAY_SOURCE_URL_COLUMN"
    )
    monday_podcast_link_column: str = Field(
        default="podcast_link", validation_alias="MONDAY_PODCAST_LINK_COLUMN"
    )
    monday_notebooklm_column: str = Field(
        default="notebooklm_link", validation_alias="MONDAY_NOTEBOOKLM_COLUMN"
    )
    monday_non_podcastable_column: str = Field(
        default="non_podcastable", validation_alias="MONDAY_NON_PODCASTABLE_COLUMN"
    )
    monday_metadata_column: str = Field(
        default="metadata", validation_alias="MONDAY_METADATA_COLUMN"
    )
    monday_type_column: str = Field(default="type", validation_alias="MONDAY_TYPE_COLUMN")
    monday_fitness_column: str = Field(
        default="podcast_fitness", validation_alias="MONDAY_FITNESS_COLUMN"
    )

    # RedCircle Configuration
    redcircle_show_url: Optional[str] = Field(
        default=None, validation_alias="REDCIRCLE_SHOW_URL"
    )
    redcircle_auth_state: Path = Field(
        default=Path(".auth") / "redcircle.json",
        validation_alias="REDCIRCLE_AUTH_STATE",
    )
    headless: bool = Field(default=True, validation_alias="PODFORGE_HEADLESS")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        valid_formats = {"console", "json"}
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("rate_limit_count", "max_candidates", "generation_start_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("new_generation_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delay cannot be negative")
        return v

    @property
    def excluded_groups(self) -> List[str]:
        """Board group ids skipped when fetching items."""
        return [g.strip() for g in self.monday_excluded_groups.split(",") if g.strip()]


# Global config instance
_config: Optional[PodforgeConfig] = None


def get_config() -> PodforgeConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = PodforgeConfig()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
