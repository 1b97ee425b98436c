"""
Configuration management for the GitLab activity engine.
Uses Pydantic Settings for type-safe configuration with environment variable support.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from activity_engine.models import EventCategory, WeightingPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # SERIES CONFIGURATION
    # ==========================================================================
    default_granularity: str = "1D"  # pandas timedelta string, one calendar day

    # ==========================================================================
    # SCORING CONFIGURATION
    # ==========================================================================
    commit_weight: float = 1.0
    merge_request_weight: float = 1.0

    # Drop commits already counted through a merge request
    exclude_merge_request_commits: bool = False

    # ==========================================================================
    # LOGGING CONFIGURATION
    # ==========================================================================
    log_level: str = "INFO"
    log_file: str = "logs/app.log"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def default_weights(self) -> WeightingPolicy:
        """Build the weighting policy from the configured per-category weights."""
        return WeightingPolicy(weights={
            EventCategory.COMMIT: self.commit_weight,
            EventCategory.MERGE_REQUEST: self.merge_request_weight,
        })


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create settings singleton instance.

    Returns:
        Settings: Application settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """
    Force reload settings from environment.
    Useful for testing.

    Returns:
        Settings: Fresh settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
