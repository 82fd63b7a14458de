"""Pydantic Settings model for application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment variable settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Generic application-wide settings
    DEBUG: bool = False

    # Host-provided paths
    CONTENT_ROOT: Path = Path("content")
    CACHE_ROOT: Path = Path("cache")
    CONFIG_PATH: Path = Path("githubsync.yaml")

    # GitHub endpoints
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_WEB_URL: str = "https://github.com"

    # Network and scheduling
    HTTP_TIMEOUT: float = 30.0
    TICK_INTERVAL: float = 60.0

