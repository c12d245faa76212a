"""Photobooth configuration settings using pydantic-settings."""

from datetime import timedelta
from functools import cached_property
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the photobooth device.

    Settings are loaded from environment variables with the PHOTOBOOTH_ prefix.
    For example, PHOTOBOOTH_MAX_RETRY_COUNT=3 sets max_retry_count to 3.
    """

    model_config = SettingsConfigDict(
        env_prefix="PHOTOBOOTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    server_url: str = "http://localhost:8081"
    request_timeout: float = 30.0  # seconds per HTTP request

    # Sync policy
    expiry_window_hours: int = 24
    max_retry_count: int = 5
    sync_interval_ms: int = 60_000

    # File paths
    data_dir: Path = Path("~/.local/share/photobooth")

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    @field_validator("expiry_window_hours")
    @classmethod
    def validate_expiry_window_hours(cls, v: int) -> int:
        """Ensure the expiry window is at least an hour."""
        if v < 1:
            raise ValueError("expiry_window_hours must be at least 1")
        return v

    @field_validator("max_retry_count")
    @classmethod
    def validate_max_retry_count(cls, v: int) -> int:
        """Ensure the retry ceiling is not negative."""
        if v < 0:
            raise ValueError("max_retry_count must not be negative")
        return v

    @field_validator("sync_interval_ms")
    @classmethod
    def validate_sync_interval_ms(cls, v: int) -> int:
        """Keep the sync loop from spinning."""
        if v < 1000:
            raise ValueError("sync_interval_ms must be at least 1000")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        """Ensure request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @cached_property
    def data_path(self) -> Path:
        """Return expanded data directory path."""
        return self.data_dir.expanduser()

    @cached_property
    def store_path(self) -> Path:
        """Return the SQLite file backing the local photo store."""
        return self.data_path / "photos.db"

    @property
    def expiry_window(self) -> timedelta:
        return timedelta(hours=self.expiry_window_hours)

    @property
    def sync_interval(self) -> float:
        """Sync interval in seconds."""
        return self.sync_interval_ms / 1000
