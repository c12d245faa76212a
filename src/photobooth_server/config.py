"""Server configuration with environment variable loading."""

import functools
from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Photobooth share server settings.

    All settings can be overridden via environment variables with the
    PHOTOBOOTH_SERVER_ prefix.
    Example: PHOTOBOOTH_SERVER_DATABASE_URL, PHOTOBOOTH_SERVER_ADMIN_TOKEN
    """

    # Database
    database_url: str = "sqlite+aiosqlite:///./photobooth.db"

    # File storage
    storage_path: Path = Path("./data/shared")
    max_upload_bytes: int = 10 * 1024 * 1024

    # Public links are built from this (falls back to the request URL)
    public_base_url: str | None = None

    # Lifecycle
    expiry_window_hours: int = 24
    cleanup_interval_seconds: int = 3600

    # Rate limiting for uploads, per client IP
    rate_limit_max: int = 30
    rate_limit_window_seconds: int = 60
    # Only enable behind a reverse proxy that sets X-Forwarded-For itself
    trust_forwarded_for: bool = False

    # Static bearer token for /api/manage routes; unset disables them
    admin_token: str | None = None

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["*"]

    # Uvicorn
    host: str = "0.0.0.0"
    port: int = 8081

    model_config = {
        "env_prefix": "PHOTOBOOTH_SERVER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def expiry_window(self) -> timedelta:
        return timedelta(hours=self.expiry_window_hours)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    Use this function for dependency injection in FastAPI.
    """
    return Settings()
