"""Shared FastAPI dependencies."""

import secrets
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request

from photobooth.expiry import ExpiryCalculator
from photobooth_server.config import Settings, get_settings
from photobooth_server.storage import ObjectStorage
from photobooth_server.ttl import RateLimiter


@lru_cache
def get_storage() -> ObjectStorage:
    """Get cached ObjectStorage instance configured from settings.

    Storage is initialized once and reused for all requests.
    """
    settings = get_settings()
    return ObjectStorage(base_path=settings.storage_path)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )


def get_expiry_calculator(settings: Settings = Depends(get_settings)) -> ExpiryCalculator:
    return ExpiryCalculator(window=settings.expiry_window)


def public_url(request: Request, settings: Settings, key: str) -> str:
    """Public share link for an object key."""
    base = settings.public_base_url or str(request.base_url)
    return f"{base.rstrip('/')}/p/{key}"


def require_admin(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard for /api/manage routes using the static admin token."""
    if not settings.admin_token:
        raise HTTPException(status_code=503, detail="Admin API is disabled")

    token = ""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):]

    if not secrets.compare_digest(token.encode(), settings.admin_token.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
