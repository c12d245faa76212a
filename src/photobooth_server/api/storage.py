"""Object storage API endpoints.

PUT stores raw image bytes under a key; /p/{key} serves them back as a
public share link until the photo expires.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from photobooth.expiry import ExpiryCalculator
from photobooth_server.api.deps import (
    get_expiry_calculator,
    get_rate_limiter,
    get_storage,
    public_url,
)
from photobooth_server.config import Settings, get_settings
from photobooth_server.db import SharedPhoto, get_db
from photobooth_server.logging import client_ip, log_api_error, log_photo_stored
from photobooth_server.storage import (
    InvalidKeyError,
    ObjectStorage,
    content_type_for,
    validate_key,
)
from photobooth_server.ttl import RateLimiter

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["storage"])

ACCEPTED_CONTENT_TYPES = {"image/png", "image/jpeg"}


class StoredObjectResponse(BaseModel):
    """Response returned after an object upload."""

    key: str
    size: int
    url: str
    overwritten: bool


@router.put("/api/storage/{key}", response_model=StoredObjectResponse)
async def put_object(
    key: str,
    request: Request,
    upsert: bool = True,
    settings: Settings = Depends(get_settings),
    storage: ObjectStorage = Depends(get_storage),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> StoredObjectResponse:
    """Store the request body as the object named key.

    With upsert=false an existing object is left untouched and 409 is
    returned; retries from the sync engine always upsert.
    """
    ip = client_ip(request, settings.trust_forwarded_for)
    log = logger.bind(key=key, client_ip=ip)

    if limiter.hit(ip):
        log.warning("rate_limited")
        raise HTTPException(status_code=429, detail="Rate limit exceeded")

    try:
        validate_key(key)
    except InvalidKeyError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in ACCEPTED_CONTENT_TYPES:
        log.warning("invalid_content_type", content_type=content_type)
        raise HTTPException(
            status_code=415,
            detail=f"Invalid content type: {content_type or 'missing'}. Expected image/png or image/jpeg.",
        )

    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty body")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Request body too large")

    try:
        overwritten = await storage.store(key, data, upsert=upsert)
    except FileExistsError:
        raise HTTPException(status_code=409, detail="Object already exists")
    except OSError as e:
        log_api_error(log, "/api/storage", "storage", str(e))
        raise HTTPException(status_code=500, detail="Failed to store object")

    log_photo_stored(log, key, len(data), ip, overwritten)

    return StoredObjectResponse(
        key=key,
        size=len(data),
        url=public_url(request, settings, key),
        overwritten=overwritten,
    )


@router.get("/p/{key}")
async def serve_object(
    key: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    calculator: ExpiryCalculator = Depends(get_expiry_calculator),
) -> Response:
    """Serve a shared photo, or 410 once it has expired."""
    try:
        validate_key(key)
    except InvalidKeyError:
        raise HTTPException(status_code=404, detail="Not found")

    photo_id = key.rsplit(".", 1)[0]
    photo = await db.get(SharedPhoto, photo_id)

    cache_control = "public, max-age=300"
    if photo is not None:
        info = calculator.compute(photo.created_at_utc)
        if info.is_expired:
            raise HTTPException(status_code=410, detail="Photo has expired")
        cache_control = f"public, max-age={info.remaining_ms // 1000}"

    try:
        data = await storage.retrieve(key)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Not found")

    return Response(
        content=data,
        media_type=content_type_for(key),
        headers={"Cache-Control": cache_control},
    )
