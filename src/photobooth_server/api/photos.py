"""Photo metadata API endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Response
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from photobooth.expiry import ExpiryCalculator
from photobooth_server.api.deps import get_expiry_calculator
from photobooth_server.db import SharedPhoto, get_db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/photos", tags=["photos"])

PHOTO_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


class PhotoMetaIn(BaseModel):
    """Metadata upsert request body."""

    file_url: str = Field(min_length=1, max_length=500)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    layout_name: str | None = Field(default="default", max_length=100)


class ExpiryOut(BaseModel):
    is_expired: bool
    remaining_ms: int
    remaining_formatted: str
    expires_at: datetime


class PhotoMetaOut(BaseModel):
    """Stored photo metadata with its current expiry state."""

    id: str
    file_url: str
    created_at: datetime
    width: int
    height: int
    layout_name: str | None
    expiry: ExpiryOut


def to_photo_out(photo: SharedPhoto, calculator: ExpiryCalculator) -> PhotoMetaOut:
    info = calculator.compute(photo.created_at_utc)
    return PhotoMetaOut(
        id=photo.id,
        file_url=photo.file_url,
        created_at=photo.created_at_utc,
        width=photo.width,
        height=photo.height,
        layout_name=photo.layout_name,
        expiry=ExpiryOut(
            is_expired=info.is_expired,
            remaining_ms=info.remaining_ms,
            remaining_formatted=info.remaining_formatted,
            expires_at=info.expires_at,
        ),
    )


def _apply(photo: SharedPhoto, body: PhotoMetaIn) -> None:
    photo.file_url = body.file_url
    photo.width = body.width
    photo.height = body.height
    photo.layout_name = body.layout_name


@router.put("/{photo_id}", response_model=PhotoMetaOut)
async def upsert_photo(
    body: PhotoMetaIn,
    response: Response,
    photo_id: str = Path(pattern=PHOTO_ID_PATTERN),
    db: AsyncSession = Depends(get_db),
    calculator: ExpiryCalculator = Depends(get_expiry_calculator),
) -> PhotoMetaOut:
    """Create or update metadata for a photo.

    created_at is set on first insert and never changed by later
    upserts, so re-syncing a photo does not extend its lifetime.
    """
    log = logger.bind(photo_id=photo_id)

    photo = await db.get(SharedPhoto, photo_id)
    if photo is None:
        photo = SharedPhoto(id=photo_id)
        _apply(photo, body)
        db.add(photo)
        try:
            await db.commit()
        except IntegrityError:
            # Lost an insert race with another upsert for the same id
            await db.rollback()
            photo = await db.get(SharedPhoto, photo_id)
            if photo is None:
                raise
            _apply(photo, body)
            await db.commit()
        else:
            response.status_code = 201
            log.info("photo_metadata_created", layout_name=body.layout_name)
            return to_photo_out(photo, calculator)
    else:
        _apply(photo, body)
        await db.commit()

    log.info("photo_metadata_updated", layout_name=body.layout_name)
    return to_photo_out(photo, calculator)


@router.get("/{photo_id}", response_model=PhotoMetaOut)
async def get_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    calculator: ExpiryCalculator = Depends(get_expiry_calculator),
) -> PhotoMetaOut:
    """Get metadata for a photo, including time left before expiry."""
    photo = await db.get(SharedPhoto, photo_id)
    if photo is None:
        raise HTTPException(status_code=404, detail="Photo not found")
    return to_photo_out(photo, calculator)
