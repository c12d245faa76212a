"""Admin endpoints for browsing and pruning shared photos.

All routes require the static admin bearer token.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from photobooth.expiry import ExpiryCalculator
from photobooth_server.api.deps import get_expiry_calculator, get_storage, require_admin
from photobooth_server.api.photos import PhotoMetaOut, to_photo_out
from photobooth_server.cleanup import cleanup_expired
from photobooth_server.db import SharedPhoto, get_db
from photobooth_server.logging import log_photo_deleted
from photobooth_server.storage import ObjectStorage

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/api/manage",
    tags=["manage"],
    dependencies=[Depends(require_admin)],
)


class GalleryResponse(BaseModel):
    photos: list[PhotoMetaOut]
    total: int
    page: int
    limit: int


class DeleteResponse(BaseModel):
    id: str
    files_removed: int


class CleanupResponse(BaseModel):
    expired_photos: int
    orphaned_files: int


@router.get("/gallery", response_model=GalleryResponse)
async def list_gallery(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    calculator: ExpiryCalculator = Depends(get_expiry_calculator),
) -> GalleryResponse:
    """List shared photos, newest first."""
    total = await db.scalar(select(func.count()).select_from(SharedPhoto))
    result = await db.execute(
        select(SharedPhoto)
        .order_by(SharedPhoto.created_at.desc(), SharedPhoto.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return GalleryResponse(
        photos=[to_photo_out(p, calculator) for p in result.scalars()],
        total=total or 0,
        page=page,
        limit=limit,
    )


@router.delete("/photos/{photo_id}", response_model=DeleteResponse)
async def delete_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> DeleteResponse:
    """Delete a photo's metadata and stored files."""
    photo = await db.get(SharedPhoto, photo_id)
    if photo is None:
        raise HTTPException(status_code=404, detail="Photo not found")

    files_removed = await storage.delete_photo(photo_id)
    await db.delete(photo)
    await db.commit()

    log_photo_deleted(logger, photo_id, reason="admin")
    return DeleteResponse(id=photo_id, files_removed=files_removed)


@router.post("/cleanup", response_model=CleanupResponse)
async def run_cleanup(
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    calculator: ExpiryCalculator = Depends(get_expiry_calculator),
) -> CleanupResponse:
    """Run expired-photo cleanup immediately."""
    result = await cleanup_expired(db, storage, calculator)
    return CleanupResponse(
        expired_photos=result.expired_photos,
        orphaned_files=result.orphaned_files,
    )
