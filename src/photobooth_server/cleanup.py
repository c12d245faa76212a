"""Removal of expired shared photos.

Runs once at startup, then every cleanup_interval_seconds, and on demand
from the admin API.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from photobooth.expiry import ExpiryCalculator
from photobooth_server.db import SharedPhoto
from photobooth_server.logging import log_photo_deleted
from photobooth_server.storage import ObjectStorage

logger = structlog.get_logger(__name__)


@dataclass
class CleanupResult:
    expired_photos: int = 0
    orphaned_files: int = 0


async def cleanup_expired(
    session: AsyncSession,
    storage: ObjectStorage,
    calculator: ExpiryCalculator,
) -> CleanupResult:
    """Delete expired photos and their files.

    Files older than the expiry window with no metadata row are removed
    as orphans (uploads whose metadata upsert never arrived).

    Args:
        session: Database session; committed before returning
        storage: Object storage holding the image files
        calculator: Expiry rule applied to each photo's created_at

    Returns:
        Counts of removed photos and orphaned files
    """
    result = CleanupResult()

    photos = (await session.execute(select(SharedPhoto))).scalars().all()
    for photo in photos:
        if not calculator.is_expired(photo.created_at_utc):
            continue
        await storage.delete_photo(photo.id)
        await session.delete(photo)
        log_photo_deleted(logger, photo.id, reason="expired")
        result.expired_photos += 1

    await session.commit()

    max_age = calculator.window.total_seconds()
    for key in storage.keys_older_than(max_age):
        photo_id = key.rsplit(".", 1)[0]
        if await session.get(SharedPhoto, photo_id) is not None:
            continue
        if await storage.delete(key):
            log_photo_deleted(logger, photo_id, reason="orphaned")
            result.orphaned_files += 1

    logger.info(
        "cleanup_completed",
        expired_photos=result.expired_photos,
        orphaned_files=result.orphaned_files,
    )
    return result
