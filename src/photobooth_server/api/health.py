"""Health check endpoint.

Booth devices poll this to decide whether they are online.
"""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from photobooth_server import __version__
from photobooth_server.api.deps import get_storage
from photobooth_server.db import get_db
from photobooth_server.storage import ObjectStorage

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response with component status."""

    status: str = "healthy"
    version: str
    database: str = "unknown"
    storage: str = "unknown"
    stored_files: int = 0


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> HealthResponse:
    """Check server health and component status.

    Always returns 200 with component status in body.
    """
    overall_status = "healthy"

    try:
        await db.execute(text("SELECT 1"))
        database_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning("database_health_check_failed", error=str(e))
        database_status = "unhealthy"
        overall_status = "degraded"

    stored_files = 0
    try:
        stored_files = storage.get_storage_stats()["total_files"]
        marker = storage.base_path / ".health_check"
        marker.touch()
        marker.unlink()
        storage_status = "healthy"
    except PermissionError:
        storage_status = "read-only"
        overall_status = "degraded"
    except OSError as e:
        logger.warning("storage_health_check_failed", error=str(e))
        storage_status = "unhealthy"
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=__version__,
        database=database_status,
        storage=storage_status,
        stored_files=stored_files,
    )
