"""FastAPI application entry point for the photobooth share server.

Configures the FastAPI app with routers, middleware, and lifecycle management.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from photobooth.expiry import ExpiryCalculator
from photobooth_server import __version__
from photobooth_server.api.deps import get_rate_limiter, get_storage
from photobooth_server.api.health import router as health_router
from photobooth_server.api.manage import router as manage_router
from photobooth_server.api.photos import router as photos_router
from photobooth_server.api.storage import router as storage_router
from photobooth_server.cleanup import cleanup_expired
from photobooth_server.config import get_settings
from photobooth_server.db import dispose_engine, get_sessionmaker, init_db
from photobooth_server.logging import LoggingMiddleware, setup_logging

logger = structlog.get_logger(__name__)


async def run_cleanup() -> None:
    """Run one cleanup pass and sweep stale rate-limit windows."""
    settings = get_settings()
    calculator = ExpiryCalculator(window=settings.expiry_window)
    async with get_sessionmaker()() as session:
        await cleanup_expired(session, get_storage(), calculator)
    get_rate_limiter().sweep()


async def _cleanup_loop(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await run_cleanup()
        except Exception as e:
            logger.exception("cleanup_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    Creates tables, runs an initial cleanup, and keeps the periodic
    cleanup task alive until shutdown.
    """
    settings = get_settings()

    logger.info(
        "server_starting",
        version=__version__,
        storage_path=str(settings.storage_path),
        expiry_window_hours=settings.expiry_window_hours,
        log_level=settings.log_level,
    )

    await init_db()
    storage = get_storage()
    logger.info("storage_initialized", path=str(storage.base_path))

    try:
        await run_cleanup()
    except Exception as e:
        logger.exception("cleanup_failed", error=str(e))

    cleanup_task = asyncio.create_task(_cleanup_loop(settings.cleanup_interval_seconds))

    yield

    # Shutdown
    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task
    await dispose_engine()
    logger.info("server_stopping")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Photobooth Share Server",
        description="Stores photos synced from booth devices and serves expiring share links",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(LoggingMiddleware(trust_forwarded_for=settings.trust_forwarded_for))

    app.include_router(health_router)
    app.include_router(storage_router)
    app.include_router(photos_router)
    app.include_router(manage_router)

    return app


# Create the application instance
app = create_app()


def run() -> None:
    """Run the server using uvicorn.

    This is the CLI entry point defined in pyproject.toml.
    """
    settings = get_settings()
    setup_logging(settings.log_level)

    uvicorn.run(
        "photobooth_server.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
