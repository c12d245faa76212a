"""Photobooth facade wiring the photo store, sync engine and expiry calculator."""

import logging
from datetime import datetime
from typing import Any, Callable

import httpx

from photobooth.config import Settings
from photobooth.errors import RetryExhausted
from photobooth.expiry import ExpiryCalculator, ExpiryInfo, Timestamp, utc_now
from photobooth.store import LocalPhotoStore
from photobooth.sync import CaptureReceipt, ShareServerClient, SyncEngine, SyncReport

logger = logging.getLogger(__name__)


class PhotoBooth:
    """Entry point used by the capture UI, the gallery view and the CLI.

    Exposes enqueue_capture, run_sync and compute_expiry, and owns the
    background sync worker.

    Example:
        booth = PhotoBooth(settings)
        await booth.start()
        receipt = await booth.enqueue_capture(png_bytes, 1240, 1748, "strip")
        ...
        await booth.close()
    """

    def __init__(
        self,
        config: Settings,
        clock: Callable[[], datetime] = utc_now,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the booth.

        Args:
            config: Settings instance with all configuration
            clock: Current-time source for expiry calculations
            transport: Optional httpx transport for the share-server client

        Raises:
            StorageError: If the local photo store cannot be opened
        """
        self.config = config

        self.store = LocalPhotoStore(config.store_path)
        self.client = ShareServerClient(
            server_url=config.server_url,
            timeout=config.request_timeout,
            transport=transport,
        )
        self.engine = SyncEngine(
            self.store,
            storage=self.client,
            metadata=self.client,
            max_retry_count=config.max_retry_count,
            sync_interval=config.sync_interval,
        )
        self.expiry = ExpiryCalculator(window=config.expiry_window, clock=clock)

    async def start(self) -> None:
        """Start background sync (first run happens immediately)."""
        logger.info("Starting photobooth sync, data_dir=%s", self.config.data_path)
        await self.engine.start()

    async def enqueue_capture(
        self,
        image_data: bytes,
        width: int,
        height: int,
        layout_name: str = "default",
    ) -> CaptureReceipt:
        return await self.engine.enqueue_capture(image_data, width, height, layout_name)

    async def run_sync(self) -> SyncReport:
        return await self.engine.run_sync()

    def compute_expiry(self, created_at: Timestamp) -> ExpiryInfo:
        return self.expiry.compute(created_at)

    async def list_stuck(self) -> list[RetryExhausted]:
        return await self.engine.list_stuck()

    async def get_status(self) -> dict[str, Any]:
        """Get current booth status.

        Returns:
            Dictionary with queue stats, worker state and configuration
        """
        stats = await self.store.get_stats(self.config.max_retry_count)
        return {
            "running": self.engine.is_running,
            "sync_in_progress": self.engine.sync_in_progress,
            "queue": stats,
            "max_retry_count": self.config.max_retry_count,
            "server_url": self.config.server_url,
            "data_dir": str(self.config.data_path),
        }

    async def close(self) -> None:
        """Stop the worker and release the store and HTTP client."""
        await self.engine.stop()
        await self.client.close()
        self.store.close()

    async def __aenter__(self) -> "PhotoBooth":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
