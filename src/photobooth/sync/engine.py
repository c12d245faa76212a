"""Sync engine reconciling the local photo store with the share server."""

import asyncio
import time
from dataclasses import dataclass

from photobooth.errors import RetryExhausted, StorageError, UploadError
from photobooth.logging import (
    log_capture_saved,
    log_retry_exhausted,
    log_sync_run_completed,
    log_upload_failed,
    log_upload_success,
    sync_logger,
)
from photobooth.store import LocalPhotoStore, PhotoRecord
from photobooth.sync.remote import (
    PhotoMetaUpsert,
    RemoteMetadataService,
    RemoteObjectStorage,
)

DEFAULT_MAX_RETRY_COUNT = 5
DEFAULT_SYNC_INTERVAL = 60.0  # seconds


@dataclass
class CaptureReceipt:
    """Outcome of enqueueing a capture.

    The photo is always safe on the device once a receipt exists. When
    the immediate upload failed, error says why and the photo waits for
    background sync.
    """

    photo_id: str
    synced: bool
    error: UploadError | None = None


@dataclass
class SyncReport:
    """Counts from one sync run."""

    attempted: int = 0
    synced: int = 0
    failed: int = 0
    exhausted: int = 0
    deferred: int = 0  # left untouched after the server throttled the run
    skipped: bool = False  # another run was already active


class SyncEngine:
    """Best-effort background sync of captured photos.

    Pending photos are processed one at a time. Each attempt is counted
    in the store before any network call, and a photo is only marked
    synced once both the object upload and the metadata upsert succeed.
    Photos past the retry ceiling stay queued without further automatic
    attempts.

    Example:
        engine = SyncEngine(store, client, client)
        receipt = await engine.enqueue_capture(png_bytes, 1240, 1748, "strip")
        await engine.start()
        # ... runs every sync_interval until stopped ...
        await engine.stop()
    """

    def __init__(
        self,
        store: LocalPhotoStore,
        storage: RemoteObjectStorage,
        metadata: RemoteMetadataService,
        max_retry_count: int = DEFAULT_MAX_RETRY_COUNT,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
    ) -> None:
        """Initialize the sync engine.

        Args:
            store: Local photo store shared with the capture path
            storage: Remote object storage
            metadata: Remote metadata service
            max_retry_count: Photos with more attempts than this are skipped
            sync_interval: Seconds between background runs
        """
        self.store = store
        self.storage = storage
        self.metadata = metadata
        self.max_retry_count = max_retry_count
        self.sync_interval = sync_interval
        self._log = sync_logger()

        self._run_lock = asyncio.Lock()
        self._in_flight: set[str] = set()

        self._running = False
        self._wake = asyncio.Event()
        self._worker_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def sync_in_progress(self) -> bool:
        return self._run_lock.locked()

    # --- Capture path ---

    async def enqueue_capture(
        self,
        image_data: bytes,
        width: int,
        height: int,
        layout_name: str = "default",
    ) -> CaptureReceipt:
        """Save a capture locally, then try to upload it right away.

        Args:
            image_data: Encoded image bytes (PNG)
            width: Image width in pixels
            height: Image height in pixels
            layout_name: Composition template that produced the image

        Returns:
            CaptureReceipt with the photo id and the immediate upload outcome

        Raises:
            StorageError: If the photo could not be saved on the device
        """
        record = PhotoRecord.new(image_data, width, height, layout_name)

        # Claimed before the save so a concurrent run never picks it up
        self._in_flight.add(record.id)
        try:
            await self.store.save(record)
            log_capture_saved(self._log, record.id, layout_name, len(image_data))

            try:
                remote_id = await self._push(record)
            except UploadError as e:
                log_upload_failed(self._log, record.id, str(e), record.retry_count)
                return CaptureReceipt(photo_id=record.id, synced=False, error=e)

            try:
                await self.store.mark_synced(record.id, remote_id)
            except StorageError as e:
                # Already shared; the record stays pending and the next run
                # re-uploads under the same key before marking it
                self._log.error(
                    "Photo shared but could not be marked synced",
                    extra={"photo_id": record.id, "error": str(e)},
                )
        finally:
            self._in_flight.discard(record.id)

        return CaptureReceipt(photo_id=record.id, synced=True)

    # --- Sync runs ---

    async def run_sync(self) -> SyncReport:
        """Run one pass over all pending photos.

        Returns immediately with skipped=True if another run is active.

        Returns:
            SyncReport with counts for this run

        Raises:
            StorageError: If the pending list could not be read
        """
        if self._run_lock.locked():
            self._log.debug("Sync run already active, skipping trigger")
            return SyncReport(skipped=True)

        async with self._run_lock:
            pending = await self.store.list_pending()
            report = SyncReport()
            if not pending:
                return report

            self._log.info("Syncing pending photos", extra={"pending": len(pending)})

            throttled = False
            for record in pending:
                if record.is_retry_exhausted(self.max_retry_count):
                    report.exhausted += 1
                    log_retry_exhausted(self._log, record.id, record.retry_count)
                    continue
                if record.id in self._in_flight:
                    continue
                if throttled:
                    report.deferred += 1
                    continue

                report.attempted += 1
                try:
                    synced = await self._sync_record(record)
                except UploadError:
                    # Rate limited: stop spending attempts until the next run
                    report.failed += 1
                    throttled = True
                    continue
                if synced:
                    report.synced += 1
                else:
                    report.failed += 1

            if throttled:
                self._log.warning(
                    "Share server throttled sync run, deferring remaining photos",
                    extra={"deferred": report.deferred},
                )

            log_sync_run_completed(
                self._log,
                report.attempted,
                report.synced,
                report.failed,
                report.exhausted,
            )
            return report

    async def _sync_record(self, record: PhotoRecord) -> bool:
        """Attempt one pending photo.

        Returns:
            True if the photo was synced, False if this attempt failed

        Raises:
            UploadError: Only when the server throttled the request
        """
        self._in_flight.add(record.id)
        attempt = record.retry_count + 1
        try:
            await self.store.increment_retry(record.id)

            image_data = await self.store.get_image_data(record.id)
            if image_data is None:
                self._log.warning(
                    "Photo vanished from store during sync",
                    extra={"photo_id": record.id},
                )
                return False
            record.image_data = image_data

            remote_id = await self._push(record)
            await self.store.mark_synced(record.id, remote_id)
            return True
        except UploadError as e:
            log_upload_failed(self._log, record.id, str(e), attempt)
            if e.throttled:
                raise
            return False
        except StorageError as e:
            self._log.error(
                "Photo store failed during sync",
                extra={"photo_id": record.id, "error": str(e)},
            )
            return False
        finally:
            self._in_flight.discard(record.id)

    async def _push(self, record: PhotoRecord) -> str:
        """Upload the image and upsert its metadata.

        Returns:
            The remote id assigned by the metadata service
        """
        start = time.monotonic()
        key = record.storage_key

        await self.storage.upload(key, record.image_data, content_type="image/png", upsert=True)
        meta = await self.metadata.upsert_metadata(
            PhotoMetaUpsert(
                id=record.id,
                file_url=self.storage.get_public_url(key),
                width=record.width,
                height=record.height,
                layout_name=record.layout_name,
            )
        )

        log_upload_success(self._log, record.id, meta.id, (time.monotonic() - start) * 1000)
        return meta.id

    async def list_stuck(self) -> list[RetryExhausted]:
        """Describe every photo left queued after exhausting its retries."""
        records = await self.store.list_exhausted(self.max_retry_count)
        return [
            RetryExhausted(record.id, record.retry_count, self.max_retry_count)
            for record in records
        ]

    # --- Background worker ---

    async def start(self) -> None:
        """Start the background worker.

        The first run happens immediately, then one every sync_interval.
        """
        if self._running:
            return

        self._running = True
        self._wake.clear()
        self._worker_task = asyncio.create_task(self._sync_worker())
        self._log.info("Sync worker started", extra={"interval_seconds": self.sync_interval})

    def notify_online(self) -> None:
        """Wake the worker early, e.g. when network connectivity returns."""
        self._wake.set()

    async def _sync_worker(self) -> None:
        while self._running:
            try:
                await self.run_sync()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._log.error("Sync worker error: %s", e)

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.sync_interval)
            except asyncio.TimeoutError:
                pass
            except asyncio.CancelledError:
                break
            self._wake.clear()

    async def stop(self) -> None:
        """Stop the background worker.

        Abandoning an in-flight run is safe: the photo being uploaded
        simply stays pending.
        """
        self._running = False

        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None
        self._log.info("Sync worker stopped")
