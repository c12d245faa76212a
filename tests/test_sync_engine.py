"""Tests for the sync engine.

Covers:
- Capture is saved locally before any network call
- Immediate upload success and failure
- Background runs: retry counting, retry ceiling, failure isolation
- Non-overlapping runs
- Background worker start/stop and early wake-up
"""

import asyncio

import pytest

from photobooth.errors import RetryExhausted, StorageError
from photobooth.store import LocalPhotoStore, PhotoRecord
from photobooth.sync import SyncEngine

PNG = b"\x89PNG\r\n\x1a\nfake-image"


def _pending(photo_id: str, captured_at_ms: int = 1_000, retry_count: int = 0) -> PhotoRecord:
    return PhotoRecord(
        id=photo_id,
        image_data=PNG,
        width=1240,
        height=1748,
        layout_name="strip",
        captured_at_ms=captured_at_ms,
        retry_count=retry_count,
    )


@pytest.fixture
def engine(store, remote):
    return SyncEngine(store, storage=remote, metadata=remote, max_retry_count=5)


class TestEnqueueCapture:
    """Test the immediate capture path."""

    async def test_capture_offline_is_saved_and_pending(self, engine, store, remote):
        """A capture taken while offline is kept on the device."""
        remote.fail_upload = True

        receipt = await engine.enqueue_capture(PNG, 1240, 1748, "strip")

        assert receipt.synced is False
        assert receipt.error is not None
        pending = await store.list_pending()
        assert [r.id for r in pending] == [receipt.photo_id]
        assert pending[0].retry_count == 0
        assert await store.get_image_data(receipt.photo_id) == PNG

    async def test_capture_online_is_synced(self, engine, store, remote):
        receipt = await engine.enqueue_capture(PNG, 1240, 1748, "strip")

        assert receipt.synced is True
        assert receipt.error is None
        record = await store.get(receipt.photo_id)
        assert record.synced is True
        assert record.remote_id == receipt.photo_id
        assert remote.objects[f"{receipt.photo_id}.png"] == PNG

        meta = remote.metadata[receipt.photo_id]
        assert meta.file_url == f"http://share.test/p/{receipt.photo_id}.png"
        assert meta.width == 1240
        assert meta.height == 1748
        assert meta.layout_name == "strip"

    async def test_metadata_failure_leaves_photo_pending(self, engine, store, remote):
        """An uploaded object without metadata does not count as synced."""
        remote.fail_metadata = True

        receipt = await engine.enqueue_capture(PNG, 1240, 1748)

        assert receipt.synced is False
        assert [r.id for r in await store.list_pending()] == [receipt.photo_id]

    async def test_shared_but_mark_failed_is_still_shared(self, engine, store, remote, monkeypatch):
        """A store failure after a successful upload does not hide the share."""

        async def broken_mark_synced(photo_id, remote_id):
            raise StorageError("Photo store _mark_synced failed: disk I/O error")

        original_mark_synced = store.mark_synced
        monkeypatch.setattr(store, "mark_synced", broken_mark_synced)

        receipt = await engine.enqueue_capture(PNG, 1240, 1748, "strip")

        assert receipt.synced is True
        assert receipt.error is None
        assert [r.id for r in await store.list_pending()] == [receipt.photo_id]

        monkeypatch.setattr(store, "mark_synced", original_mark_synced)
        report = await engine.run_sync()

        assert report.synced == 1
        assert remote.upload_calls == [f"{receipt.photo_id}.png"] * 2
        assert await store.list_pending() == []

    async def test_save_failure_raises(self, tmp_path, remote):
        """If the photo cannot be saved locally the capture fails loudly."""
        broken = LocalPhotoStore(tmp_path / "photos.db")
        broken.close()
        engine = SyncEngine(broken, storage=remote, metadata=remote)

        with pytest.raises(StorageError):
            await engine.enqueue_capture(PNG, 1240, 1748)

        assert remote.upload_calls == []


class TestRunSync:
    """Test background sync runs."""

    async def test_failed_capture_synced_by_next_run(self, engine, store, remote):
        """Offline capture followed by a run once connectivity returns."""
        remote.fail_upload = True
        receipt = await engine.enqueue_capture(PNG, 1240, 1748, "strip")
        remote.fail_upload = False

        report = await engine.run_sync()

        assert report.attempted == 1
        assert report.synced == 1
        record = await store.get(receipt.photo_id)
        assert record.synced is True
        assert record.retry_count == 1
        assert await store.list_pending() == []

    async def test_run_with_nothing_pending(self, engine, remote):
        report = await engine.run_sync()

        assert report.attempted == 0
        assert report.skipped is False
        assert remote.upload_calls == []

    async def test_retry_counted_before_upload(self, engine, store, remote):
        """A failed attempt is still counted."""
        await store.save(_pending("abc123"))
        remote.fail_upload = True

        report = await engine.run_sync()

        assert report.failed == 1
        assert (await store.get("abc123")).retry_count == 1

    async def test_exhausted_photo_is_not_attempted(self, engine, store, remote):
        """Photos past the retry ceiling stay queued without further attempts."""
        await store.save(_pending("stuck", retry_count=6))

        report = await engine.run_sync()

        assert report.attempted == 0
        assert report.exhausted == 1
        assert remote.upload_calls == []
        record = await store.get("stuck")
        assert record.synced is False
        assert record.retry_count == 6

    async def test_retry_count_stops_at_ceiling(self, engine, store, remote):
        """With the server permanently down, attempts stop after the limit."""
        await store.save(_pending("abc123"))
        remote.fail_upload = True

        for _ in range(10):
            await engine.run_sync()

        record = await store.get("abc123")
        assert record.retry_count == 6
        assert record.synced is False
        assert len(remote.upload_calls) == 6

    async def test_one_failure_does_not_stop_others(self, engine, store, remote):
        await store.save(_pending("first", captured_at_ms=1_000))
        await store.save(_pending("broken", captured_at_ms=2_000))
        await store.save(_pending("third", captured_at_ms=3_000))
        remote.fail_ids = {"broken"}

        report = await engine.run_sync()

        assert report.attempted == 3
        assert report.synced == 2
        assert report.failed == 1
        assert [r.id for r in await store.list_pending()] == ["broken"]

    async def test_throttled_run_defers_backlog(self, engine, store, remote):
        """A rate-limited server stops the run without spending the backlog's retries."""
        for i in range(8):
            await store.save(_pending(f"photo{i}", captured_at_ms=1_000 + i))
        remote.throttle_after = 5

        report = await engine.run_sync()

        assert report.attempted == 6
        assert report.synced == 5
        assert report.failed == 1
        assert report.deferred == 2
        assert len(remote.upload_calls) == 6
        pending = {r.id: r.retry_count for r in await store.list_pending()}
        assert pending == {"photo5": 1, "photo6": 0, "photo7": 0}

    async def test_throttled_backlog_drains_over_runs(self, engine, store, remote):
        """A backlog far above the server limit still syncs without getting stuck."""
        for i in range(40):
            await store.save(_pending(f"photo{i:02d}", captured_at_ms=1_000 + i))
        remote.throttle_after = 10

        for _ in range(10):
            remote.upload_calls.clear()
            await engine.run_sync()

        assert await store.list_pending() == []
        assert await engine.list_stuck() == []

    async def test_oldest_photos_synced_first(self, engine, store, remote):
        await store.save(_pending("late", captured_at_ms=5_000))
        await store.save(_pending("early", captured_at_ms=1_000))

        await engine.run_sync()

        assert remote.upload_calls == ["early.png", "late.png"]

    async def test_retry_reuploads_same_key(self, engine, store, remote):
        """A partially completed attempt is retried under the same object key."""
        await store.save(_pending("abc123"))
        remote.fail_metadata = True
        await engine.run_sync()
        remote.fail_metadata = False

        report = await engine.run_sync()

        assert report.synced == 1
        assert remote.upload_calls == ["abc123.png", "abc123.png"]
        assert list(remote.objects) == ["abc123.png"]

    async def test_synced_photo_not_uploaded_again(self, engine, store, remote):
        await store.save(_pending("abc123"))
        await engine.run_sync()

        await engine.run_sync()

        assert remote.upload_calls == ["abc123.png"]

    async def test_pending_list_failure_propagates(self, tmp_path, remote):
        """A store failure is an error, not an empty run."""
        broken = LocalPhotoStore(tmp_path / "photos.db")
        broken.close()
        engine = SyncEngine(broken, storage=remote, metadata=remote)

        with pytest.raises(StorageError):
            await engine.run_sync()

    async def test_concurrent_trigger_is_skipped(self, engine, store, remote):
        """A second trigger while a run is active does not start another run."""
        await store.save(_pending("abc123"))
        started = asyncio.Event()
        release = asyncio.Event()
        original_upload = remote.upload

        async def slow_upload(key, data, **kwargs):
            started.set()
            await release.wait()
            await original_upload(key, data, **kwargs)

        remote.upload = slow_upload

        first = asyncio.create_task(engine.run_sync())
        await started.wait()
        assert engine.sync_in_progress is True

        second = await engine.run_sync()
        release.set()
        first_report = await first

        assert second.skipped is True
        assert first_report.synced == 1
        assert (await store.get("abc123")).retry_count == 1

    async def test_list_stuck(self, engine, store):
        await store.save(_pending("ok", retry_count=2))
        await store.save(_pending("stuck", retry_count=6))

        stuck = await engine.list_stuck()

        assert len(stuck) == 1
        assert isinstance(stuck[0], RetryExhausted)
        assert stuck[0].photo_id == "stuck"
        assert stuck[0].retry_count == 6
        assert "stuck after 6 attempts" in str(stuck[0])


class TestSyncWorker:
    """Test the background worker lifecycle."""

    async def test_worker_runs_immediately_on_start(self, store, remote):
        engine = SyncEngine(store, storage=remote, metadata=remote, sync_interval=3600)
        await store.save(_pending("abc123"))

        await engine.start()
        try:
            for _ in range(100):
                if not await store.list_pending():
                    break
                await asyncio.sleep(0.01)
        finally:
            await engine.stop()

        assert await store.list_pending() == []
        assert engine.is_running is False

    async def test_notify_online_wakes_worker(self, store, remote):
        engine = SyncEngine(store, storage=remote, metadata=remote, sync_interval=3600)
        remote.fail_upload = True

        await engine.start()
        try:
            for _ in range(100):
                if remote.upload_calls or not engine.sync_in_progress:
                    break
                await asyncio.sleep(0.01)

            await store.save(_pending("abc123"))
            remote.fail_upload = False
            engine.notify_online()

            for _ in range(100):
                if not await store.list_pending():
                    break
                await asyncio.sleep(0.01)
        finally:
            await engine.stop()

        assert await store.list_pending() == []

    async def test_start_twice_is_noop(self, store, remote):
        engine = SyncEngine(store, storage=remote, metadata=remote, sync_interval=3600)

        await engine.start()
        task = engine._worker_task
        await engine.start()

        assert engine._worker_task is task
        await engine.stop()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
