"""SQLite-backed durable store for captured photos."""

import asyncio
import contextlib
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, TypeVar

from photobooth.errors import StorageError
from photobooth.logging import store_logger
from photobooth.store.models import PhotoRecord

T = TypeVar("T")

# Listings leave the payload out; it is fetched per photo via get_image_data
_META_COLUMNS = "id, width, height, layout_name, captured_at_ms, synced, remote_id, retry_count"
_COLUMNS = f"{_META_COLUMNS}, image_data"


class LocalPhotoStore:
    """Durable local record of captured photos, keyed by id.

    Every write is committed before the awaiting caller resumes, so a
    capture survives the process being killed right after save().
    Photos are never deleted here; synced rows are left for external
    housekeeping.

    All operations run on a worker thread and are serialized by a lock,
    so the capture path and the sync engine can share one instance.
    """

    def __init__(self, db_path: Path) -> None:
        """Open (and create if needed) the photo store.

        Args:
            db_path: Path to the SQLite database file

        Raises:
            StorageError: If the database cannot be opened
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA synchronous = FULL")
            self._create_table()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to open photo store at {self.db_path}: {e}") from e

    def _create_table(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS photos (
                id TEXT PRIMARY KEY,
                image_data BLOB NOT NULL,
                width INTEGER NOT NULL,
                height INTEGER NOT NULL,
                layout_name TEXT NOT NULL,
                captured_at_ms INTEGER NOT NULL,
                synced INTEGER NOT NULL DEFAULT 0,
                remote_id TEXT,
                retry_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        # Index for efficient pending item queries
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_photos_synced_captured
            ON photos (synced, captured_at_ms)
        """)
        self._conn.commit()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._locked, fn, *args)

    def _locked(self, fn: Callable[..., T], *args: Any) -> T:
        with self._lock:
            try:
                return fn(*args)
            except sqlite3.Error as e:
                # The connection may itself be unusable (closed, corrupt)
                with contextlib.suppress(sqlite3.Error):
                    self._conn.rollback()
                store_logger().error(
                    "Photo store operation failed",
                    extra={"event": "store_error", "operation": fn.__name__, "error": str(e)},
                )
                raise StorageError(f"Photo store {fn.__name__} failed: {e}") from e

    @staticmethod
    def _to_record(row: sqlite3.Row) -> PhotoRecord:
        return PhotoRecord(
            id=row["id"],
            image_data=bytes(row["image_data"]) if "image_data" in row.keys() else b"",
            width=row["width"],
            height=row["height"],
            layout_name=row["layout_name"],
            captured_at_ms=row["captured_at_ms"],
            synced=bool(row["synced"]),
            remote_id=row["remote_id"],
            retry_count=row["retry_count"],
        )

    # --- Operations ---

    async def save(self, record: PhotoRecord) -> None:
        """Insert or fully overwrite the record with the same id.

        Args:
            record: Photo record to persist

        Raises:
            StorageError: If the write could not be committed
        """
        await self._run(self._save, record)

    def _save(self, record: PhotoRecord) -> None:
        self._conn.execute(
            f"INSERT OR REPLACE INTO photos ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.width,
                record.height,
                record.layout_name,
                record.captured_at_ms,
                int(record.synced),
                record.remote_id,
                record.retry_count,
                sqlite3.Binary(record.image_data),
            ),
        )
        self._conn.commit()

    async def list_pending(self) -> list[PhotoRecord]:
        """Get all records not yet synced, oldest capture first.

        The image payload is not loaded (image_data is empty); use
        get_image_data when it is needed.
        """
        return await self._run(self._list_pending)

    def _list_pending(self) -> list[PhotoRecord]:
        cursor = self._conn.execute(
            f"SELECT {_META_COLUMNS} FROM photos WHERE synced = 0 "
            "ORDER BY captured_at_ms ASC, id ASC"
        )
        return [self._to_record(row) for row in cursor.fetchall()]

    async def get(self, photo_id: str) -> PhotoRecord | None:
        return await self._run(self._get, photo_id)

    def _get(self, photo_id: str) -> PhotoRecord | None:
        cursor = self._conn.execute(
            f"SELECT {_COLUMNS} FROM photos WHERE id = ?",
            (photo_id,),
        )
        row = cursor.fetchone()
        return self._to_record(row) if row else None

    async def get_image_data(self, photo_id: str) -> bytes | None:
        """Get the image payload for a photo, or None if it doesn't exist."""
        return await self._run(self._get_image_data, photo_id)

    def _get_image_data(self, photo_id: str) -> bytes | None:
        cursor = self._conn.execute(
            "SELECT image_data FROM photos WHERE id = ?",
            (photo_id,),
        )
        row = cursor.fetchone()
        return bytes(row["image_data"]) if row else None

    async def mark_synced(self, photo_id: str, remote_id: str) -> None:
        """Mark a photo as persisted remotely.

        Silent no-op if the photo is missing or already synced.
        """
        await self._run(self._mark_synced, photo_id, remote_id)

    def _mark_synced(self, photo_id: str, remote_id: str) -> None:
        self._conn.execute(
            "UPDATE photos SET synced = 1, remote_id = ? WHERE id = ? AND synced = 0",
            (remote_id, photo_id),
        )
        self._conn.commit()

    async def increment_retry(self, photo_id: str) -> None:
        """Count one more upload attempt.

        Silent no-op if the photo is missing or already synced.
        """
        await self._run(self._increment_retry, photo_id)

    def _increment_retry(self, photo_id: str) -> None:
        self._conn.execute(
            "UPDATE photos SET retry_count = retry_count + 1 WHERE id = ? AND synced = 0",
            (photo_id,),
        )
        self._conn.commit()

    async def list_exhausted(self, max_retry_count: int) -> list[PhotoRecord]:
        """Get pending photos that are past the retry ceiling."""
        return await self._run(self._list_exhausted, max_retry_count)

    def _list_exhausted(self, max_retry_count: int) -> list[PhotoRecord]:
        cursor = self._conn.execute(
            f"SELECT {_META_COLUMNS} FROM photos WHERE synced = 0 AND retry_count > ? "
            "ORDER BY captured_at_ms ASC, id ASC",
            (max_retry_count,),
        )
        return [self._to_record(row) for row in cursor.fetchall()]

    async def get_stats(self, max_retry_count: int) -> dict[str, int]:
        """Get store statistics.

        Returns:
            Dictionary with pending, synced, exhausted and total counts.
            Exhausted photos are also counted as pending.
        """
        return await self._run(self._get_stats, max_retry_count)

    def _get_stats(self, max_retry_count: int) -> dict[str, int]:
        row = self._conn.execute(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN synced = 0 THEN 1 ELSE 0 END), 0) AS pending,
                COALESCE(SUM(synced), 0) AS synced,
                COALESCE(SUM(CASE WHEN synced = 0 AND retry_count > ? THEN 1 ELSE 0 END), 0)
                    AS exhausted
            FROM photos
            """,
            (max_retry_count,),
        ).fetchone()
        return {
            "pending": row["pending"],
            "synced": row["synced"],
            "exhausted": row["exhausted"],
            "total": row["total"],
        }

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
