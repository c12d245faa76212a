"""Async filesystem object storage for shared photos.

Objects live flat under the base path, one file per key. All file I/O
operations are async using aiofiles.
"""

import contextlib
import os
import re
import time
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}\.(png|jpg|jpeg)$")

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


class InvalidKeyError(ValueError):
    """Object key is not a safe photo filename."""


def validate_key(key: str) -> str:
    """Ensure key is a plain photo filename (no paths, known extension).

    Raises:
        InvalidKeyError: If the key is not acceptable
    """
    if not KEY_PATTERN.match(key):
        raise InvalidKeyError(f"Invalid object key: {key!r}")
    return key


def content_type_for(key: str) -> str:
    return CONTENT_TYPES[key.rsplit(".", 1)[1].lower()]


class ObjectStorage:
    """Flat async object storage keyed by photo filename.

    Files are stored in: {base_path}/{key}, e.g. {base_path}/Ab3dE5gH9k.png
    """

    def __init__(self, base_path: Path) -> None:
        """Initialize object storage.

        Args:
            base_path: Root directory for stored objects.
                       Will be created if it doesn't exist.
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.base_path / validate_key(key)

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.exists(self.path_for(key))

    async def store(self, key: str, data: bytes, upsert: bool = True) -> bool:
        """Write an object.

        The bytes go to a temporary file first and are renamed into
        place, so readers never observe a partial object.

        Args:
            key: Object key
            data: Object bytes
            upsert: Replace an existing object with the same key

        Returns:
            True if an existing object was replaced

        Raises:
            FileExistsError: If the key exists and upsert is False
            InvalidKeyError: If the key is not acceptable
        """
        filepath = self.path_for(key)
        existed = await aiofiles.os.path.exists(filepath)
        if existed and not upsert:
            raise FileExistsError(f"Object already exists: {key}")

        # Unique per write so concurrent uploads of one key never share a temp file
        tmp_path = filepath.with_name(f".{filepath.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, filepath)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                await aiofiles.os.remove(tmp_path)
            raise
        return existed

    async def retrieve(self, key: str) -> bytes:
        """Read an object.

        Raises:
            FileNotFoundError: If the object does not exist
        """
        async with aiofiles.open(self.path_for(key), "rb") as f:
            return await f.read()

    async def delete(self, key: str) -> bool:
        """Delete an object.

        Returns:
            True if the object was deleted, False if it did not exist
        """
        try:
            await aiofiles.os.remove(self.path_for(key))
            return True
        except FileNotFoundError:
            return False

    async def delete_photo(self, photo_id: str) -> int:
        """Delete every object stored for a photo id, whatever its extension.

        Returns:
            Number of objects removed
        """
        removed = 0
        for ext in CONTENT_TYPES:
            if await self.delete(f"{photo_id}.{ext}"):
                removed += 1
        return removed

    def keys_older_than(self, max_age_seconds: float) -> list[str]:
        """List keys whose files were last written before the cutoff.

        Synchronous: only used by the periodic cleanup task.
        """
        cutoff = time.time() - max_age_seconds
        keys = []
        for entry in os.scandir(self.base_path):
            if (
                entry.is_file()
                and KEY_PATTERN.match(entry.name)
                and entry.stat().st_mtime < cutoff
            ):
                keys.append(entry.name)
        return keys

    def get_storage_stats(self) -> dict:
        """Get storage statistics.

        Returns:
            Dictionary with:
            - total_files: Number of stored objects
            - total_size_mb: Total size in megabytes
        """
        total_files = 0
        total_size = 0

        for entry in os.scandir(self.base_path):
            if entry.is_file() and KEY_PATTERN.match(entry.name):
                total_files += 1
                total_size += entry.stat().st_size

        return {
            "total_files": total_files,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }
