"""Photo record held in the local photo store."""

import secrets
import time
from dataclasses import dataclass, field

# URL-friendly alphabet for short share ids
_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
PHOTO_ID_LENGTH = 10


def generate_photo_id() -> str:
    """Generate a 10-character URL-friendly photo id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(PHOTO_ID_LENGTH))


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass
class PhotoRecord:
    """A captured photo awaiting, or having completed, remote sync."""

    id: str
    image_data: bytes = field(repr=False)
    width: int
    height: int
    layout_name: str = "default"
    captured_at_ms: int = field(default_factory=now_ms)
    synced: bool = False
    remote_id: str | None = None
    retry_count: int = 0

    @classmethod
    def new(
        cls,
        image_data: bytes,
        width: int,
        height: int,
        layout_name: str = "default",
    ) -> "PhotoRecord":
        """Create a fresh, unsynced record with a generated id."""
        return cls(
            id=generate_photo_id(),
            image_data=image_data,
            width=width,
            height=height,
            layout_name=layout_name,
        )

    @property
    def storage_key(self) -> str:
        """Deterministic object storage key for this photo."""
        return f"{self.id}.png"

    def is_retry_exhausted(self, max_retry_count: int) -> bool:
        return not self.synced and self.retry_count > max_retry_count
