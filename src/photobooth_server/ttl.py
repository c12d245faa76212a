"""In-memory maps whose entries expire after a time-to-live."""

import time
from typing import Callable, Generic, Iterator, TypeVar

K = TypeVar("K")
V = TypeVar("V")

_MISSING = object()


class ExpiringMap(Generic[K, V]):
    """Key-value map with per-entry expiry.

    Expired entries are dropped lazily on access, and in bulk by sweep().
    Not thread-safe; meant for use from a single event loop.

    Example:
        sessions: ExpiringMap[str, str] = ExpiringMap(ttl=7200)
        sessions.set(token, user_id)
        sessions.get(token)  # None once two hours have passed
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}

    def set(self, key: K, value: V, ttl: float | None = None) -> None:
        """Store value under key, replacing any entry and its expiry."""
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        self._entries[key] = (value, expires_at)

    def get(self, key: K, default: V | None = None) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def pop(self, key: K, default: V | None = None) -> V | None:
        value = self.get(key, _MISSING)  # type: ignore[arg-type]
        if value is _MISSING:
            return default
        del self._entries[key]
        return value

    def expires_at(self, key: K) -> float | None:
        """Clock reading at which key expires, or None if absent/expired."""
        if self.get(key, _MISSING) is _MISSING:  # type: ignore[arg-type]
            return None
        return self._entries[key][1]

    def sweep(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __contains__(self, key: object) -> bool:
        return self.get(key, _MISSING) is not _MISSING  # type: ignore[arg-type]

    def __len__(self) -> int:
        self.sweep()
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        self.sweep()
        return iter(list(self._entries))


class RateLimiter:
    """Fixed-window request counter per key (e.g. client IP).

    The first hit opens a window of window_seconds; up to max_requests
    hits are allowed inside it.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: ExpiringMap[str, list[int]] = ExpiringMap(window_seconds, clock)

    def hit(self, key: str) -> bool:
        """Record a request.

        Returns:
            True if the key is over its limit for the current window
        """
        counter = self._windows.get(key)
        if counter is None:
            self._windows.set(key, [1])
            return False
        counter[0] += 1
        return counter[0] > self.max_requests

    def sweep(self) -> int:
        return self._windows.sweep()
