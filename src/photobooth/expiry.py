"""Expiry calculation for shared photos.

Shared photos are available for a fixed window after the server created
them. Everything here is pure: the current time is always passed in, so
results are deterministic.

Usage:
    from photobooth.expiry import compute_expiry

    info = compute_expiry(meta.created_at, now=datetime.now(timezone.utc))
    if info.is_expired:
        ...
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Union

from photobooth.errors import ValidationError

DEFAULT_EXPIRY_WINDOW = timedelta(hours=24)

Timestamp = Union[datetime, str, int, float]


@dataclass(frozen=True)
class ExpiryInfo:
    """Remaining lifetime of a photo at a given instant."""

    is_expired: bool
    remaining_ms: int
    remaining_formatted: str
    expires_at: datetime


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse a creation timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (a trailing "Z" is allowed) and
    epoch milliseconds. Naive values are taken to be UTC.

    Raises:
        ValidationError: If the value cannot be interpreted as a timestamp.
    """
    # bool is an int subclass; True is not a timestamp
    if isinstance(value, bool):
        raise ValidationError(f"Invalid timestamp: {value!r}")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValidationError(f"Invalid timestamp: {value!r}")
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e
    else:
        raise ValidationError(f"Invalid timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_remaining(ms: int | float) -> str:
    """Format a duration in milliseconds as zero-padded HH:MM:SS.

    Hours are not rolled over into days, so 26 hours is "26:00:00".
    """
    if ms <= 0:
        return "00:00:00"

    total_seconds = int(ms // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def compute_expiry(
    created_at: Timestamp,
    now: Timestamp,
    window: timedelta = DEFAULT_EXPIRY_WINDOW,
) -> ExpiryInfo:
    """Compute the remaining lifetime of content created at created_at.

    Args:
        created_at: Authoritative creation time (server-assigned)
        now: Current time, injected by the caller
        window: How long content stays available after creation

    Returns:
        ExpiryInfo for the given instant

    Raises:
        ValidationError: If either timestamp is malformed
    """
    created = parse_timestamp(created_at)
    current = parse_timestamp(now)

    expires_at = created + window
    delta_ms = (expires_at - current) // timedelta(milliseconds=1)

    return ExpiryInfo(
        is_expired=expires_at <= current,
        remaining_ms=max(0, delta_ms),
        remaining_formatted=format_remaining(delta_ms),
        expires_at=expires_at,
    )


def is_expired(
    created_at: Timestamp,
    now: Timestamp,
    window: timedelta = DEFAULT_EXPIRY_WINDOW,
) -> bool:
    return compute_expiry(created_at, now, window).is_expired


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpiryCalculator:
    """Expiry computation bound to a configured window and clock.

    Example:
        calculator = ExpiryCalculator(timedelta(hours=24))
        info = calculator.compute(meta.created_at)
    """

    def __init__(
        self,
        window: timedelta = DEFAULT_EXPIRY_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if window <= timedelta(0):
            raise ValueError("window must be positive")
        self.window = window
        self._clock = clock

    def compute(self, created_at: Timestamp) -> ExpiryInfo:
        return compute_expiry(created_at, self._clock(), self.window)

    def is_expired(self, created_at: Timestamp) -> bool:
        return self.compute(created_at).is_expired
