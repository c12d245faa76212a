"""Tests for expiry calculation.

Covers:
- Remaining time at creation, mid-window and after expiry
- HH:MM:SS formatting
- Timestamp parsing (ISO strings, epoch milliseconds, naive datetimes)
- Rejection of malformed timestamps
"""

from datetime import datetime, timedelta, timezone

import pytest

from photobooth.errors import ValidationError
from photobooth.expiry import (
    ExpiryCalculator,
    compute_expiry,
    format_remaining,
    is_expired,
    parse_timestamp,
)

CREATED = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestComputeExpiry:
    """Test compute_expiry against a fixed creation time."""

    def test_full_window_remaining_at_creation(self):
        """At the creation instant the whole window remains."""
        info = compute_expiry(CREATED, now=CREATED)

        assert info.is_expired is False
        assert info.remaining_ms == 86_400_000
        assert info.remaining_formatted == "24:00:00"
        assert info.expires_at == CREATED + timedelta(hours=24)

    def test_remaining_formatted_mid_window(self):
        """Remaining time is formatted as zero-padded HH:MM:SS."""
        now = CREATED + timedelta(hours=24) - timedelta(milliseconds=3_725_000)

        info = compute_expiry(CREATED, now=now)

        assert info.is_expired is False
        assert info.remaining_ms == 3_725_000
        assert info.remaining_formatted == "01:02:05"

    def test_expired_exactly_at_window_end(self):
        """Content is expired once now reaches created_at + window."""
        info = compute_expiry(CREATED, now=CREATED + timedelta(hours=24))

        assert info.is_expired is True
        assert info.remaining_ms == 0
        assert info.remaining_formatted == "00:00:00"

    def test_expired_long_after_window(self):
        """Remaining time never goes negative."""
        info = compute_expiry(CREATED, now=CREATED + timedelta(days=3))

        assert info.is_expired is True
        assert info.remaining_ms == 0
        assert info.remaining_formatted == "00:00:00"

    def test_custom_window(self):
        """A configured window replaces the 24 hour default."""
        info = compute_expiry(CREATED, now=CREATED, window=timedelta(hours=48))

        assert info.remaining_formatted == "48:00:00"
        assert info.expires_at == CREATED + timedelta(hours=48)

    def test_created_in_future_is_not_expired(self):
        """Clock skew putting created_at ahead of now leaves more than a window."""
        info = compute_expiry(CREATED + timedelta(minutes=5), now=CREATED)

        assert info.is_expired is False
        assert info.remaining_ms == 86_400_000 + 300_000

    def test_deterministic_for_same_inputs(self):
        """Same inputs always give the same result."""
        now = CREATED + timedelta(hours=5, seconds=7)

        assert compute_expiry(CREATED, now) == compute_expiry(CREATED, now)

    def test_is_expired_helper(self):
        assert is_expired(CREATED, CREATED + timedelta(hours=25)) is True
        assert is_expired(CREATED, CREATED + timedelta(hours=23)) is False


class TestFormatRemaining:
    """Test duration formatting."""

    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "00:00:00"),
            (-5000, "00:00:00"),
            (999, "00:00:00"),
            (1000, "00:00:01"),
            (59_999, "00:00:59"),
            (3_600_000, "01:00:00"),
            (3_725_000, "01:02:05"),
            (86_400_000, "24:00:00"),
            (100 * 3_600_000, "100:00:00"),
        ],
    )
    def test_format(self, ms, expected):
        assert format_remaining(ms) == expected


class TestParseTimestamp:
    """Test accepted and rejected timestamp representations."""

    def test_iso_string_with_z_suffix(self):
        assert parse_timestamp("2026-03-01T12:00:00Z") == CREATED

    def test_iso_string_with_offset(self):
        parsed = parse_timestamp("2026-03-01T14:00:00+02:00")

        assert parsed == CREATED

    def test_epoch_milliseconds(self):
        epoch_ms = int(CREATED.timestamp() * 1000)

        assert parse_timestamp(epoch_ms) == CREATED

    def test_naive_datetime_is_utc(self):
        parsed = parse_timestamp(datetime(2026, 3, 1, 12, 0, 0))

        assert parsed == CREATED
        assert parsed.tzinfo is not None

    def test_mixed_inputs_agree(self):
        """ISO and epoch forms of the same instant give identical results."""
        now = CREATED + timedelta(hours=2)
        from_iso = compute_expiry("2026-03-01T12:00:00Z", now)
        from_epoch = compute_expiry(int(CREATED.timestamp() * 1000), now)

        assert from_iso == from_epoch

    @pytest.mark.parametrize(
        "value",
        ["not a date", "", "2026-13-45T99:00:00Z", None, True, float("nan"), float("inf")],
    )
    def test_malformed_timestamp_raises(self, value):
        """Malformed input fails loudly instead of yielding a bogus expiry."""
        with pytest.raises(ValidationError):
            compute_expiry(value, now=CREATED)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_timestamp("garbage")


class TestExpiryCalculator:
    """Test the clock-bound calculator."""

    def test_uses_injected_clock(self):
        now = CREATED + timedelta(hours=23, minutes=30)
        calculator = ExpiryCalculator(clock=lambda: now)

        info = calculator.compute(CREATED)

        assert info.remaining_formatted == "00:30:00"
        assert calculator.is_expired(CREATED) is False

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            ExpiryCalculator(window=timedelta(0))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
