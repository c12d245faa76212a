"""Tests for expiring maps and the upload rate limiter."""

import pytest

from photobooth_server.ttl import ExpiringMap, RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestExpiringMap:
    """Test per-entry expiry."""

    def test_get_before_and_after_expiry(self):
        clock = FakeClock()
        entries = ExpiringMap(ttl=60, clock=clock)
        entries.set("token", "user-1")

        clock.advance(59)
        assert entries.get("token") == "user-1"

        clock.advance(1)
        assert entries.get("token") is None
        assert "token" not in entries

    def test_per_entry_ttl_override(self):
        clock = FakeClock()
        entries = ExpiringMap(ttl=60, clock=clock)
        entries.set("short", 1, ttl=5)
        entries.set("long", 2)

        clock.advance(10)

        assert "short" not in entries
        assert entries.get("long") == 2

    def test_set_resets_expiry(self):
        clock = FakeClock()
        entries = ExpiringMap(ttl=60, clock=clock)
        entries.set("key", "a")
        clock.advance(50)
        entries.set("key", "b")
        clock.advance(50)

        assert entries.get("key") == "b"
        assert entries.expires_at("key") == clock.now + 10

    def test_pop(self):
        entries = ExpiringMap(ttl=60, clock=FakeClock())
        entries.set("key", "value")

        assert entries.pop("key") == "value"
        assert entries.pop("key", "gone") == "gone"

    def test_sweep_and_len(self):
        clock = FakeClock()
        entries = ExpiringMap(ttl=60, clock=clock)
        entries.set("a", 1)
        entries.set("b", 2, ttl=120)
        clock.advance(90)

        assert entries.sweep() == 1
        assert len(entries) == 1
        assert list(entries) == ["b"]

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError):
            ExpiringMap(ttl=0)


class TestRateLimiter:
    """Test fixed-window rate limiting."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

        results = [limiter.hit("10.0.0.1") for _ in range(4)]

        assert results == [False, False, False, True]

    def test_limits_are_per_key(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())

        assert limiter.hit("10.0.0.1") is False
        assert limiter.hit("10.0.0.1") is True
        assert limiter.hit("10.0.0.2") is False

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.hit("10.0.0.1")
        assert limiter.hit("10.0.0.1") is True

        clock.advance(60)

        assert limiter.hit("10.0.0.1") is False

    def test_sweep_drops_stale_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.hit("10.0.0.1")
        limiter.hit("10.0.0.2")
        clock.advance(61)

        assert limiter.sweep() == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
