"""Unit tests for the fixed-window rate limiter."""

import threading

import pytest

from archiflow.services.ratelimit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, seconds: float = 1000.0):
        self.seconds = seconds

    def __call__(self) -> float:
        return self.seconds

    def advance_ms(self, ms: float) -> None:
        self.seconds += ms / 1000


class TestFixedWindowRateLimiter:
    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def limiter(self, clock) -> FixedWindowRateLimiter:
        return FixedWindowRateLimiter(max_requests=30, window_ms=60_000, clock=clock)

    def test_thirty_requests_in_window_are_admitted(self, limiter, clock) -> None:
        for i in range(30):
            decision = limiter.hit("alice")
            assert decision.allowed, f"request {i + 1} should be admitted"
            clock.advance_ms(1000)
        assert limiter.window("alice").count == 30

    def test_thirty_first_request_in_window_is_rejected(self, limiter) -> None:
        for _ in range(30):
            limiter.hit("alice")

        decision = limiter.hit("alice")

        assert decision.allowed is False
        assert decision.count == 31
        assert decision.remaining == 0
        assert decision.retry_after == 60

    def test_request_after_window_resets_counter(self, limiter, clock) -> None:
        start_ms = clock() * 1000
        for _ in range(30):
            limiter.hit("alice")

        decision = limiter.hit("alice", now_ms=start_ms + 60_001)

        assert decision.allowed is True
        window = limiter.window("alice")
        assert window.count == 1
        assert window.window_start_ms == start_ms + 60_001

    def test_window_boundary_is_exclusive(self, limiter, clock) -> None:
        start_ms = clock() * 1000
        for _ in range(30):
            limiter.hit("alice")

        decision = limiter.hit("alice", now_ms=start_ms + 60_000)

        assert decision.allowed is False
        assert limiter.window("alice").count == 31

    def test_rejected_requests_still_count(self, limiter) -> None:
        for _ in range(35):
            limiter.hit("alice")
        assert limiter.window("alice").count == 35

    def test_retry_after_shrinks_as_window_elapses(self, limiter, clock) -> None:
        for _ in range(30):
            limiter.hit("alice")
        clock.advance_ms(45_500)

        decision = limiter.hit("alice")

        assert decision.allowed is False
        assert decision.retry_after == 15

    def test_principals_have_independent_windows(self, limiter) -> None:
        for _ in range(31):
            limiter.hit("alice")

        assert limiter.hit("bob").allowed is True
        assert limiter.window("bob").count == 1

    def test_no_window_until_first_request(self, limiter) -> None:
        assert "alice" not in limiter
        assert limiter.window("alice") is None
        assert len(limiter) == 0

    def test_sweep_drops_expired_windows(self, limiter, clock) -> None:
        limiter.hit("alice")
        clock.advance_ms(30_000)
        limiter.hit("bob")
        clock.advance_ms(30_001)

        dropped = limiter.sweep()

        assert dropped == 1
        assert "alice" not in limiter
        assert "bob" in limiter

    def test_tracked_windows_are_bounded(self, clock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=5, window_ms=60_000, max_tracked=3, clock=clock)
        for uid in ("a", "b", "c"):
            limiter.hit(uid)
        limiter.hit("a")  # "b" is now the least recently used

        limiter.hit("d")

        assert len(limiter) == 3
        assert "b" not in limiter
        assert {"a", "c", "d"} == {uid for uid in ("a", "b", "c", "d") if uid in limiter}

    def test_expired_windows_are_evicted_before_active_ones(self, clock) -> None:
        limiter = FixedWindowRateLimiter(max_requests=5, window_ms=60_000, max_tracked=2, clock=clock)
        limiter.hit("stale")
        clock.advance_ms(30_000)
        limiter.hit("fresh")
        clock.advance_ms(10_000)
        limiter.hit("stale")  # most recently used, but its window opened first
        clock.advance_ms(20_001)

        limiter.hit("new")

        assert len(limiter) == 2
        assert "stale" not in limiter
        assert "fresh" in limiter
        assert "new" in limiter

    def test_concurrent_hits_are_not_lost(self) -> None:
        limiter = FixedWindowRateLimiter(max_requests=10_000, window_ms=60_000)
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            for _ in range(250):
                limiter.hit("alice")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert limiter.window("alice").count == 2000

    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_ms": 0}, {"max_tracked": 0}])
    def test_rejects_non_positive_policy(self, kwargs) -> None:
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(**kwargs)
