"""Tests for the sliding-window rate limiter.

A fake clock drives the limiter so the window behaviour is checked
without real sleeping.
"""

import pytest

from ui_healer.rate_limiter import RateLimiter


class TestRateLimiter:
    """Tests for rate limiting of service calls."""

    def test_calls_under_limit_do_not_wait(self, fake_clock):
        limiter = RateLimiter(3, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
        for _ in range(3):
            limiter.acquire()

        assert fake_clock.sleeps == []
        assert limiter.current_count() == 3

    def test_call_over_limit_waits_for_oldest_to_expire(self, fake_clock):
        limiter = RateLimiter(2, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.acquire()                  # t=1000
        fake_clock.advance(10)
        limiter.acquire()                  # t=1010
        admitted = limiter.acquire()       # must wait until t=1060

        assert fake_clock.sleeps == [pytest.approx(50.0)]
        assert admitted == pytest.approx(1060.0)

    def test_third_call_dispatched_a_full_window_after_first(self, fake_clock):
        limiter = RateLimiter(2, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
        first = limiter.acquire()
        limiter.acquire()
        third = limiter.acquire()

        assert third - first >= 60.0

    def test_never_more_than_max_calls_in_any_window(self, fake_clock):
        limiter = RateLimiter(5, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
        admitted = [limiter.acquire() for _ in range(17)]

        for start in admitted:
            in_window = [t for t in admitted if start <= t < start + 60.0]
            assert len(in_window) <= 5

    def test_window_slides(self, fake_clock):
        limiter = RateLimiter(1, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.acquire()
        fake_clock.advance(61)
        limiter.acquire()
        assert fake_clock.sleeps == []

    def test_reset(self, fake_clock):
        limiter = RateLimiter(1, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.acquire()
        limiter.reset()
        limiter.acquire()
        assert fake_clock.sleeps == []

    @pytest.mark.parametrize("max_calls,window", [(0, 60.0), (5, 0)])
    def test_invalid_arguments(self, max_calls, window):
        with pytest.raises(ValueError):
            RateLimiter(max_calls, window)
