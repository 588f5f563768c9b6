"""
Tests for the Token Bucket Rate Limiter

A fake clock and sleep make refill timing deterministic.
"""

import threading

import pytest

from optionscan.data.rate_limiter import TokenBucketRateLimiter


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_limiter(clock, rate=10.0, capacity=None):
    return TokenBucketRateLimiter(rate=rate, capacity=capacity, clock=clock, sleep=clock.sleep)


class TestConstruction:
    def test_default_capacity_is_rate(self, clock):
        limiter = make_limiter(clock, rate=5)
        assert limiter.capacity == 5.0
        assert limiter.available_tokens == 5.0

    def test_capacity_at_least_one(self, clock):
        assert make_limiter(clock, rate=0.5).capacity == 1.0

    @pytest.mark.parametrize("rate", [0, -1])
    def test_invalid_rate(self, clock, rate):
        with pytest.raises(ValueError):
            make_limiter(clock, rate=rate)

    def test_invalid_capacity(self, clock):
        with pytest.raises(ValueError):
            make_limiter(clock, rate=10, capacity=0.5)


class TestTryAcquire:
    def test_burst_then_empty(self, clock):
        limiter = make_limiter(clock, rate=10, capacity=3)
        assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]

    def test_refills_over_time(self, clock):
        limiter = make_limiter(clock, rate=10, capacity=1)
        assert limiter.try_acquire()
        assert not limiter.try_acquire()

        clock.now += 0.1
        assert limiter.try_acquire()

    def test_refill_capped_at_capacity(self, clock):
        limiter = make_limiter(clock, rate=10, capacity=2)
        limiter.try_acquire()
        clock.now += 60
        assert limiter.available_tokens == 2.0


class TestAcquire:
    def test_immediate_when_available(self, clock):
        limiter = make_limiter(clock, rate=10)
        assert limiter.acquire()
        assert clock.sleeps == []

    def test_waits_for_refill(self, clock):
        limiter = make_limiter(clock, rate=4, capacity=1)
        assert limiter.acquire()
        assert limiter.acquire()
        assert clock.sleeps == [pytest.approx(0.25)]

    def test_sustained_rate(self, clock):
        """Twenty requests at 10/s with a burst of 1 take about two seconds."""
        limiter = make_limiter(clock, rate=10, capacity=1)
        start = clock.now
        for _ in range(20):
            assert limiter.acquire()
        assert clock.now - start == pytest.approx(1.9)

    def test_timeout_exceeded_returns_false(self, clock):
        limiter = make_limiter(clock, rate=1, capacity=1)
        assert limiter.acquire()
        assert limiter.acquire(timeout=0.5) is False
        assert clock.sleeps == []

    def test_timeout_sufficient(self, clock):
        limiter = make_limiter(clock, rate=1, capacity=1)
        assert limiter.acquire()
        assert limiter.acquire(timeout=1.5) is True

    def test_zero_timeout_when_empty(self, clock):
        limiter = make_limiter(clock, rate=10, capacity=1)
        limiter.acquire()
        assert limiter.acquire(timeout=0) is False


class TestThreadSafety:
    def test_concurrent_try_acquire_never_oversubscribes(self):
        """With no refill, exactly `capacity` of many racing callers succeed."""
        limiter = TokenBucketRateLimiter(rate=1e-9, capacity=50, clock=lambda: 0.0)
        successes = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                if limiter.try_acquire():
                    with lock:
                        successes.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(successes) == 50
