"""Tests for clinic/security/rate_limit.py: rolling submission window."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from clinic.errors import RateLimited
from clinic.security.rate_limit import (
    InMemoryRateWindowStore,
    RateLimiter,
    SqlRateWindowStore,
)


class FakeClock:
    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(params=["memory", "database"])
def store(request, session_factory):
    if request.param == "database":
        return SqlRateWindowStore(session_factory)
    return InMemoryRateWindowStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(store, clock) -> RateLimiter:
    return RateLimiter(store, max_submissions=5, window_seconds=3600, clock=clock)


class TestRateLimiter:
    def test_fifth_passes_sixth_rejected(self, limiter, clock):
        for _ in range(5):
            limiter.hit("8.8.8.8")
            clock.advance(1)
        with pytest.raises(RateLimited) as exc_info:
            limiter.hit("8.8.8.8")
        assert exc_info.value.status_code == 429
        assert (
            exc_info.value.message
            == "Too many submission attempts. Please try again later."
        )

    def test_identities_are_independent(self, limiter):
        for _ in range(5):
            limiter.hit("8.8.8.8")
        limiter.hit("1.1.1.1")

    def test_rejected_requests_not_recorded(self, limiter, store, clock):
        for _ in range(5):
            limiter.hit("8.8.8.8")
        for _ in range(3):
            with pytest.raises(RateLimited):
                limiter.hit("8.8.8.8")
        assert len(store.recent("8.8.8.8", clock() - 3600)) == 5

    def test_window_expiry_readmits(self, limiter, clock):
        for _ in range(5):
            limiter.hit("8.8.8.8")
        with pytest.raises(RateLimited):
            limiter.hit("8.8.8.8")
        clock.advance(3601)
        limiter.hit("8.8.8.8")

    def test_window_rolls_per_entry(self, limiter, clock):
        limiter.hit("8.8.8.8")
        clock.advance(1800)
        for _ in range(4):
            limiter.hit("8.8.8.8")
        clock.advance(1801)
        # The first hit aged out; the four later ones still count.
        limiter.hit("8.8.8.8")
        with pytest.raises(RateLimited):
            limiter.hit("8.8.8.8")


    def test_concurrent_hits_respect_limit(self, limiter):
        barrier = threading.Barrier(10)

        def attempt(_):
            barrier.wait()
            try:
                limiter.hit("8.8.8.8")
            except RateLimited:
                return False
            return True

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(attempt, range(10)))
        assert results.count(True) == 5


class TestStores:
    def test_recent_prunes_old_entries(self, store):
        store.record("9.9.9.9", 100.0)
        store.record("9.9.9.9", 200.0)
        store.record("9.9.9.9", 300.0)
        assert store.recent("9.9.9.9", 150.0) == [200.0, 300.0]
        assert store.recent("9.9.9.9", 0.0) == [200.0, 300.0]

    def test_unknown_identity_is_empty(self, store):
        assert store.recent("nobody", 0.0) == []

    def test_hit_counts_before_recording(self, store):
        assert store.hit("9.9.9.9", 0.0, 10.0, limit=2) is True
        assert store.hit("9.9.9.9", 0.0, 11.0, limit=2) is True
        assert store.hit("9.9.9.9", 0.0, 12.0, limit=2) is False
        assert store.recent("9.9.9.9", 0.0) == [10.0, 11.0]

    def test_hit_prunes_expired_entries(self, store):
        store.record("9.9.9.9", 1.0)
        assert store.hit("9.9.9.9", 5.0, 10.0, limit=1) is True
        assert store.recent("9.9.9.9", 0.0) == [10.0]


def test_sql_store_fails_open(broken_session_factory):
    store = SqlRateWindowStore(broken_session_factory)
    store.record("8.8.8.8", 1.0)
    assert store.recent("8.8.8.8", 0.0) == []
    limiter = RateLimiter(store, max_submissions=1)
    limiter.hit("8.8.8.8")
    limiter.hit("8.8.8.8")
