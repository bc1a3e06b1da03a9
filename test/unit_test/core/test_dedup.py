"""Unit tests for the message id deduplication cache."""

import threading

import pytest

from twitch_eventsub.dedup import DeduplicationCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestDeduplicationCache:
    """Test the seen-before check of the deduplication cache."""

    def test_first_delivery_is_not_seen(self):
        cache = DeduplicationCache()
        assert cache.seen("msg-1") is False
        assert "msg-1" in cache

    def test_retry_is_seen(self):
        cache = DeduplicationCache()
        cache.seen("msg-1")
        assert cache.seen("msg-1") is True
        assert len(cache) == 1

    def test_distinct_ids_are_independent(self):
        cache = DeduplicationCache()
        assert cache.seen("msg-1") is False
        assert cache.seen("msg-2") is False
        assert len(cache) == 2

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = DeduplicationCache(ttl=10, clock=clock)
        cache.seen("msg-1")

        clock.now += 9
        assert cache.seen("msg-1") is True

        clock.now += 2
        assert "msg-1" not in cache
        assert cache.seen("msg-1") is False

    def test_oldest_entries_are_evicted_when_full(self):
        cache = DeduplicationCache(max_size=2)
        cache.seen("a")
        cache.seen("b")
        cache.seen("c")

        assert len(cache) == 2
        assert "a" not in cache
        assert "b" in cache and "c" in cache

    def test_clear(self):
        cache = DeduplicationCache()
        cache.seen("msg-1")
        cache.clear()
        assert len(cache) == 0
        assert cache.seen("msg-1") is False

    @pytest.mark.parametrize("ttl, max_size", [(0, 10), (-1, 10), (10, 0)])
    def test_invalid_configuration(self, ttl, max_size):
        with pytest.raises(ValueError):
            DeduplicationCache(ttl=ttl, max_size=max_size)

    def test_concurrent_first_deliveries_pass_once(self):
        cache = DeduplicationCache()
        results = []
        barrier = threading.Barrier(8)

        def deliver():
            barrier.wait()
            results.append(cache.seen("msg-1"))

        threads = [threading.Thread(target=deliver) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(False) == 1
        assert results.count(True) == 7
