"""Tests for pipeline/deduplicator.py"""

import asyncio
import threading

import pytest

from pipeline.deduplicator import EventDeduplicator


class TestIsDuplicate:
    def test_first_sight_is_not_duplicate(self, deduplicator):
        assert deduplicator.is_duplicate("motion-1") is False
        assert "motion-1" in deduplicator.seen

    def test_repeat_within_ttl_is_duplicate(self, deduplicator, clock):
        assert deduplicator.is_duplicate("motion-1") is False
        clock.advance(59.9)
        assert deduplicator.is_duplicate("motion-1") is True

    def test_repeat_at_ttl_is_admitted(self, deduplicator, clock):
        assert deduplicator.is_duplicate("motion-1") is False
        clock.advance(60.0)
        assert deduplicator.is_duplicate("motion-1") is False

    def test_duplicate_does_not_refresh_timestamp(self, deduplicator, clock):
        deduplicator.is_duplicate("k")
        first = deduplicator.seen["k"]
        clock.advance(30)
        assert deduplicator.is_duplicate("k") is True
        assert deduplicator.seen["k"] == first
        clock.advance(30)
        # 60s since first sight, even though the last attempt was 30s ago
        assert deduplicator.is_duplicate("k") is False
        assert deduplicator.seen["k"] == clock.now

    def test_empty_key_never_recorded(self, deduplicator):
        assert deduplicator.is_duplicate("") is False
        assert deduplicator.is_duplicate("") is False
        assert len(deduplicator) == 0

    def test_per_call_ttl(self, deduplicator, clock):
        deduplicator.is_duplicate("k")
        clock.advance(5)
        assert deduplicator.is_duplicate("k", ttl=5) is False

    def test_keys_are_independent(self, deduplicator):
        assert deduplicator.is_duplicate("a") is False
        assert deduplicator.is_duplicate("b") is False
        assert deduplicator.is_duplicate("a") is True


class TestEviction:
    def test_evicts_only_expired(self, deduplicator, clock):
        deduplicator.is_duplicate("old")
        clock.advance(45)
        deduplicator.is_duplicate("new")
        clock.advance(20)
        assert deduplicator.evict_expired() == 1
        assert "old" not in deduplicator.seen
        assert "new" in deduplicator.seen

    def test_evict_empty_store(self, deduplicator):
        assert deduplicator.evict_expired() == 0

    @pytest.mark.asyncio
    async def test_background_sweep(self, clock):
        dedup = EventDeduplicator(ttl=60, sweep_interval=0.01, clock=clock)
        dedup.is_duplicate("k")
        clock.advance(61)
        dedup.start()
        try:
            for _ in range(50):
                if not len(dedup):
                    break
                await asyncio.sleep(0.01)
            assert len(dedup) == 0
        finally:
            dedup.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, deduplicator):
        deduplicator.start()
        deduplicator.stop()
        deduplicator.stop()
        assert deduplicator._sweep_task is None

    def test_instances_are_isolated(self, clock):
        a = EventDeduplicator(clock=clock)
        b = EventDeduplicator(clock=clock)
        a.is_duplicate("k")
        assert b.is_duplicate("k") is False


class TestConcurrency:
    def test_threads_racing_on_one_key_admit_once(self):
        dedup = EventDeduplicator(ttl=60)
        results = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            results.append(dedup.is_duplicate("same-key"))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(False) == 1
        assert results.count(True) == 15
