"""Unit tests for the analysis work queue."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from discovery_agent.logging_config import batch_id_ctx
from discovery_agent.work_queue import AnalysisWorkQueue, SeenSignatures


def _analyzer(side_effect=None) -> MagicMock:
    analyzer = MagicMock()
    analyzer.analyze = AsyncMock(side_effect=side_effect)
    return analyzer


def _dispatched(analyzer: MagicMock) -> list[str]:
    return [c.args[0] for c in analyzer.analyze.await_args_list]


class TestSeenSignatures:

    def test_membership(self):
        seen = SeenSignatures(high=10, low=5)
        seen.add("a")
        assert "a" in seen
        assert "b" not in seen

    def test_trims_to_most_recent_low(self):
        seen = SeenSignatures(high=4, low=2)
        for sig in "abcde":
            seen.add(sig)
        assert len(seen) == 2
        assert "d" in seen and "e" in seen
        assert "a" not in seen

    @pytest.mark.parametrize("high,low", [(5, 5), (5, 0), (3, 4)])
    def test_invalid_watermarks(self, high, low):
        with pytest.raises(ValueError):
            SeenSignatures(high=high, low=low)


class TestAnalysisWorkQueue:

    @pytest.mark.asyncio
    async def test_priority_then_age_order(self, clock):
        analyzer = _analyzer()
        queue = AnalysisWorkQueue(analyzer, batch_size=5, clock=clock)
        queue.enqueue("sigA", "blockchain", 3)
        clock.advance(ms=1)
        queue.enqueue("sigB", "blockchain", 7)
        clock.advance(ms=1)
        queue.enqueue("sigC", "blockchain", 7)

        assert [t.signature for t in queue.pending()] == ["sigB", "sigC", "sigA"]
        assert await queue.drain_once() == 3
        assert _dispatched(analyzer) == ["sigB", "sigC", "sigA"]

    @pytest.mark.asyncio
    async def test_equal_priorities_drain_oldest_first(self, clock):
        analyzer = _analyzer()
        queue = AnalysisWorkQueue(analyzer, batch_size=5, clock=clock)
        queue.enqueue("p3", "blockchain", 3)
        queue.enqueue("p7_old", "blockchain", 7)
        clock.advance(ms=500)
        queue.enqueue("p7_new", "blockchain", 7)
        queue.enqueue("p1", "blockchain", 1)

        assert await queue.drain_once() == 4
        assert _dispatched(analyzer) == ["p7_old", "p7_new", "p3", "p1"]

    @pytest.mark.asyncio
    async def test_batch_size_limits_one_tick(self, clock):
        analyzer = _analyzer()
        queue = AnalysisWorkQueue(analyzer, batch_size=2, clock=clock)
        for i in range(5):
            queue.enqueue(f"sig{i}", "blockchain", 1)
        assert await queue.drain_once() == 2
        assert len(queue) == 3

    @pytest.mark.asyncio
    async def test_signature_dispatched_at_most_once(self, clock):
        analyzer = _analyzer()
        queue = AnalysisWorkQueue(analyzer, clock=clock)
        assert queue.enqueue("sig1", "blockchain", 5)
        await queue.drain_once()
        assert not queue.enqueue("sig1", "websocket", 9)
        assert await queue.drain_once() == 0
        assert analyzer.analyze.await_count == 1
        assert queue.dropped == 1

    @pytest.mark.asyncio
    async def test_duplicate_pending_dispatched_once(self, clock):
        analyzer = _analyzer()
        queue = AnalysisWorkQueue(analyzer, clock=clock)
        queue.enqueue("sig1", "blockchain", 5)
        queue.enqueue("sig1", "blockchain", 2)
        assert await queue.drain_once() == 1
        assert _dispatched(analyzer) == ["sig1"]

    def test_empty_signature_rejected(self, clock):
        queue = AnalysisWorkQueue(_analyzer(), clock=clock)
        assert not queue.enqueue("", "blockchain", 1)
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self, clock):
        analyzer = _analyzer(side_effect=[RuntimeError("rpc down"), None])
        failures = []
        queue = AnalysisWorkQueue(
            analyzer, clock=clock, on_failure=lambda task, exc: failures.append(task.signature)
        )
        queue.enqueue("bad", "blockchain", 9)
        queue.enqueue("good", "blockchain", 1)

        assert await queue.drain_once() == 2
        assert failures == ["bad"]
        assert queue.failed == 1
        assert queue.dispatched == 1
        # a failed signature is still remembered
        assert "bad" in queue.seen

    @pytest.mark.asyncio
    async def test_dispatch_carries_batch_id(self, clock):
        seen_ids = []

        async def _analyze(signature):
            seen_ids.append(batch_id_ctx.get())

        analyzer = MagicMock()
        analyzer.analyze = _analyze
        queue = AnalysisWorkQueue(analyzer, clock=clock)
        queue.enqueue("sig1", "blockchain", 1)
        queue.enqueue("sig2", "blockchain", 1)
        await queue.drain_once()

        assert len(seen_ids) == 2
        assert all(len(b) == 12 for b in seen_ids)
        assert seen_ids[0] != seen_ids[1]
        assert batch_id_ctx.get() == "-"

    def test_invalid_batch_size(self, clock):
        with pytest.raises(ValueError):
            AnalysisWorkQueue(_analyzer(), batch_size=0, clock=clock)


class TestDrainTimer:

    @pytest.mark.asyncio
    async def test_timer_drains_and_stops(self):
        analyzer = _analyzer()
        queue = AnalysisWorkQueue(analyzer, tick_seconds=0.01)
        queue.enqueue("sig1", "blockchain", 1)
        queue.start()
        assert queue.running
        for _ in range(100):
            if analyzer.analyze.await_count:
                break
            await asyncio.sleep(0.01)
        await queue.stop(timeout=1)
        assert not queue.running
        assert _dispatched(analyzer) == ["sig1"]

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        queue = AnalysisWorkQueue(_analyzer(), tick_seconds=0.01)
        await queue.stop()
        queue.start()
        await queue.stop(timeout=1)
        await queue.stop(timeout=1)
        assert not queue.running

    @pytest.mark.asyncio
    async def test_in_flight_call_finishes_on_stop(self):
        release = asyncio.Event()
        finished = []

        async def _analyze(signature):
            await release.wait()
            finished.append(signature)

        analyzer = MagicMock()
        analyzer.analyze = _analyze
        queue = AnalysisWorkQueue(analyzer, tick_seconds=0.01)
        queue.enqueue("sig1", "blockchain", 1)
        queue.enqueue("sig2", "blockchain", 1)
        queue.start()
        await asyncio.sleep(0.05)

        stopper = asyncio.create_task(queue.stop(timeout=2))
        await asyncio.sleep(0.01)
        release.set()
        await stopper

        assert finished == ["sig1"]
        # the undispatched task went back on the queue
        assert [t.signature for t in queue.pending()] == ["sig2"]
