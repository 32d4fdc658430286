"""
Priority work queue for deep transaction analysis.

Strategies enqueue transaction *signatures* that deserve an expensive
on-chain inspection.  Every tick (1 s by default) up to ``batch_size``
tasks are popped, highest priority first and oldest first among equal
priorities, and handed one by one to the analyzer.

A signature is dispatched at most once.  The memory of dispatched
signatures is bounded: once it exceeds the high watermark (10 000) only
the most recent low-watermark entries (5 000) are kept, so a very old
signature could in principle be analysed twice.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from config import (
    QUEUE_BATCH_SIZE,
    QUEUE_TICK_SECONDS,
    SEEN_SIGNATURES_HIGH,
    SEEN_SIGNATURES_LOW,
    STOP_TIMEOUT_SECONDS,
)

from .logging_config import batch_id_ctx, generate_batch_id
from .utils import utc_now

logger = logging.getLogger(__name__)


class SignatureAnalyzer(Protocol):
    async def analyze(self, signature: str) -> Any:
        ...


@dataclass(frozen=True)
class AnalysisTask:
    signature: str
    source: str
    priority: int
    enqueued_at: datetime


class SeenSignatures:
    """Insertion-ordered set trimmed from the oldest end past a high watermark."""

    def __init__(self, high: int = SEEN_SIGNATURES_HIGH, low: int = SEEN_SIGNATURES_LOW) -> None:
        if not 0 < low < high:
            raise ValueError(f"watermarks must satisfy 0 < low < high (got {low}, {high})")
        self._high = high
        self._low = low
        # dict keys keep insertion order
        self._items: dict[str, None] = {}

    def add(self, signature: str) -> None:
        self._items[signature] = None
        if len(self._items) > self._high:
            keep = list(self._items)[-self._low:]
            self._items = dict.fromkeys(keep)
            logger.debug("Seen-signature set trimmed to %d entries", len(self._items))

    def __contains__(self, signature: object) -> bool:
        return signature in self._items

    def __len__(self) -> int:
        return len(self._items)


class AnalysisWorkQueue:
    """Batch-drained priority queue feeding the on-chain analyzer."""

    def __init__(
        self,
        analyzer: SignatureAnalyzer,
        *,
        batch_size: int = QUEUE_BATCH_SIZE,
        tick_seconds: float = QUEUE_TICK_SECONDS,
        seen: Optional[SeenSignatures] = None,
        on_failure: Optional[Callable[[AnalysisTask, Exception], None]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._analyzer = analyzer
        self.batch_size = batch_size
        self._tick = tick_seconds
        self.seen = seen if seen is not None else SeenSignatures()
        self._on_failure = on_failure
        self._clock = clock

        self._heap: list[tuple[int, datetime, int, AnalysisTask]] = []
        self._seq = itertools.count()
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

        self.dispatched = 0
        self.dropped = 0
        self.failed = 0

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def enqueue(self, signature: str, source: str, priority: int = 1) -> bool:
        """Queue *signature* for analysis; ``False`` when it was already analysed."""
        if not signature:
            return False
        if signature in self.seen:
            self.dropped += 1
            logger.debug("Signature %s already analysed – not queued", signature[:16])
            return False
        task = AnalysisTask(signature, source, int(priority), self._clock())
        heapq.heappush(self._heap, (-task.priority, task.enqueued_at, next(self._seq), task))
        return True

    def pending(self) -> list[AnalysisTask]:
        """Pending tasks in dispatch order (does not modify the queue)."""
        return [entry[-1] for entry in sorted(self._heap)]

    def __len__(self) -> int:
        return len(self._heap)

    async def drain_once(self) -> int:
        """Pop one batch and dispatch it; returns the number of analyzer calls."""
        batch: list[AnalysisTask] = []
        while self._heap and len(batch) < self.batch_size:
            batch.append(heapq.heappop(self._heap)[-1])

        calls = 0
        for index, task in enumerate(batch):
            if self._stopping.is_set():
                # Undispatched tasks go back; they keep their queue order
                for rest in batch[index:]:
                    heapq.heappush(
                        self._heap, (-rest.priority, rest.enqueued_at, next(self._seq), rest)
                    )
                break
            if task.signature in self.seen:
                self.dropped += 1
                continue
            self.seen.add(task.signature)
            calls += 1
            token = batch_id_ctx.set(generate_batch_id())
            try:
                await self._analyzer.analyze(task.signature)
                self.dispatched += 1
            except Exception as exc:
                self.failed += 1
                logger.error(
                    "Analysis of %s (priority %d, from %s) failed",
                    task.signature[:16], task.priority, task.source,
                    exc_info=True,
                )
                if self._on_failure is not None:
                    self._on_failure(task, exc)
            finally:
                batch_id_ctx.reset(token)
        return calls

    # ------------------------------------------------------------------
    # Drain timer
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        logger.info(
            "Analysis queue drain started (tick=%.2fs, batch=%d)", self._tick, self.batch_size
        )
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._tick)
            except asyncio.TimeoutError:
                pass
            if self._stopping.is_set():
                break
            try:
                await self.drain_once()
            except Exception:
                logger.warning("Analysis queue drain iteration failed", exc_info=True)
        logger.info("Analysis queue drain stopped (%d pending)", len(self._heap))

    def start(self) -> asyncio.Task:
        """Launch the drain timer.  Returns the Task handle."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="analysis_queue_drain")
        return self._task

    async def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        """Halt the drain timer, letting an in-flight analyzer call finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Analysis queue did not stop within %.1fs – cancelling", timeout)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
