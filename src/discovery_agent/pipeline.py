"""
Detection pipeline coordinator.

Every batch from a source strategy, and every analysis result fed back by
the on-chain analyzer, goes through one admission path:

    normalise → freshness check → (security gate) → enrich → score
              → cache write → statistics → publish

The pipeline runs on one event loop, which owns the freshness cache, the
analysis work queue and the statistics.  Their mutations are synchronous,
so they never interleave.  Batches from different strategies may
interleave at the await points (security, enrichment); an in-flight
address set keeps two concurrent discoveries of one token from both being
admitted in most cases, but this is not a strict guarantee.

Background tasks: one consumer per strategy channel, one consumer for
analyzer feedback, the work-queue drain timer and the cache sweep timer.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol

from config import (
    CACHE_MAX_ENTRIES,
    CACHE_SWEEP_INTERVAL_SECONDS,
    CACHE_TTL_SECONDS,
    ENABLED_SOURCES,
    QUEUE_BATCH_SIZE,
    QUEUE_TICK_SECONDS,
    STOP_TIMEOUT_SECONDS,
    SUBSCRIBER_QUEUE_SIZE,
)

from .cache import FreshnessCache
from .channels import Topic
from .circuit_breaker import BreakerRegistry
from .context import PipelineContext
from .enrichment import Enricher
from .errors import InvalidRecordError
from .logging_config import batch_id_ctx, generate_batch_id
from .models import (
    AnalysisResult,
    DetectionResult,
    DetectionStats,
    DiscoveryRecord,
    SecurityVerdict,
    normalize_record,
)
from .scoring import ScoringEngine
from .security import SecurityAnalyzer
from .stats import (
    ERROR_DISPATCH,
    ERROR_ENRICHMENT,
    ERROR_REJECTED,
    ERROR_SCORING,
    ERROR_SECURITY,
    ERROR_STRATEGY,
    StatisticsAggregator,
)
from .strategies import SourceStrategy, StrategyOutlet, build_strategies
from .utils import utc_now
from .work_queue import AnalysisTask, AnalysisWorkQueue, SeenSignatures

logger = logging.getLogger(__name__)

# Sentinel that tells a consumer task to exit
_STOP = None


class OnChainAnalyzer(Protocol):
    analysis_complete: Topic[AnalysisResult]

    async def analyze(self, signature: str) -> AnalysisResult:
        ...


class DetectionPipeline:
    """Coordinates strategies, admission, the work queue and the timers."""

    def __init__(
        self,
        *,
        strategies: Iterable[SourceStrategy] = (),
        enricher: Optional[Enricher] = None,
        scoring: Optional[ScoringEngine] = None,
        analyzer: Optional[OnChainAnalyzer] = None,
        security: Optional[SecurityAnalyzer] = None,
        cache: Optional[FreshnessCache] = None,
        stats: Optional[StatisticsAggregator] = None,
        breakers: Optional[BreakerRegistry] = None,
        queue_batch_size: int = QUEUE_BATCH_SIZE,
        queue_tick_seconds: float = QUEUE_TICK_SECONDS,
        seen_signatures: Optional[SeenSignatures] = None,
        sweep_interval: float = CACHE_SWEEP_INTERVAL_SECONDS,
        subscriber_queue_size: int = SUBSCRIBER_QUEUE_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clock = clock
        self.cache = cache or FreshnessCache(
            ttl_seconds=CACHE_TTL_SECONDS, max_entries=CACHE_MAX_ENTRIES, clock=clock
        )
        self.stats = stats or StatisticsAggregator()
        self.enricher = enricher or Enricher(None, enabled=False, clock=clock)
        self.scoring = scoring or ScoringEngine(clock=clock)
        self._security = security
        self._breakers = breakers
        self._analyzer = analyzer
        self.work_queue: Optional[AnalysisWorkQueue] = None
        if analyzer is not None:
            self.work_queue = AnalysisWorkQueue(
                analyzer,
                batch_size=queue_batch_size,
                tick_seconds=queue_tick_seconds,
                seen=seen_signatures,
                on_failure=self._on_dispatch_failure,
                clock=clock,
            )

        self._results: Topic[DetectionResult] = Topic(
            "detection_results", default_maxsize=subscriber_queue_size
        )
        self._strategies: dict[str, SourceStrategy] = {}
        self._channels: dict[str, asyncio.Queue] = {}
        self._consumers: list[asyncio.Task] = []
        self._feedback: Optional[asyncio.Queue] = None
        self._sweep_interval = sweep_interval
        self._sweep_task: Optional[asyncio.Task] = None
        self._sweep_stop = asyncio.Event()
        self._in_flight: set[str] = set()
        self._accepting = False
        self._running = False

        for strategy in strategies:
            self.register_strategy(strategy)

    # ------------------------------------------------------------------
    # Registration / subscription
    # ------------------------------------------------------------------

    def register_strategy(self, strategy: SourceStrategy) -> None:
        """Give *strategy* its own FIFO channel into the pipeline."""
        if strategy.name in self._strategies:
            raise ValueError(f"Strategy {strategy.name!r} already registered")
        channel: asyncio.Queue = asyncio.Queue()
        strategy.bind(
            StrategyOutlet(
                channel=channel,
                enqueue=self.enqueue_signature,
                accepting=lambda: self._accepting,
                on_failure=self._on_strategy_failure,
            )
        )
        self._strategies[strategy.name] = strategy
        self._channels[strategy.name] = channel
        if self._running:
            self._consumers.append(self._spawn_consumer(strategy.name, channel))
            strategy.start()

    @property
    def strategies(self) -> list[SourceStrategy]:
        return list(self._strategies.values())

    def subscribe(self, maxsize: int | None = None) -> asyncio.Queue[DetectionResult]:
        """Register a consumer of the detection-result stream."""
        return self._results.subscribe(maxsize)

    def unsubscribe(self, queue: asyncio.Queue[DetectionResult]) -> None:
        self._results.unsubscribe(queue)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start consumers, timers and every strategy.  Idempotent."""
        if self._running:
            return
        self._running = True
        self._accepting = True

        for name, channel in self._channels.items():
            self._consumers.append(self._spawn_consumer(name, channel))

        if self._analyzer is not None and self.work_queue is not None:
            self._feedback = self._analyzer.analysis_complete.subscribe(maxsize=0)
            self._consumers.append(
                asyncio.create_task(self._consume_feedback(self._feedback), name="analysis_feedback")
            )
            self.work_queue.start()

        self._sweep_stop = asyncio.Event()
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="freshness_sweep")

        for strategy in self._strategies.values():
            strategy.start()
        logger.info(
            "Detection pipeline started (%d strategies: %s)",
            len(self._strategies), ", ".join(self._strategies) or "none",
        )

    async def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        """Stop accepting output, stop strategies and halt both timers.

        In-flight admissions and analyzer calls are given *timeout* seconds
        to finish.  Idempotent.
        """
        if not self._running:
            return
        self._accepting = False
        self._running = False

        await asyncio.gather(
            *(s.stop() for s in self._strategies.values()), return_exceptions=True
        )

        for channel in self._channels.values():
            channel.put_nowait(_STOP)
        if self._feedback is not None:
            self._feedback.put_nowait(_STOP)

        consumers, self._consumers = self._consumers, []
        if consumers:
            done, pending = await asyncio.wait(consumers, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("%d consumer(s) cancelled after %.1fs", len(pending), timeout)
                await asyncio.gather(*pending, return_exceptions=True)

        if self.work_queue is not None:
            await self.work_queue.stop(timeout)
        if self._analyzer is not None and self._feedback is not None:
            self._analyzer.analysis_complete.unsubscribe(self._feedback)
            self._feedback = None

        self._sweep_stop.set()
        sweep, self._sweep_task = self._sweep_task, None
        if sweep is not None and not sweep.done():
            sweep.cancel()
            await asyncio.gather(sweep, return_exceptions=True)

        logger.info("Detection pipeline stopped")

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def submit(self, records: Iterable[DiscoveryRecord]) -> list[DetectionResult]:
        """Admit a batch sequentially; returns the detections it produced."""
        token = batch_id_ctx.set(generate_batch_id())
        try:
            results = []
            for record in records:
                result = await self._admit(record)
                if result is not None:
                    results.append(result)
            return results
        finally:
            batch_id_ctx.reset(token)

    async def _admit(self, record: DiscoveryRecord) -> Optional[DetectionResult]:
        try:
            record = normalize_record(record)
        except InvalidRecordError as exc:
            self.stats.record_error(ERROR_REJECTED)
            logger.debug("Rejected record from %s: %s", record.source, exc)
            return None

        address = record.address
        if address in self._in_flight or self.cache.is_fresh(address):
            self.stats.record_filtered()
            logger.debug("Duplicate %s from %s filtered", address, record.source)
            return None

        self._in_flight.add(address)
        try:
            verdict: Optional[SecurityVerdict] = None
            if self._security is not None:
                verdict = await self._check_security(address)
                if verdict is not None and not verdict.passed:
                    self.stats.record_filtered()
                    logger.info(
                        "%s from %s failed security check (score=%.0f): %s",
                        address, record.source, verdict.score, "; ".join(verdict.flags),
                    )
                    return None

            enriched = await self.enricher.enrich(record)
            if enriched.enrichment_error:
                self.stats.record_error(ERROR_ENRICHMENT)

            try:
                result = self.scoring.score(enriched, security=verdict)
            except Exception:
                self.stats.record_error(ERROR_SCORING)
                logger.error("Scoring failed for %s", address, exc_info=True)
                return None

            self.cache.put(address, result)
            self.stats.record_detection(result)
            self._results.publish(result)
            logger.info(
                "Detected %s (%s) via %s – confidence=%.0f priority=%d signals=%s",
                address, enriched.symbol, enriched.source, result.confidence,
                result.metadata.priority, ",".join(result.metadata.signals),
            )
            return result
        finally:
            self._in_flight.discard(address)

    async def _check_security(self, address: str) -> Optional[SecurityVerdict]:
        try:
            return await self._security.analyze(address)  # type: ignore[union-attr]
        except Exception as exc:
            self.stats.record_error(ERROR_SECURITY)
            logger.warning("Security analysis failed for %s: %s", address, exc)
            return None

    # ------------------------------------------------------------------
    # Analysis work queue
    # ------------------------------------------------------------------

    def enqueue_signature(self, signature: str, source: str, priority: int = 1) -> bool:
        """Queue a transaction signature for deep analysis."""
        if self.work_queue is None:
            return False
        return self.work_queue.enqueue(signature, source, priority)

    def _on_dispatch_failure(self, task: AnalysisTask, exc: Exception) -> None:
        self.stats.record_error(ERROR_DISPATCH)

    def _on_strategy_failure(self, name: str) -> None:
        self.stats.record_error(ERROR_STRATEGY)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn_consumer(self, name: str, channel: asyncio.Queue) -> asyncio.Task:
        return asyncio.create_task(self._consume(name, channel), name=f"consumer:{name}")

    async def _consume(self, name: str, channel: asyncio.Queue) -> None:
        while True:
            batch = await channel.get()
            if batch is _STOP:
                return
            if not self._accepting:
                continue
            try:
                await self.submit(batch)
            except Exception:
                logger.error("Batch from '%s' could not be processed", name, exc_info=True)

    async def _consume_feedback(self, queue: asyncio.Queue) -> None:
        while True:
            result = await queue.get()
            if result is _STOP:
                return
            if not self._accepting or not result.records:
                continue
            try:
                await self.submit(result.records)
            except Exception:
                logger.error(
                    "Analysis result for %s could not be processed",
                    result.signature[:16], exc_info=True,
                )

    def sweep(self) -> int:
        """Purge expired and overflow cache entries; returns entries removed."""
        return self.cache.sweep()

    async def _sweep_loop(self) -> None:
        logger.info("Freshness sweep started (interval=%ds)", self._sweep_interval)
        while True:
            try:
                await asyncio.wait_for(self._sweep_stop.wait(), timeout=self._sweep_interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                self.sweep()
            except Exception:
                logger.warning("Freshness sweep iteration failed", exc_info=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def recent_results(self, limit: int = 50) -> list[DetectionResult]:
        return self.cache.recent(limit)

    def get_stats(self) -> DetectionStats:
        return self.stats.snapshot()

    def status(self) -> dict[str, Any]:
        queue = self.work_queue
        return {
            "running": self._running,
            "cache_size": len(self.cache),
            "subscribers": self._results.subscriber_count,
            "queue": {
                "pending": len(queue) if queue else 0,
                "seen_signatures": len(queue.seen) if queue else 0,
                "dispatched": queue.dispatched if queue else 0,
                "dropped": queue.dropped if queue else 0,
                "failed": queue.failed if queue else 0,
            },
            "strategies": {
                name: s.report_status().model_dump(mode="json")
                for name, s in self._strategies.items()
            },
            "circuit_breakers": self._breakers.statuses() if self._breakers else {},
        }


def create_pipeline(
    ctx: PipelineContext,
    sources: Optional[Iterable[str]] = None,
    **kwargs: Any,
) -> DetectionPipeline:
    """Wire a pipeline from *ctx* with strategies for *sources* (default: config)."""
    return DetectionPipeline(
        strategies=build_strategies(ctx, sources if sources is not None else ENABLED_SOURCES),
        enricher=Enricher(ctx.dex, sentiment=ctx.sentiment),
        analyzer=ctx.analyzer,
        security=ctx.security,
        breakers=ctx.breakers,
        **kwargs,
    )
