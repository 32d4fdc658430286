"""
Shared lifecycle for source strategies.

A strategy runs as its own ``asyncio.Task``.  It owns its retry, backoff
and reconnect policy; nothing it raises reaches the pipeline or another
strategy.  Failures only show up in ``report_status()``.

Output goes through a ``StrategyOutlet`` bound by the pipeline: a private
FIFO channel of record batches plus a hook into the analysis work queue.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, ClassVar, Optional

from config import MAX_POLL_BACKOFF_SECONDS, STOP_TIMEOUT_SECONDS

from ..models import DiscoveryRecord, StrategyStatus
from ..utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class StrategyOutlet:
    """Where a strategy delivers its output (bound by the pipeline)."""

    channel: asyncio.Queue
    enqueue: Callable[[str, str, int], bool]
    accepting: Callable[[], bool]
    on_failure: Optional[Callable[[str], None]] = None


class SourceStrategy:
    """Base class: start / stop / report_status plus emit helpers."""

    kind: ClassVar[str] = ""
    source: ClassVar[str] = ""

    def __init__(
        self,
        name: str | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.name = name or self.source
        self._clock = clock
        self._outlet: Optional[StrategyOutlet] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

        self._fatal = False
        self._batches = 0
        self._records = 0
        self._errors = 0
        self._consecutive_failures = 0
        self._last_success_at: Optional[datetime] = None
        self._last_error = ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bind(self, outlet: StrategyOutlet) -> None:
        self._outlet = outlet

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Launch the strategy task (no-op when already running)."""
        if self.running:
            return self._task  # type: ignore[return-value]
        if self._outlet is None:
            raise RuntimeError(f"Strategy '{self.name}' started before being bound")
        self._stop_event = asyncio.Event()
        self._fatal = False
        self._task = asyncio.create_task(self._supervise(), name=f"strategy:{self.name}")
        return self._task

    async def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        """Stop the strategy and wait for its task to end.  Idempotent."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass
        logger.info("Strategy '%s' stopped", self.name)

    async def _supervise(self) -> None:
        logger.info("Strategy '%s' (%s) started", self.name, self.kind)
        try:
            await self._run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._mark_fatal(f"unexpected error: {exc}")
            logger.error("Strategy '%s' crashed", self.name, exc_info=True)

    async def _run(self) -> None:
        raise NotImplementedError

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; ``True`` when a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _emit(self, records: list[DiscoveryRecord]) -> bool:
        """Hand a batch to the pipeline; ``False`` when it is not accepting."""
        if not records or self._outlet is None or not self._outlet.accepting():
            return False
        self._outlet.channel.put_nowait(records)
        self._batches += 1
        self._records += len(records)
        logger.debug("Strategy '%s' emitted %d record(s)", self.name, len(records))
        return True

    def _enqueue(self, signature: str, priority: int) -> bool:
        if self._outlet is None or not self._outlet.accepting():
            return False
        return self._outlet.enqueue(signature, self.source, priority)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        self._last_success_at = self._clock()

    def _record_failure(self, exc: BaseException) -> None:
        self._errors += 1
        self._consecutive_failures += 1
        self._last_error = f"{type(exc).__name__}: {exc}"
        self._notify_failure()

    def _mark_fatal(self, reason: str) -> None:
        self._fatal = True
        self._last_error = reason
        self._notify_failure()

    def _notify_failure(self) -> None:
        if self._outlet is not None and self._outlet.on_failure is not None:
            self._outlet.on_failure(self.name)

    def _healthy(self) -> bool:
        return self.running and not self._fatal and self._consecutive_failures == 0

    def _status_details(self) -> dict[str, Any]:
        return {}

    def report_status(self) -> StrategyStatus:
        return StrategyStatus(
            name=self.name,
            source=self.source,
            kind=self.kind,  # type: ignore[arg-type]
            running=self.running,
            healthy=self._healthy(),
            fatal=self._fatal,
            batches_emitted=self._batches,
            records_emitted=self._records,
            errors=self._errors,
            consecutive_failures=self._consecutive_failures,
            last_success_at=self._last_success_at,
            last_error=self._last_error,
            details=self._status_details(),
        )


class PollingStrategy(SourceStrategy):
    """Strategy that calls ``poll()`` on a fixed interval.

    Consecutive failures back off exponentially from the interval up to
    ``max_backoff``; a success restores the normal interval.
    """

    def __init__(
        self,
        interval: float,
        name: str | None = None,
        *,
        max_backoff: float = MAX_POLL_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(name, clock=clock)
        self.interval = interval
        self.max_backoff = max_backoff
        self._polls = 0

    async def poll(self) -> list[DiscoveryRecord]:
        raise NotImplementedError

    def next_delay(self) -> float:
        if self._consecutive_failures == 0:
            return self.interval
        return min(self.interval * (2 ** self._consecutive_failures), self.max_backoff)

    async def poll_once(self) -> list[DiscoveryRecord]:
        """Run one poll iteration with failure isolation; returns emitted records."""
        self._polls += 1
        try:
            records = await self.poll()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._record_failure(exc)
            logger.warning(
                "Strategy '%s' poll failed (%d in a row), next attempt in %.0fs: %s",
                self.name, self._consecutive_failures, self.next_delay(), exc,
            )
            return []
        self._record_success()
        self._emit(records)
        return records

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.poll_once()
            if await self._wait(self.next_delay()):
                break

    def _status_details(self) -> dict[str, Any]:
        return {"interval_s": self.interval, "polls": self._polls, "next_delay_s": self.next_delay()}
