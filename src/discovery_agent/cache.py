"""
Freshness cache for the Token Discovery Agent.

Remembers every admitted detection for a TTL window (5 minutes by
default).  An address present and younger than the TTL is a duplicate and
is not re-admitted; once the entry ages out, the address may be
rediscovered and scored again.

Lookups are pure: they never extend an entry's lifetime.  Expired entries
are removed by ``sweep()``, which the pipeline runs on a timer together
with a size bound.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, NamedTuple, Optional

from .models import DetectionResult
from .utils import utc_now

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    inserted_at: datetime
    result: DetectionResult


class FreshnessCache:
    """TTL-deduplicating store of recent detections, keyed by token address.

    Not thread-safe: owned by the pipeline's event loop, whose synchronous
    method calls are the only mutations.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 1000,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store: dict[str, _Entry] = {}
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_entries = max_entries
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl.total_seconds()

    def _is_live(self, entry: _Entry, now: datetime) -> bool:
        return now - entry.inserted_at < self._ttl

    def is_fresh(self, address: str) -> bool:
        """True when *address* was admitted less than one TTL ago."""
        entry = self._store.get(address)
        return entry is not None and self._is_live(entry, self._clock())

    def get(self, address: str) -> Optional[DetectionResult]:
        """Return the live detection for *address*, or ``None``."""
        entry = self._store.get(address)
        if entry is None or not self._is_live(entry, self._clock()):
            return None
        return entry.result

    def put(self, address: str, result: DetectionResult) -> None:
        """Record *result* as the live detection for *address*."""
        self._store[address] = _Entry(self._clock(), result)

    def recent(self, limit: int = 50) -> list[DetectionResult]:
        """Return up to *limit* live detections, newest detection first."""
        if limit <= 0:
            return []
        now = self._clock()
        live = [e.result for e in self._store.values() if self._is_live(e, now)]
        live.sort(key=lambda r: r.record.detected_at, reverse=True)
        return live[:limit]

    def sweep(self) -> int:
        """Drop expired entries, then trim to ``max_entries`` newest detections.

        Returns the number of entries removed.
        """
        now = self._clock()
        expired = [k for k, e in self._store.items() if not self._is_live(e, now)]
        for key in expired:
            del self._store[key]

        evicted = 0
        overflow = len(self._store) - self._max_entries
        if overflow > 0:
            oldest_first = sorted(
                self._store, key=lambda k: self._store[k].result.record.detected_at
            )
            for key in oldest_first[:overflow]:
                del self._store[key]
            evicted = overflow

        if expired or evicted:
            logger.debug(
                "Freshness sweep: %d expired, %d evicted, %d remaining",
                len(expired), evicted, len(self._store),
            )
        return len(expired) + evicted

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, address: str) -> bool:
        return self.is_fresh(address)

    def __len__(self) -> int:
        return len(self._store)
