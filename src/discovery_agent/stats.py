"""
Running detection statistics.

Averages are maintained incrementally (``avg += (x - avg) / n``) so no
history is retained.
"""

from __future__ import annotations

import logging
from collections import Counter

from .models import DetectionResult, DetectionStats

logger = logging.getLogger(__name__)

# Error counter keys
ERROR_STRATEGY = "strategy"
ERROR_ENRICHMENT = "enrichment"
ERROR_SCORING = "scoring"
ERROR_DISPATCH = "dispatch"
ERROR_REJECTED = "rejected"
ERROR_SECURITY = "security"


class StatisticsAggregator:
    """Totals, breakdowns and running means over admitted detections."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._detected = 0
        self._filtered = 0
        self._avg_confidence = 0.0
        self._avg_detection_time = 0.0
        self._by_source: Counter[str] = Counter()
        self._by_priority: Counter[int] = Counter()
        self._errors: Counter[str] = Counter()

    def record_detection(self, result: DetectionResult) -> None:
        self._detected += 1
        n = self._detected
        self._avg_confidence += (result.confidence - self._avg_confidence) / n
        self._avg_detection_time += (result.detection_time_ms - self._avg_detection_time) / n
        self._by_source[result.record.source] += 1
        self._by_priority[result.metadata.priority] += 1

    def record_filtered(self, count: int = 1) -> None:
        self._filtered += count

    def record_error(self, kind: str, count: int = 1) -> None:
        self._errors[kind] += count

    @property
    def total_detected(self) -> int:
        return self._detected

    @property
    def total_filtered(self) -> int:
        return self._filtered

    @property
    def total_processed(self) -> int:
        return self._detected + self._filtered

    def snapshot(self) -> DetectionStats:
        processed = self.total_processed
        return DetectionStats(
            total_detected=self._detected,
            total_processed=processed,
            total_filtered=self._filtered,
            success_rate=(self._detected / processed * 100) if processed else 0.0,
            average_confidence=self._avg_confidence,
            average_detection_time_ms=self._avg_detection_time,
            source_breakdown=dict(self._by_source),
            priority_breakdown=dict(self._by_priority),
            error_counts=dict(self._errors),
        )
