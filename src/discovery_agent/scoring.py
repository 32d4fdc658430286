"""
Scoring engine for discovered tokens.

Computes, from an enriched record, six independent 0-100 scores and an
integer priority:

Confidence (base 70)
  source bonus   on-chain scan +15 · market poll +10 · push feed +12 ·
                 transaction analysis +8
  liquidity      ≥ 50k → +10 (high_liquidity) · ≥ 10k → +5 (medium_liquidity)
  age            < 5 min → +8 (very_new) · < 15 min → +5 (new)
  24h volume     > 100k → +8 (high_volume) · > 10k → +4 (medium_volume)
  24h change     > 20% → +6 (pumping) · > 10% → +3 (rising)

Risk (base 50, lower is better), Opportunity, Technical, Market (base 50)
and Social (50 without sentiment data) follow the bands in the functions
below.

Priority (base 1, capped at 10) adds a configurable weight for each of
pumping / very_new / high_volume / high_liquidity and for age < 5 min.

A market field that is missing contributes nothing: an unenriched record
scores from the base values alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from config import (
    PRIORITY_LIQUIDITY,
    PRIORITY_LOW_AGE,
    PRIORITY_NEW,
    PRIORITY_PUMP,
    PRIORITY_VOLUME,
)

from .constants import (
    SIGNAL_HIGH_LIQUIDITY,
    SIGNAL_HIGH_VOLUME,
    SIGNAL_MEDIUM_LIQUIDITY,
    SIGNAL_MEDIUM_VOLUME,
    SIGNAL_NEW,
    SIGNAL_PUMPING,
    SIGNAL_RISING,
    SIGNAL_VERY_NEW,
    SOURCE_CONFIDENCE_BONUS,
)
from .models import (
    DetectionMetadata,
    DetectionResult,
    EnrichedRecord,
    MarketData,
    SecurityVerdict,
    SocialSentiment,
)
from .utils import elapsed_ms, utc_now

logger = logging.getLogger(__name__)

_MINUTE_MS = 60_000
_DAY_MS = 86_400_000


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


@dataclass
class PriorityWeights:
    pump: int = PRIORITY_PUMP
    new: int = PRIORITY_NEW
    volume: int = PRIORITY_VOLUME
    liquidity: int = PRIORITY_LIQUIDITY
    low_age: int = PRIORITY_LOW_AGE


@dataclass
class ScoringConfig:
    """Overridable confidence bands and priority weights."""

    weights: PriorityWeights = field(default_factory=PriorityWeights)
    source_bonus: dict[str, tuple[float, str]] = field(
        default_factory=lambda: dict(SOURCE_CONFIDENCE_BONUS)
    )
    confidence_base: float = 70.0
    high_liquidity_usd: float = 50_000
    medium_liquidity_usd: float = 10_000
    very_new_ms: float = 5 * _MINUTE_MS
    new_ms: float = 15 * _MINUTE_MS
    high_volume_usd: float = 100_000
    medium_volume_usd: float = 10_000
    pumping_pct: float = 20
    rising_pct: float = 10


# ---------------------------------------------------------------------------
# Auxiliary scores
# ---------------------------------------------------------------------------

def risk_score(market: MarketData, age_ms: float) -> int:
    score = 50
    liq = market.liquidity_usd
    if liq is not None:
        if liq < 5_000:
            score += 20
        elif liq < 20_000:
            score += 10
        elif liq > 100_000:
            score -= 10
    if age_ms < 5 * _MINUTE_MS:
        score += 15
    elif age_ms > _DAY_MS:
        score -= 5
    vol = market.volume_24h
    if vol is not None:
        if vol < 1_000:
            score += 15
        elif vol > 50_000:
            score -= 5
    mcap = market.market_cap_usd
    if mcap is not None:
        if mcap < 100_000:
            score += 10
        elif mcap > 1_000_000:
            score -= 5
    return _clamp(score)


def opportunity_score(market: MarketData, age_ms: float) -> int:
    score = 50
    change = market.price_change_24h
    if change is not None:
        if change > 50:
            score += 20
        elif change > 20:
            score += 10
        elif change < -20:
            score -= 10
    vol = market.volume_24h
    if vol is not None:
        if vol > 100_000:
            score += 15
        elif vol > 50_000:
            score += 10
    liq = market.liquidity_usd
    if liq is not None and 50_000 < liq < 500_000:
        score += 10
    if 5 * _MINUTE_MS < age_ms < 30 * _MINUTE_MS:
        score += 10
    return _clamp(score)


def technical_score(market: MarketData) -> int:
    score = 50
    if market.price_change_5m is not None and market.price_change_5m > 10:
        score += 15
    if market.price_change_1h is not None and market.price_change_1h > 20:
        score += 10
    if (
        market.volume_5m is not None
        and market.volume_1h is not None
        and market.volume_5m > market.volume_1h / 12
    ):
        score += 10
    if market.txns_5m is not None and market.txns_5m > 20:
        score += 10
    return _clamp(score)


def market_score(market: MarketData) -> int:
    score = 50
    if market.dex_id:
        score += 10
    if market.pair_address:
        score += 5
    liq = market.liquidity_usd
    if liq is not None:
        if liq > 100_000:
            score += 15
        elif liq > 50_000:
            score += 10
    if market.txns_24h is not None and market.txns_24h > 100:
        score += 10
    return _clamp(score)


def social_score(social: Optional[SocialSentiment]) -> int:
    if social is None:
        return 50
    score = 50
    if social.mentions > 100:
        score += 15
    elif social.mentions > 50:
        score += 10
    if social.sentiment > 0.6:
        score += 10
    elif social.sentiment < 0.4:
        score -= 10
    return _clamp(score)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ScoringEngine:
    """Turns an ``EnrichedRecord`` into a ``DetectionResult``."""

    def __init__(
        self,
        config: ScoringConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or ScoringConfig()
        self._clock = clock

    def confidence(self, record: EnrichedRecord, age_ms: float) -> tuple[float, list[str]]:
        """Return ``(confidence, signals)``; signals are listed in firing order."""
        cfg = self.config
        confidence = cfg.confidence_base
        signals: list[str] = []

        bonus = cfg.source_bonus.get(record.source)
        if bonus is not None:
            confidence += bonus[0]
            signals.append(bonus[1])

        market = record.market
        liq = market.liquidity_usd
        if liq is not None:
            if liq >= cfg.high_liquidity_usd:
                confidence += 10
                signals.append(SIGNAL_HIGH_LIQUIDITY)
            elif liq >= cfg.medium_liquidity_usd:
                confidence += 5
                signals.append(SIGNAL_MEDIUM_LIQUIDITY)

        if age_ms < cfg.very_new_ms:
            confidence += 8
            signals.append(SIGNAL_VERY_NEW)
        elif age_ms < cfg.new_ms:
            confidence += 5
            signals.append(SIGNAL_NEW)

        vol = market.volume_24h
        if vol is not None:
            if vol > cfg.high_volume_usd:
                confidence += 8
                signals.append(SIGNAL_HIGH_VOLUME)
            elif vol > cfg.medium_volume_usd:
                confidence += 4
                signals.append(SIGNAL_MEDIUM_VOLUME)

        change = market.price_change_24h
        if change is not None:
            if change > cfg.pumping_pct:
                confidence += 6
                signals.append(SIGNAL_PUMPING)
            elif change > cfg.rising_pct:
                confidence += 3
                signals.append(SIGNAL_RISING)

        return float(_clamp(confidence)), signals

    def priority(self, signals: list[str], age_ms: float) -> int:
        w = self.config.weights
        priority = 1
        if SIGNAL_PUMPING in signals:
            priority += w.pump
        if SIGNAL_VERY_NEW in signals:
            priority += w.new
        if SIGNAL_HIGH_VOLUME in signals:
            priority += w.volume
        if SIGNAL_HIGH_LIQUIDITY in signals:
            priority += w.liquidity
        if age_ms < self.config.very_new_ms:
            priority += w.low_age
        return _clamp(priority, 1, 10)

    def score(
        self,
        record: EnrichedRecord,
        *,
        security: Optional[SecurityVerdict] = None,
        now: Optional[datetime] = None,
    ) -> DetectionResult:
        """Score *record* as of *now* (defaults to the engine clock)."""
        now = now or self._clock()
        # A detection timestamp in the future counts as age zero
        age_ms = max(0.0, elapsed_ms(record.detected_at, now))

        confidence, signals = self.confidence(record, age_ms)
        market = record.market
        metadata = DetectionMetadata(
            priority=self.priority(signals, age_ms),
            signals=signals,
            risk_score=risk_score(market, age_ms),
            opportunity_score=opportunity_score(market, age_ms),
            technical_score=technical_score(market),
            market_score=market_score(market),
            social_score=social_score(record.social),
            security=security,
        )
        sources = list(dict.fromkeys([record.source, *record.enrichment_sources]))
        return DetectionResult(
            record=record,
            confidence=confidence,
            sources=sources,
            detection_time_ms=age_ms,
            metadata=metadata,
        )
