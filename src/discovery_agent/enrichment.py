"""
Enrichment stage: merge secondary market data into a discovery record.

The merge is additive.  A field already populated by the discovering
source is never overwritten; only gaps are filled from the market-data
lookup.  Every record leaving this stage is stamped with ``enriched_at``
and ``enriched_by``, whether or not a lookup happened or succeeded.

Lookup failures and timeouts are non-fatal: the record continues
unenriched, with the reason in ``enrichment_error``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from config import ENABLE_MARKET_ENRICHMENT, ENRICHMENT_TIMEOUT_SECONDS

from .constants import MARKET_DATA_SOURCE
from .models import DiscoveryRecord, EnrichedRecord, MarketData, SocialSentiment
from .utils import utc_now

logger = logging.getLogger(__name__)


class MarketDataLookup(Protocol):
    async def get_by_address(self, address: str) -> Optional[MarketData]:
        ...


class SentimentLookup(Protocol):
    async def get_sentiment(self, address: str, symbol: str) -> Optional[SocialSentiment]:
        ...


class Enricher:
    """Additive market-data (and optional sentiment) enrichment."""

    def __init__(
        self,
        market_data: MarketDataLookup | None,
        *,
        enabled: bool = ENABLE_MARKET_ENRICHMENT,
        timeout: float = ENRICHMENT_TIMEOUT_SECONDS,
        canonical_source: str = MARKET_DATA_SOURCE,
        sentiment: SentimentLookup | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._market_data = market_data
        self.enabled = enabled
        self._timeout = timeout
        self._canonical_source = canonical_source
        self._sentiment = sentiment
        self._clock = clock

    def wants_market_data(self, record: DiscoveryRecord) -> bool:
        return (
            self.enabled
            and self._market_data is not None
            and record.source != self._canonical_source
        )

    async def enrich(self, record: DiscoveryRecord) -> EnrichedRecord:
        market = record.market
        social = record.social
        contributors: list[str] = []
        errors: list[str] = []

        if self.wants_market_data(record):
            try:
                fetched = await asyncio.wait_for(
                    self._market_data.get_by_address(record.address),  # type: ignore[union-attr]
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Market-data lookup timed out after %.1fs for %s",
                    self._timeout, record.address,
                )
                errors.append("market_data: timeout")
            except Exception as exc:
                logger.warning("Market-data lookup failed for %s: %s", record.address, exc)
                errors.append(f"market_data: {exc}")
            else:
                if fetched is not None and not fetched.is_empty():
                    merged = market.fill_missing(fetched)
                    if merged is not market:
                        contributors.append(self._canonical_source)
                    market = merged

        if self.enabled and social is None and self._sentiment is not None:
            try:
                social = await asyncio.wait_for(
                    self._sentiment.get_sentiment(record.address, record.symbol),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Sentiment lookup timed out for %s", record.address)
                errors.append("sentiment: timeout")
            except Exception as exc:
                logger.warning("Sentiment lookup failed for %s: %s", record.address, exc)
                errors.append(f"sentiment: {exc}")

        fields = {name: getattr(record, name) for name in DiscoveryRecord.model_fields}
        fields.update(market=market, social=social)
        return EnrichedRecord(
            **fields,
            enriched_at=self._clock(),
            enriched_by=record.source,
            enrichment_sources=contributors,
            enrichment_error="; ".join(errors),
        )
