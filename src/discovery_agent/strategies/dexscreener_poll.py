"""
Periodic-poll strategy over DexScreener's latest token profiles.

Each poll reads ``/token-profiles/latest/v1``, keeps the Solana tokens,
and resolves their pairs in one ``/tokens/v1/solana/...`` call so every
record leaves with market data attached (records from the canonical
market-data source are not enriched again).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from config import SCAN_INTERVAL_SECONDS

from ..constants import SOURCE_DEXSCREENER
from ..data_sources.dexscreener import DexScreenerClient, best_pairs_by_token, pair_to_market
from ..errors import StrategyError
from ..models import DiscoveryRecord, MarketData, MarketPollMetadata
from ..utils import utc_now
from .base import PollingStrategy

logger = logging.getLogger(__name__)

_MAX_TOKENS_PER_POLL = 30


class DexScreenerPollStrategy(PollingStrategy):
    kind = "periodic_poll"
    source = SOURCE_DEXSCREENER

    def __init__(
        self,
        client: DexScreenerClient,
        *,
        interval: float = SCAN_INTERVAL_SECONDS,
        name: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(interval, name, clock=clock)
        self._client = client

    async def poll(self) -> list[DiscoveryRecord]:
        profiles = await self._client.get_latest_profiles()
        if profiles is None:
            raise StrategyError("DexScreener profiles unavailable")
        solana: dict[str, dict[str, Any]] = {}
        for profile in profiles:
            address = profile.get("tokenAddress", "")
            if profile.get("chainId") == "solana" and address and address not in solana:
                solana[address] = profile
            if len(solana) >= _MAX_TOKENS_PER_POLL:
                break
        if not solana:
            return []

        pairs = await self._client.get_pairs_for_tokens(list(solana))
        best = best_pairs_by_token(pairs)
        now = self._clock()

        records = []
        for address, profile in solana.items():
            pair = best.get(address)
            base = (pair or {}).get("baseToken") or {}
            records.append(
                DiscoveryRecord(
                    address=address,
                    name=base.get("name") or "",
                    symbol=base.get("symbol") or "",
                    detected_at=now,
                    source=self.source,
                    market=pair_to_market(pair) if pair else MarketData(),
                    metadata=MarketPollMetadata(
                        profile_url=profile.get("url") or "",
                        description=profile.get("description") or "",
                        links=[
                            link["url"] for link in profile.get("links") or []
                            if isinstance(link, dict) and link.get("url")
                        ],
                    ),
                )
            )
        logger.debug("DexScreener poll: %d profile(s), %d with pairs", len(records), len(best))
        return records
