"""
Jupiter API client for the Token Discovery Agent.

Reference: https://dev.jup.ag/docs/token-api/v2

The aggregator-poll strategy reads ``/tokens/v2/recent``: tokens whose
first pool was created most recently, with price, liquidity and rolling
trade statistics attached.  Public endpoint – no API key required.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..circuit_breaker import CircuitBreaker
from ..models import AggregatorMetadata, MarketData
from ..utils import parse_datetime, safe_float, safe_int
from ._retry import async_http_get, call_guarded

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.0


class JupiterClient:
    """Async client for the Jupiter token API."""

    def __init__(
        self,
        base_url: str = "https://lite-api.jup.ag",
        timeout: int = 15,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._cb = circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get(self, url: str, params: dict | None = None) -> Any:
        """GET with retry + exponential backoff, guarded by circuit breaker."""
        client = await self._get_client()
        return await call_guarded(
            self._cb,
            "Jupiter",
            lambda: async_http_get(
                client, url, params=params,
                max_retries=_MAX_RETRIES, backoff_base=_BACKOFF_BASE,
                label="Jupiter",
            ),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_recent_tokens(self) -> Optional[list[dict[str, Any]]]:
        """Return the tokens Jupiter most recently saw a first pool for.

        Each dict carries keys like ``id``, ``name``, ``symbol``,
        ``usdPrice``, ``liquidity``, ``mcap``, ``stats5m``, ``stats1h``,
        ``stats24h`` and ``firstPool``.  ``None`` when Jupiter could not be reached.
        """
        data = await self._get(f"{self._base_url}/tokens/v2/recent")
        if data is None:
            return None
        if not isinstance(data, list):
            return []
        return [t for t in data if isinstance(t, dict) and t.get("id")]


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _stats_volume(stats: dict[str, Any]) -> Optional[float]:
    buy = safe_float(stats.get("buyVolume"))
    sell = safe_float(stats.get("sellVolume"))
    if buy is None and sell is None:
        return None
    return (buy or 0.0) + (sell or 0.0)


def _stats_txns(stats: dict[str, Any]) -> Optional[int]:
    buys = safe_int(stats.get("numBuys"))
    sells = safe_int(stats.get("numSells"))
    if buys is None and sells is None:
        return None
    return (buys or 0) + (sells or 0)


def token_to_market(token: dict[str, Any]) -> MarketData:
    """Convert a Jupiter token dict to ``MarketData``."""
    s5m = token.get("stats5m") or {}
    s1h = token.get("stats1h") or {}
    s24h = token.get("stats24h") or {}
    first_pool = token.get("firstPool") or {}
    return MarketData(
        price_usd=safe_float(token.get("usdPrice")),
        liquidity_usd=safe_float(token.get("liquidity")),
        market_cap_usd=safe_float(token.get("mcap")) or safe_float(token.get("fdv")),
        volume_5m=_stats_volume(s5m),
        volume_1h=_stats_volume(s1h),
        volume_24h=_stats_volume(s24h),
        price_change_5m=safe_float(s5m.get("priceChange")),
        price_change_1h=safe_float(s1h.get("priceChange")),
        price_change_24h=safe_float(s24h.get("priceChange")),
        txns_5m=_stats_txns(s5m),
        txns_1h=_stats_txns(s1h),
        txns_24h=_stats_txns(s24h),
        pair_address=first_pool.get("id") or "",
        pair_created_at=parse_datetime(first_pool.get("createdAt")),
    )


def token_to_metadata(token: dict[str, Any]) -> AggregatorMetadata:
    return AggregatorMetadata(
        decimals=safe_int(token.get("decimals")),
        tags=[str(t) for t in token.get("tags") or []],
        holder_count=safe_int(token.get("holderCount")),
        organic_score=safe_float(token.get("organicScore")),
    )
