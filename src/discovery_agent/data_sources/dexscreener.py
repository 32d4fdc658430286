"""
DexScreener API client for the Token Discovery Agent.

Reference: https://docs.dexscreener.com/api/reference

DexScreener is the canonical market-data source: the enrichment step looks
tokens up here, and the periodic-poll strategy reads its latest token
profiles.  All public endpoints – no API key required.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..circuit_breaker import CircuitBreaker
from ..models import MarketData
from ..utils import parse_datetime, safe_float, safe_int
from ._retry import async_http_get, call_guarded

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.0  # seconds

# /tokens/v1/{chain}/{addresses} accepts at most 30 comma-separated addresses
_MAX_ADDRESSES_PER_CALL = 30


class DexScreenerClient:
    """Async wrapper around the DexScreener REST API."""

    def __init__(
        self,
        base_url: str,
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

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    async def get_token_pairs(self, mint: str) -> list[dict[str, Any]]:
        """Return all DEX pairs for a given token mint."""
        data = await self._get(f"{self._base_url}/latest/dex/tokens/{mint}")
        if not isinstance(data, dict):
            return []
        return data.get("pairs") or []

    async def get_by_address(self, address: str) -> Optional[MarketData]:
        """Market-data lookup used by enrichment.

        Returns the highest-liquidity Solana pair as ``MarketData``, or
        ``None`` when DexScreener has no pair for *address*.
        """
        pairs = [
            p for p in await self.get_token_pairs(address)
            if p.get("chainId", "solana") == "solana"
        ]
        best = best_pairs_by_token(pairs, address_hint=address).get(address)
        if best is None:
            return None
        return pair_to_market(best)

    async def get_latest_profiles(self) -> Optional[list[dict[str, Any]]]:
        """Return the most recently published token profiles (all chains).

        ``None`` when DexScreener could not be reached.
        """
        data = await self._get(f"{self._base_url}/token-profiles/latest/v1")
        if data is None:
            return None
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            # Older deployments wrapped the list
            return data.get("profiles") or []
        return []

    async def get_pairs_for_tokens(
        self, addresses: list[str], chain: str = "solana"
    ) -> list[dict[str, Any]]:
        """Return pairs for up to 30 token addresses in one call."""
        if not addresses:
            return []
        joined = ",".join(addresses[:_MAX_ADDRESSES_PER_CALL])
        data = await self._get(f"{self._base_url}/tokens/v1/{chain}/{joined}")
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return data.get("pairs") or []
        return []

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _get(self, url: str, params: dict | None = None) -> Optional[Any]:
        """GET with retry + exponential backoff, guarded by circuit breaker."""
        client = await self._get_client()
        return await call_guarded(
            self._cb,
            "DexScreener",
            lambda: async_http_get(
                client, url, params=params,
                max_retries=_MAX_RETRIES, backoff_base=_BACKOFF_BASE,
                label="DexScreener",
            ),
        )


# ---------------------------------------------------------------------------
# Conversion helpers (pure data transforms)
# ---------------------------------------------------------------------------

def _txn_count(bucket: Any) -> Optional[int]:
    if not isinstance(bucket, dict):
        return None
    buys = safe_int(bucket.get("buys"))
    sells = safe_int(bucket.get("sells"))
    if buys is None and sells is None:
        return None
    return (buys or 0) + (sells or 0)


def pair_to_market(pair: dict[str, Any]) -> MarketData:
    """Convert a raw DexScreener pair dict to ``MarketData``."""
    volume = pair.get("volume") or {}
    change = pair.get("priceChange") or {}
    txns = pair.get("txns") or {}
    return MarketData(
        price_usd=safe_float(pair.get("priceUsd")),
        liquidity_usd=safe_float((pair.get("liquidity") or {}).get("usd")),
        # fdv is filled far more often than marketCap for new pairs
        market_cap_usd=safe_float(pair.get("marketCap")) or safe_float(pair.get("fdv")),
        volume_5m=safe_float(volume.get("m5")),
        volume_1h=safe_float(volume.get("h1")),
        volume_24h=safe_float(volume.get("h24")),
        price_change_5m=safe_float(change.get("m5")),
        price_change_1h=safe_float(change.get("h1")),
        price_change_24h=safe_float(change.get("h24")),
        txns_5m=_txn_count(txns.get("m5")),
        txns_1h=_txn_count(txns.get("h1")),
        txns_24h=_txn_count(txns.get("h24")),
        dex_id=pair.get("dexId") or "",
        pair_address=pair.get("pairAddress") or "",
        pair_created_at=parse_datetime(pair.get("pairCreatedAt")),
        url=pair.get("url") or "",
    )


def best_pairs_by_token(
    pairs: list[dict[str, Any]], address_hint: str = ""
) -> dict[str, dict[str, Any]]:
    """Map each token address to its highest-liquidity pair.

    The token may sit on either side of a pair; when *address_hint* is the
    quote token, the pair is filed under the hint.
    """
    best: dict[str, dict[str, Any]] = {}
    for pair in pairs:
        base = (pair.get("baseToken") or {}).get("address", "")
        quote = (pair.get("quoteToken") or {}).get("address", "")
        key = address_hint if address_hint and address_hint in (base, quote) else base
        if not key:
            continue
        liq = safe_float((pair.get("liquidity") or {}).get("usd")) or 0.0
        current = best.get(key)
        if current is None or liq > (
            safe_float((current.get("liquidity") or {}).get("usd")) or 0.0
        ):
            best[key] = pair
    return best
