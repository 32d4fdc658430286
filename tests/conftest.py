"""Shared test fixtures for the Token Discovery Agent test suite."""

from __future__ import annotations

import sys
import os

# Ensure src/ is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest
from datetime import datetime, timedelta, timezone

from discovery_agent.models import DiscoveryRecord, MarketData

BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
WIF = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"
POPCAT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, ms: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(milliseconds=ms, seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


def _make_record(
    address: str = BONK,
    *,
    source: str = "blockchain",
    detected_at: datetime = T0,
    **market,
) -> DiscoveryRecord:
    """Build a discovery record with the given market fields."""
    return DiscoveryRecord(
        address=address,
        name="Bonk",
        symbol="BONK",
        detected_at=detected_at,
        source=source,
        market=MarketData(**market),
    )


@pytest.fixture
def make_record():
    """Factory fixture: make_record(address, source=..., detected_at=..., **market)."""
    return _make_record


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_pair():
    """A single DexScreener pair with full volume/priceChange/txns data."""
    return {
        "chainId": "solana",
        "dexId": "raydium",
        "url": "https://dexscreener.com/solana/bonkpair",
        "pairAddress": "5zpyutJu9ee6jFymDGoK7F6S5Kczqtc9FomP3ueKuyA9",
        "baseToken": {"address": BONK, "name": "Bonk", "symbol": "BONK"},
        "quoteToken": {
            "address": "So11111111111111111111111111111111111111112",
            "name": "Wrapped SOL",
            "symbol": "SOL",
        },
        "priceUsd": "0.00001234",
        "txns": {
            "m5": {"buys": 15, "sells": 10},
            "h1": {"buys": 120, "sells": 80},
            "h24": {"buys": 900, "sells": 700},
        },
        "volume": {"m5": 9000, "h1": 60000, "h24": 150000},
        "priceChange": {"m5": 12.5, "h1": 22.0, "h24": 25.0},
        "liquidity": {"usd": 60000, "base": 1, "quote": 2},
        "fdv": 900000,
        "marketCap": 850000,
        "pairCreatedAt": 1735732800000,
    }


@pytest.fixture
def sample_profiles():
    """DexScreener /token-profiles/latest/v1 response."""
    return [
        {
            "url": "https://dexscreener.com/solana/bonk",
            "chainId": "solana",
            "tokenAddress": BONK,
            "description": "The dog coin",
            "links": [{"type": "twitter", "url": "https://x.com/bonk"}],
        },
        {
            "url": "https://dexscreener.com/base/0xabc",
            "chainId": "base",
            "tokenAddress": "0xabc",
        },
        {
            "url": "https://dexscreener.com/solana/wif",
            "chainId": "solana",
            "tokenAddress": WIF,
        },
    ]


@pytest.fixture
def sample_jupiter_token():
    """One entry of Jupiter /tokens/v2/recent."""
    return {
        "id": POPCAT,
        "name": "Popcat",
        "symbol": "POPCAT",
        "decimals": 9,
        "holderCount": 1234,
        "organicScore": 55.5,
        "tags": ["verified"],
        "usdPrice": 0.42,
        "liquidity": 75000,
        "mcap": 420000,
        "stats5m": {"priceChange": 3.1, "buyVolume": 1000, "sellVolume": 500,
                    "numBuys": 10, "numSells": 5},
        "stats1h": {"priceChange": 8.0, "buyVolume": 6000, "sellVolume": 4000,
                    "numBuys": 60, "numSells": 40},
        "stats24h": {"priceChange": 30.0, "buyVolume": 70000, "sellVolume": 50000,
                     "numBuys": 700, "numSells": 500},
        "firstPool": {"id": "PooL1111111111111111111111111111111111111", "createdAt": "2025-01-01T11:55:00Z"},
    }


@pytest.fixture
def creation_tx():
    """A jsonParsed transaction that initialises a new mint."""
    return {
        "slot": 312345678,
        "blockTime": 1735732800,
        "meta": {
            "err": None,
            "preBalances": [5_000_000_000, 0, 1],
            "postBalances": [3_000_000_000, 2_000_000_000, 1],
            "innerInstructions": [
                {
                    "index": 0,
                    "instructions": [
                        {
                            "program": "spl-token",
                            "parsed": {"type": "initializeMint2", "info": {"mint": WIF}},
                        }
                    ],
                }
            ],
            "postTokenBalances": [
                {"mint": WIF, "owner": "owner1"},
                {"mint": "So11111111111111111111111111111111111111112", "owner": "owner2"},
            ],
            "logMessages": ["Program log: Instruction: Create"],
        },
        "transaction": {
            "message": {
                "instructions": [
                    {"program": "system", "parsed": {"type": "createAccount", "info": {}}}
                ]
            }
        },
    }
